"""
Selector Engine - Infer the most durable unique locator for an element.

Strategies are tried in order of how well their output survives markup
churn, not by brevity: a test id outlives a CSS refactor, a positional
XPath does not. Every candidate is re-validated against the document, since
a heuristically good selector (a semantic class, say) can still match
several elements on a given page.

Two fidelity levels share one chain. Each strategy is tagged with the
fidelity it belongs to; ``smart=False`` reproduces the plain chain
(joined class list, unbounded id/nth-of-type path, indexed XPath).

Example:
    >>> snap = DomSnapshot.from_html('<button data-testid="save" id="s">Save</button>')
    >>> SelectorEngine(snap).best_locator(snap.find("button")).value
    '[data-testid="save"]'
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Tuple

from lxml import etree

from stepforge.dom.snapshot import DomSnapshot
from stepforge.selectors.locator import (
    CSS_CHILD_COMBINATOR,
    Locator,
    LocatorKind,
    css_escape,
    has_quote,
    meaningful_class,
    split_classes,
)

logger = logging.getLogger(__name__)

TEST_ATTRIBUTES = ("data-testid", "data-test-id", "data-test", "data-qa")

# Attributes usable as a CSS path segment when no id or class is available.
PATH_ATTRIBUTES = TEST_ATTRIBUTES + ("role", "aria-label")

XPATH_ATTRIBUTES = ("name", "type", "value", "title", "alt", "href", "src")

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")

# Tags whose visible text identifies them.
TEXT_TAGS = frozenset(("button", "a", "label", "span", "div") + HEADING_TAGS)

XPATH_TEXT_TAGS = TEXT_TAGS | {"li", "td", "th"}

# Elements that expose a ``name`` property.
NAMED_TAGS = frozenset((
    "input", "select", "textarea", "button", "form",
    "iframe", "fieldset", "output", "object", "map",
))

CONTEXT_PARENT_TAGS = ("li", "div", "tr")

_Candidate = Optional[Tuple[LocatorKind, str]]


class Fidelity(str, Enum):
    """Which engine configuration a strategy belongs to."""
    BOTH = "both"
    SMART = "smart"
    SIMPLE = "simple"


def count_matches(snapshot: DomSnapshot, locator: Locator) -> int:
    """Number of elements a locator finds in the snapshot's document."""
    kind, value = locator.kind, locator.value
    if kind == LocatorKind.ID:
        return snapshot.count_css("#" + css_escape(value))
    if kind == LocatorKind.NAME:
        if '"' in value:
            return 0
        return snapshot.count_css(f'[name="{value}"]')
    if kind == LocatorKind.XPATH:
        return snapshot.count_xpath(value)
    if kind == LocatorKind.CLASS_NAME:
        return snapshot.count_css("." + css_escape(value))
    return snapshot.count_css(value)


class SelectorEngine:
    """
    Produce one locator per element from an ordered strategy chain.

    ``best_locator`` never raises: a failing strategy is skipped, and the
    bare tag name is returned when nothing unique is found.

    Args:
        snapshot: Document the element belongs to
        smart: Use the full-fidelity chain
        css_path_depth: Ancestor levels in a smart structural CSS path
        max_text_length: Text at least this long is not used in a locator
    """

    def __init__(
        self,
        snapshot: DomSnapshot,
        smart: bool = True,
        css_path_depth: int = 4,
        max_text_length: int = 50,
    ):
        self._snapshot = snapshot
        self.smart = smart
        self._css_path_depth = css_path_depth
        self._max_text_length = max_text_length

        chain: List[Tuple[str, Callable[[etree._Element], _Candidate], Fidelity]] = [
            ("test-attribute", self._by_test_attribute, Fidelity.BOTH),
            ("id", self._by_id, Fidelity.BOTH),
            ("name", self._by_name, Fidelity.BOTH),
            ("text", self._by_text, Fidelity.BOTH),
            ("label-context", self._by_label_context, Fidelity.BOTH),
            ("aria", self._by_aria, Fidelity.SMART),
            ("placeholder", self._by_placeholder, Fidelity.BOTH),
            ("class", self._by_meaningful_class, Fidelity.SMART),
            ("class-list", self._by_class_list, Fidelity.SIMPLE),
            ("css-path", self._by_css_path, Fidelity.BOTH),
            ("xpath", self._by_rich_xpath, Fidelity.SMART),
            ("indexed-xpath", self._by_indexed_xpath, Fidelity.SIMPLE),
        ]
        active = Fidelity.SMART if smart else Fidelity.SIMPLE
        self._chain = [
            (name, strategy) for name, strategy, scope in chain
            if scope in (Fidelity.BOTH, active)
        ]

    @property
    def strategy_names(self) -> List[str]:
        return [name for name, _ in self._chain]

    def best_locator(self, el: Optional[etree._Element]) -> Locator:
        """
        Return the first unique locator the chain yields for ``el``.

        Falls back to ``TagName`` (possibly not unique) when no strategy
        applies or every candidate matches more than one element.
        """
        if el is None or not isinstance(el.tag, str):
            return Locator(LocatorKind.TAG_NAME, "unknown", "fallback")

        for name, strategy in self._chain:
            try:
                candidate = strategy(el)
            except Exception as e:
                # Detached nodes and odd markup must not break recording
                logger.debug(f"Selector strategy {name} failed on <{el.tag}>: {e}")
                continue
            if candidate is not None:
                kind, value = candidate
                return Locator(kind, value, name)

        return Locator(LocatorKind.TAG_NAME, el.tag, "tag-name")

    # ------------------------------------------------------------------
    # Uniqueness
    # ------------------------------------------------------------------

    def _unique_css(self, selector: Optional[str]) -> bool:
        return bool(selector) and self._snapshot.count_css(selector) == 1

    def _unique_xpath(self, expr: Optional[str]) -> bool:
        return bool(expr) and self._snapshot.count_xpath(expr) == 1

    def _usable_text(self, text: str) -> bool:
        return bool(text) and len(text) < self._max_text_length and not has_quote(text)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _by_test_attribute(self, el: etree._Element) -> _Candidate:
        for attr in TEST_ATTRIBUTES:
            selector = _attribute_selector(attr, el.get(attr))
            if self._unique_css(selector):
                return LocatorKind.CSS_SELECTOR, selector
        return None

    def _by_id(self, el: etree._Element) -> _Candidate:
        element_id = el.get("id")
        if element_id and self._unique_css("#" + css_escape(element_id)):
            return LocatorKind.ID, element_id
        return None

    def _by_name(self, el: etree._Element) -> _Candidate:
        if el.tag not in NAMED_TAGS:
            return None
        name = el.get("name")
        if name and self._unique_css(_attribute_selector("name", name)):
            return LocatorKind.NAME, name
        return None

    def _by_text(self, el: etree._Element) -> _Candidate:
        if el.tag not in TEXT_TAGS:
            return None
        return self._text_xpath(el)

    def _text_xpath(self, el: etree._Element) -> _Candidate:
        text = self._snapshot.text_of(el)
        if not self._usable_text(text):
            return None
        xpath = f'//{el.tag}[normalize-space()="{text}"]'
        if self._unique_xpath(xpath):
            return LocatorKind.XPATH, xpath
        return None

    def _by_label_context(self, el: etree._Element) -> _Candidate:
        """Find inputs and buttons through the label or list item around them."""
        if el.tag not in ("input", "button"):
            return None

        sibling = el.getnext()
        while sibling is not None:
            if sibling.tag == "label":
                text = self._snapshot.text_of(sibling)
                if text and not has_quote(text):
                    xpath = f'//label[normalize-space()="{text}"]/preceding-sibling::{el.tag}'
                    if self._unique_xpath(xpath):
                        return LocatorKind.XPATH, xpath
            sibling = sibling.getnext()

        parent = self._snapshot.parent(el)
        if parent is not None and parent.tag in CONTEXT_PARENT_TAGS:
            text = self._snapshot.text_of(parent)
            if self._usable_text(text):
                xpath = f'//{parent.tag}[contains(., "{text}")]//{el.tag}'
                if self._unique_xpath(xpath):
                    return LocatorKind.XPATH, xpath
        return None

    def _by_aria(self, el: etree._Element) -> _Candidate:
        aria_label = el.get("aria-label")
        selector = _attribute_selector("aria-label", aria_label)
        if self._unique_css(selector):
            return LocatorKind.CSS_SELECTOR, selector

        role = el.get("role")
        role_selector = _attribute_selector("role", role)
        if selector and role_selector:
            combined = role_selector + selector
            if self._unique_css(combined):
                return LocatorKind.CSS_SELECTOR, combined
        return None

    def _by_placeholder(self, el: etree._Element) -> _Candidate:
        selector = _attribute_selector("placeholder", el.get("placeholder"))
        if self._unique_css(selector):
            return LocatorKind.CSS_SELECTOR, selector
        return None

    def _by_meaningful_class(self, el: etree._Element) -> _Candidate:
        class_name = meaningful_class(split_classes(el.get("class")))
        if not class_name:
            return None
        selector = "." + css_escape(class_name)
        if self._unique_css(selector):
            return LocatorKind.CSS_SELECTOR, selector
        selector = el.tag + selector
        if self._unique_css(selector):
            return LocatorKind.CSS_SELECTOR, selector
        return None

    def _by_class_list(self, el: etree._Element) -> _Candidate:
        classes = split_classes(el.get("class"))
        if not classes:
            return None
        selector = "." + ".".join(css_escape(c) for c in classes)
        if self._unique_css(selector):
            return LocatorKind.CSS_SELECTOR, selector
        return None

    def _by_css_path(self, el: etree._Element) -> _Candidate:
        path = self.css_path(el)
        if self._unique_css(path):
            return LocatorKind.CSS_SELECTOR, path
        return None

    def _by_rich_xpath(self, el: etree._Element) -> _Candidate:
        tag = el.tag
        element_id = el.get("id")
        if element_id and '"' not in element_id:
            xpath = f'//*[@id="{element_id}"]'
            if self._unique_xpath(xpath):
                return LocatorKind.XPATH, xpath

        if tag in XPATH_TEXT_TAGS:
            found = self._text_xpath(el)
            if found:
                return found

        for attr in XPATH_ATTRIBUTES:
            value = el.get(attr)
            if value and len(value) < 100 and '"' not in value:
                xpath = f'//{tag}[@{attr}="{value}"]'
                if self._unique_xpath(xpath):
                    return LocatorKind.XPATH, xpath

        class_name = meaningful_class(split_classes(el.get("class")))
        if class_name and '"' not in class_name:
            xpath = f'//{tag}[contains(@class, "{class_name}")]'
            if self._unique_xpath(xpath):
                return LocatorKind.XPATH, xpath

        parent = self._snapshot.parent(el)
        if parent is not None:
            # List-item pattern: nth same-tag child of a container known by its text
            parent_text = self._snapshot.text_of(parent)
            same_tag = [c for c in self._snapshot.children(parent) if c.tag == tag]
            if len(same_tag) > 1 and parent_text and len(parent_text) < 100 and '"' not in parent_text:
                position = same_tag.index(el) + 1
                xpath = f'//*[contains(text(), "{parent_text[:30]}")]//{tag}[{position}]'
                if self._unique_xpath(xpath):
                    return LocatorKind.XPATH, xpath

            parent_id = parent.get("id")
            if parent_id and '"' not in parent_id:
                position = same_tag.index(el) + 1
                xpath = f'//*[@id="{parent_id}"]/{tag}[{position}]'
                if self._unique_xpath(xpath):
                    return LocatorKind.XPATH, xpath

        xpath = self.absolute_xpath(el)
        if self._unique_xpath(xpath):
            return LocatorKind.XPATH, xpath
        return None

    def _by_indexed_xpath(self, el: etree._Element) -> _Candidate:
        xpath = self.indexed_xpath(el)
        if self._unique_xpath(xpath):
            return LocatorKind.XPATH, xpath
        return None

    # ------------------------------------------------------------------
    # Structural paths
    # ------------------------------------------------------------------

    def css_path(self, el: etree._Element) -> str:
        """
        Structural CSS path from the element upwards.

        Smart mode stops after ``css_path_depth`` levels and prefers, per
        level, id > meaningful class > test/ARIA attribute > nth-of-type.
        Simple mode climbs to the root using only ids and nth-of-type.
        """
        segments: List[str] = []
        current: Optional[etree._Element] = el
        depth = 0

        while current is not None:
            if self.smart and depth >= self._css_path_depth:
                break
            tag = current.tag
            element_id = current.get("id")
            if element_id:
                segments.insert(0, f"{tag}#{css_escape(element_id)}")
                break

            segment = None
            if self.smart:
                class_name = meaningful_class(split_classes(current.get("class")))
                if class_name:
                    segment = f"{tag}.{css_escape(class_name)}"
                else:
                    for attr in PATH_ATTRIBUTES:
                        attribute = _attribute_selector(attr, current.get(attr))
                        if attribute:
                            segment = tag + attribute
                            break

            if segment is None:
                segment = tag
                nth = self._nth_of_type(current)
                if nth != 1:
                    segment += f":nth-of-type({nth})"

            segments.insert(0, segment)
            depth += 1
            current = self._snapshot.parent(current)

        return CSS_CHILD_COMBINATOR.join(segments)

    def absolute_xpath(self, el: etree._Element) -> str:
        """Indexed path from the document root, e.g. ``/html/body/div[2]/a[1]``."""
        steps: List[str] = []
        current: Optional[etree._Element] = el
        while current is not None:
            parent = self._snapshot.parent(current)
            if parent is None:
                steps.insert(0, current.tag)
                break
            steps.insert(0, f"{current.tag}[{self._nth_of_type(current)}]")
            current = parent
        return "/" + "/".join(steps)

    def indexed_xpath(self, el: etree._Element) -> str:
        """Indexed path anchored at the nearest ancestor with an id."""
        steps: List[str] = []
        current: Optional[etree._Element] = el
        while current is not None:
            element_id = current.get("id")
            if element_id and '"' not in element_id:
                anchor = f'//*[@id="{element_id}"]'
                return anchor + ("/" + "/".join(steps) if steps else "")
            parent = self._snapshot.parent(current)
            if parent is None:
                steps.insert(0, current.tag)
                return "/" + "/".join(steps)
            steps.insert(0, f"{current.tag}[{self._nth_of_type(current)}]")
            current = parent
        return "/" + "/".join(steps)

    def _nth_of_type(self, el: etree._Element) -> int:
        nth = 1
        sibling = el.getprevious()
        while sibling is not None:
            if sibling.tag == el.tag:
                nth += 1
            sibling = sibling.getprevious()
        return nth


def _attribute_selector(attr: str, value: Optional[str]) -> Optional[str]:
    """``[attr="value"]``, or None when the value is missing or cannot be quoted."""
    if value is None or '"' in value or "\\" in value:
        return None
    return f'[{attr}="{value}"]'
