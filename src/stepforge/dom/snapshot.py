"""
DOM Snapshot - A queryable copy of the live page document.

The in-page listener serialises the document (including open shadow roots
and live form state) whenever an interaction happens. This module turns that
payload into an lxml tree so locator candidates can be validated with real
CSS and XPath queries, exactly as the page would evaluate them.

Each element carries the integer id the page assigned to it, so host-side
caches can follow the same element across snapshots.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import lxml.html
from cssselect import SelectorError
from lxml import etree
from lxml.cssselect import CSSSelector

from stepforge.exceptions import SnapshotError

logger = logging.getLogger(__name__)

# Reserved attribute holding the page-assigned element id.
RID_ATTR = "data-sf-rid"

# Detached container holding the top-level nodes of one shadow root.
SHADOW_ROOT_TAG = "sf-shadow-root"

# Elements whose text never reaches the user.
_TEXTLESS_TAGS = {"script", "style", "noscript", "template"}

_html_parser = lxml.html.HTMLParser()

_XPATH_SPACE = re.compile(r"[ \t\r\n]+")

# Attribute names kept in snapshots; framework names like "@click" are skipped.
_ATTR_NAME = re.compile(r"^[A-Za-z_:][-A-Za-z0-9_:.]*$")


@dataclass
class Rect:
    """Viewport bounding box of an element."""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def distance_to(self, point: Tuple[float, float]) -> float:
        """Euclidean distance from this box's center to a point."""
        cx, cy = self.center
        return math.hypot(cx - point[0], cy - point[1])

    @classmethod
    def from_list(cls, values: Optional[List[float]]) -> "Rect":
        if not values or len(values) != 4:
            return cls()
        return cls(*(float(v) for v in values))


@dataclass
class ElementState:
    """Live properties that markup alone does not carry."""
    rid: int
    rect: Rect = field(default_factory=Rect)
    value: Optional[str] = None
    checked: Optional[bool] = None
    selected_text: Optional[str] = None


def element_type(el: etree._Element) -> Optional[str]:
    """
    Return the element's ``type`` property as the browser reports it.

    Inputs default to "text", buttons to "submit"; elements without the
    property return None.
    """
    tag = el.tag
    if tag == "input":
        return (el.get("type") or "text").strip().lower()
    if tag == "button":
        return (el.get("type") or "submit").strip().lower()
    if tag == "select":
        return "select-multiple" if el.get("multiple") is not None else "select-one"
    if tag == "textarea":
        return "textarea"
    return None


def is_toggle_input(el: Optional[etree._Element]) -> bool:
    """True for ``<input type=checkbox|radio>``."""
    return el is not None and el.tag == "input" and element_type(el) in ("checkbox", "radio")


def is_toggle_control(el: Optional[etree._Element]) -> bool:
    """Native checkbox/radio inputs and their ARIA counterparts."""
    if el is None:
        return False
    if is_toggle_input(el):
        return True
    return (el.get("role") or "").lower() in ("checkbox", "radio")


def normalize_space(text: Optional[str]) -> str:
    """Collapse whitespace like XPath ``normalize-space()``."""
    if not text:
        return ""
    return _XPATH_SPACE.sub(" ", text).strip(" ")


class DomSnapshot:
    """
    Queryable copy of one document at one instant.

    Queries run against the light DOM only: like ``document.querySelectorAll``
    they never descend into shadow roots. Shadow content is reachable through
    ``shadow_children`` for target resolution.

    Example:
        >>> snap = DomSnapshot.from_html('<button id="go">Go</button>')
        >>> snap.count_css("#go")
        1
    """

    def __init__(
        self,
        root: etree._Element,
        states: Dict[int, ElementState],
        shadow_roots: Optional[Dict[int, etree._Element]] = None,
        url: str = "",
        active_rid: Optional[int] = None,
    ):
        self.root = root
        self.url = url
        self._states = states
        self._shadow_roots = shadow_roots or {}
        self._active_rid = active_rid
        self._by_rid: Dict[int, etree._Element] = {}

        for tree_root in [root, *self._shadow_roots.values()]:
            for el in tree_root.iter():
                rid = el.get(RID_ATTR) if isinstance(el.tag, str) else None
                if rid is not None:
                    self._by_rid[int(rid)] = el

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "DomSnapshot":
        """
        Build a snapshot from the in-page serialiser's payload.

        Payload shape::

            {"url": str, "focused": rid | null, "root": node}
            node = {"rid": int, "tag": str, "attrs": {..}, "rect": [x, y, w, h],
                    "value"?: str, "checked"?: bool, "selectedText"?: str,
                    "children": [node | str], "shadow"?: [node | str]}

        Raises:
            SnapshotError: If the payload has no usable root element
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("root"), dict):
            raise SnapshotError("Snapshot payload has no root element")

        states: Dict[int, ElementState] = {}
        shadow_roots: Dict[int, etree._Element] = {}

        def build(node: Dict[str, Any]) -> etree._Element:
            tag = str(node.get("tag") or "unknown").lower()
            try:
                el = _html_parser.makeelement(tag)
            except ValueError:
                el = _html_parser.makeelement("sf-unknown")
            for name, value in (node.get("attrs") or {}).items():
                if name == RID_ATTR:
                    continue
                if not _ATTR_NAME.match(str(name)):
                    logger.debug(f"Skipping attribute {name!r} on <{tag}>")
                    continue
                try:
                    el.set(name, "" if value is None else str(value))
                except (ValueError, TypeError):
                    logger.debug(f"Skipping attribute {name!r} on <{tag}>")

            rid = node.get("rid")
            if rid is not None:
                rid = int(rid)
                el.set(RID_ATTR, str(rid))
                states[rid] = ElementState(
                    rid=rid,
                    rect=Rect.from_list(node.get("rect")),
                    value=node.get("value"),
                    checked=node.get("checked"),
                    selected_text=node.get("selectedText"),
                )

            append_children(el, node.get("children") or [])

            shadow = node.get("shadow")
            if shadow is not None and rid is not None:
                container = _html_parser.makeelement(SHADOW_ROOT_TAG)
                append_children(container, shadow)
                shadow_roots[rid] = container
            return el

        def append_children(parent: etree._Element, children: List[Any]) -> None:
            for child in children:
                if isinstance(child, str):
                    if len(parent):
                        last = parent[-1]
                        last.tail = (last.tail or "") + child
                    else:
                        parent.text = (parent.text or "") + child
                elif isinstance(child, dict):
                    parent.append(build(child))

        try:
            root = build(payload["root"])
        except (TypeError, ValueError, AttributeError) as e:
            raise SnapshotError("Malformed snapshot payload", {"error": str(e)}) from e

        focused = payload.get("focused")
        return cls(
            root=root,
            states=states,
            shadow_roots=shadow_roots,
            url=str(payload.get("url") or ""),
            active_rid=int(focused) if focused is not None else None,
        )

    @classmethod
    def from_html(cls, html: str, url: str = "about:blank") -> "DomSnapshot":
        """
        Build a snapshot from markup.

        Element ids are assigned in document order starting at 1. Live state
        comes from attributes (``value``, ``checked``, ``selected``); bounding
        boxes start empty and can be set through ``state(el).rect``.
        Declarative shadow roots (``<template shadowrootmode>``) become
        shadow content of their parent.
        """
        root = lxml.html.document_fromstring(html)

        shadow_templates = [
            t for t in root.iter("template")
            if t.get("shadowrootmode") or t.get("shadowroot")
        ]

        states: Dict[int, ElementState] = {}
        shadow_roots: Dict[int, etree._Element] = {}
        counter = 0

        def assign(tree_root: etree._Element) -> None:
            nonlocal counter
            for el in tree_root.iter():
                if not isinstance(el.tag, str) or el.tag == SHADOW_ROOT_TAG:
                    continue
                counter += 1
                el.set(RID_ATTR, str(counter))
                states[counter] = ElementState(rid=counter, **_markup_state(el))

        # Detach shadow templates before numbering so the light DOM matches
        # what the page would serialise.
        hosts = []
        for template in shadow_templates:
            host = template.getparent()
            if host is None:
                continue
            container = _html_parser.makeelement(SHADOW_ROOT_TAG)
            container.text = template.text
            for child in list(template):
                container.append(child)
            _remove_keep_tail(template)
            hosts.append((host, container))

        for el in list(root.iter(*_TEXTLESS_TAGS)):
            el.text = None
            for child in list(el):
                el.remove(child)

        assign(root)
        for host, container in hosts:
            assign(container)
            shadow_roots[int(host.get(RID_ATTR))] = container

        return cls(root=root, states=states, shadow_roots=shadow_roots, url=url)

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------

    def get(self, rid: Optional[int]) -> Optional[etree._Element]:
        """Element with the given page id, or None if not in this snapshot."""
        if rid is None:
            return None
        return self._by_rid.get(int(rid))

    def rid_of(self, el: etree._Element) -> Optional[int]:
        rid = el.get(RID_ATTR)
        return int(rid) if rid is not None else None

    def state(self, el: etree._Element) -> ElementState:
        """Live state of an element (a blank state if the page sent none)."""
        rid = self.rid_of(el)
        if rid is None:
            return ElementState(rid=-1)
        if rid not in self._states:
            self._states[rid] = ElementState(rid=rid)
        return self._states[rid]

    @property
    def body(self) -> Optional[etree._Element]:
        return self.root.find("body")

    @property
    def active_element(self) -> Optional[etree._Element]:
        return self.get(self._active_rid)

    def find(self, css: str) -> Optional[etree._Element]:
        """First light-DOM element matching a CSS selector."""
        matches = self.query_all_css(css)
        return matches[0] if matches else None

    def parent(self, el: etree._Element) -> Optional[etree._Element]:
        """Parent element; None at the document root and at a shadow tree's top."""
        parent = el.getparent()
        if parent is None or parent.tag == SHADOW_ROOT_TAG:
            return None
        return parent

    def children(self, el: etree._Element) -> List[etree._Element]:
        return [c for c in el if isinstance(c.tag, str)]

    def iter_descendants(self, el: etree._Element) -> Iterator[etree._Element]:
        """Light-DOM descendants in document order."""
        for node in el.iterdescendants():
            if isinstance(node.tag, str):
                yield node

    def shadow_children(self, el: etree._Element) -> List[etree._Element]:
        """Top-level elements of the element's open shadow root, if any."""
        rid = self.rid_of(el)
        container = self._shadow_roots.get(rid) if rid is not None else None
        if container is None:
            return []
        return self.children(container)

    def has_shadow_root(self, el: etree._Element) -> bool:
        rid = self.rid_of(el)
        return rid is not None and rid in self._shadow_roots

    def is_in_document(self, el: etree._Element) -> bool:
        """False for elements living inside a shadow tree."""
        return el.getroottree().getroot() is self.root

    def text_of(self, el: etree._Element) -> str:
        """
        Whitespace-normalised ``textContent``.

        Snapshots carry no layout, so text inside hidden descendants
        (visually-hidden spans, collapsed menus) counts as well, unlike
        ``innerText``. Text locators built from it are at worst stricter:
        they still match exactly one element in the snapshot.
        """
        return normalize_space("".join(el.itertext()))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query_all_css(self, css: str) -> List[etree._Element]:
        """All light-DOM matches of a CSS selector; invalid selectors match nothing."""
        try:
            return CSSSelector(css, translator="html")(self.root)
        except (SelectorError, etree.XPathError, ValueError) as e:
            logger.debug(f"Invalid CSS selector {css!r}: {e}")
            return []

    def count_css(self, css: str) -> int:
        return len(self.query_all_css(css))

    def count_xpath(self, expr: str) -> int:
        """Number of nodes an XPath selects; invalid expressions select nothing."""
        try:
            result = self.root.xpath(f"count({expr})")
        except (etree.XPathError, ValueError) as e:
            logger.debug(f"Invalid XPath {expr!r}: {e}")
            return 0
        return int(result)

    def query_all_xpath(self, expr: str) -> List[etree._Element]:
        try:
            result = self.root.xpath(expr)
        except (etree.XPathError, ValueError) as e:
            logger.debug(f"Invalid XPath {expr!r}: {e}")
            return []
        if not isinstance(result, list):
            return []
        return [node for node in result if isinstance(node, etree._Element)]


def _markup_state(el: etree._Element) -> Dict[str, Any]:
    """Derive live state from attributes for markup-built snapshots."""
    state: Dict[str, Any] = {}
    tag = el.tag
    if tag == "input":
        kind = element_type(el)
        if kind in ("checkbox", "radio"):
            state["checked"] = el.get("checked") is not None
            state["value"] = el.get("value", "on")
        else:
            state["value"] = el.get("value", "")
    elif tag == "textarea":
        state["value"] = el.text or ""
    elif tag == "select":
        options = list(el.iter("option"))
        chosen = next((o for o in options if o.get("selected") is not None), None)
        if chosen is None and options:
            chosen = options[0]
        if chosen is not None:
            state["value"] = chosen.get("value", normalize_space(chosen.text_content()))
            state["selected_text"] = normalize_space(chosen.text_content())
    return state


def _remove_keep_tail(el: etree._Element) -> None:
    """Remove an element without losing the text that follows it."""
    parent = el.getparent()
    if el.tail:
        previous = el.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + el.tail
        else:
            parent.text = (parent.text or "") + el.tail
    parent.remove(el)
