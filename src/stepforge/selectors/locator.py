"""
Locators - the (kind, value) pairs that re-find an element at replay time.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional


class LocatorKind(str, Enum):
    """
    Query mechanisms a locator value is written for.

    The recorder only ever emits ID, NAME, CSS_SELECTOR, XPATH and TAG_NAME.
    The remaining kinds exist so replay-side code can parse every kind
    string it may encounter.
    """
    ID = "Id"
    NAME = "Name"
    CSS_SELECTOR = "CssSelector"
    XPATH = "XPath"
    TAG_NAME = "TagName"
    CLASS_NAME = "ClassName"
    LINK_TEXT = "LinkText"
    PARTIAL_LINK_TEXT = "PartialLinkText"

    @classmethod
    def parse(cls, value: str) -> Optional["LocatorKind"]:
        """Case-insensitive lookup; None for unrecognised kinds."""
        if not value:
            return None
        lowered = value.lower()
        for kind in cls:
            if kind.value.lower() == lowered:
                return kind
        return None


EMITTED_KINDS = frozenset({
    LocatorKind.ID,
    LocatorKind.NAME,
    LocatorKind.CSS_SELECTOR,
    LocatorKind.XPATH,
    LocatorKind.TAG_NAME,
})

# Joins segments of a structural CSS path.
CSS_CHILD_COMBINATOR = " > "


@dataclass(frozen=True)
class Locator:
    """
    A way to find one element again.

    Attributes:
        kind: How ``value`` must be interpreted
        value: Bare identifier (Id, Name, TagName) or an executable query
        strategy: Name of the inference step that produced it (diagnostic only)
    """
    kind: LocatorKind
    value: str
    strategy: str = field(default="", compare=False)

    @property
    def key(self) -> str:
        """Stable string form, used to compare locators across events."""
        return f"{self.kind.value}:{self.value}"

    def is_simple(self) -> bool:
        """
        True when the locator can be trusted over a nested control.

        Ids, names and XPaths qualify, as do CSS selectors that are not a
        structural path (no child combinator).
        """
        if self.kind in (LocatorKind.ID, LocatorKind.NAME, LocatorKind.XPATH):
            return True
        if self.kind == LocatorKind.CSS_SELECTOR:
            return CSS_CHILD_COMBINATOR.strip() not in self.value
        return False

    def __str__(self) -> str:
        return self.key


# ----------------------------------------------------------------------
# Class-name heuristics
# ----------------------------------------------------------------------

GENERATED_CLASS_PREFIXES = ("atm_", "css-", "style-")

_LETTER_DIGITS = re.compile(r"^[a-z]\d+$")


def is_meaningful_class(class_name: str) -> bool:
    """
    Check whether a class name looks hand-written rather than generated.

    Rejects CSS-in-JS/atomic prefixes, single-letter-plus-digits names,
    and names shorter than 3 or longer than 29 characters.
    """
    if not class_name:
        return False
    if class_name.startswith(GENERATED_CLASS_PREFIXES):
        return False
    if _LETTER_DIGITS.match(class_name):
        return False
    return 2 < len(class_name) < 30


def meaningful_class(classes: Iterable[str]) -> Optional[str]:
    """First meaningful class of a class list, or None."""
    for name in classes:
        if is_meaningful_class(name):
            return name
    return None


def split_classes(class_attr: Optional[str]) -> list:
    if not class_attr:
        return []
    return [c for c in class_attr.split() if c]


# ----------------------------------------------------------------------
# Escaping
# ----------------------------------------------------------------------

def css_escape(ident: str) -> str:
    """
    Escape a string for use as a CSS identifier (``CSS.escape`` semantics).

    Example:
        >>> css_escape("1st")
        '\\\\31 st'
    """
    result = []
    length = len(ident)
    for index, char in enumerate(ident):
        code = ord(char)
        if code == 0:
            result.append("�")
        elif (
            0x1 <= code <= 0x1F or code == 0x7F
            or (index == 0 and char.isdigit() and char.isascii())
            or (index == 1 and char.isdigit() and char.isascii() and ident[0] == "-")
        ):
            result.append(f"\\{code:x} ")
        elif index == 0 and char == "-" and length == 1:
            result.append("\\-")
        elif code >= 0x80 or char in "-_" or char.isalnum() and char.isascii():
            result.append(char)
        else:
            result.append("\\" + char)
    return "".join(result)


def has_quote(text: str) -> bool:
    """Quotes cannot be embedded safely in the generated query strings."""
    return '"' in text or "'" in text
