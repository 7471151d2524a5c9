"""
Selectors module - Locator model and the selector inference engine.
"""

from stepforge.selectors.locator import (
    Locator,
    LocatorKind,
    EMITTED_KINDS,
    css_escape,
    is_meaningful_class,
    meaningful_class,
)
from stepforge.selectors.engine import SelectorEngine, Fidelity, count_matches

__all__ = [
    "Locator",
    "LocatorKind",
    "EMITTED_KINDS",
    "css_escape",
    "is_meaningful_class",
    "meaningful_class",
    "SelectorEngine",
    "Fidelity",
    "count_matches",
]
