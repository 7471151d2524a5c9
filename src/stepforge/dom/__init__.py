"""
DOM module - Queryable snapshots of the recorded page.
"""

from stepforge.dom.snapshot import (
    DomSnapshot,
    ElementState,
    Rect,
    RID_ATTR,
    element_type,
    is_toggle_control,
    is_toggle_input,
    normalize_space,
)

__all__ = [
    "DomSnapshot",
    "ElementState",
    "Rect",
    "RID_ATTR",
    "element_type",
    "is_toggle_control",
    "is_toggle_input",
    "normalize_space",
]
