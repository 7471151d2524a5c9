"""
Raw DOM events as the in-page listener reports them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from stepforge.dom import DomSnapshot
from stepforge.exceptions import SnapshotError


class EventType(str, Enum):
    """DOM events the listener subscribes to."""
    INPUT = "input"
    CLICK = "click"
    CHANGE = "change"
    BLUR = "blur"
    KEYDOWN = "keydown"


@dataclass
class RawEvent:
    """
    One captured DOM event.

    Attributes:
        type: DOM event name
        target: Page id of the event target
        timestamp_ms: Page clock at capture time
        url: Page URL at capture time
        path: Page ids from the target up to (excluding) ``<body>``
        key: Key name for keydown events
        client_x: Viewport x of the pointer, if any
        client_y: Viewport y of the pointer, if any
        value: Target value for input events
        snapshot: Document at capture time (absent for input events)
    """
    type: str
    target: Optional[int]
    timestamp_ms: float
    url: str = ""
    path: List[int] = field(default_factory=list)
    key: Optional[str] = None
    client_x: Optional[float] = None
    client_y: Optional[float] = None
    value: Optional[str] = None
    snapshot: Optional[DomSnapshot] = None

    @property
    def click_point(self) -> Optional[Tuple[float, float]]:
        if self.client_x is None or self.client_y is None:
            return None
        return (self.client_x, self.client_y)

    @classmethod
    def from_message(cls, data: Dict[str, Any]) -> "RawEvent":
        """
        Parse a listener message.

        Raises:
            SnapshotError: If the message or its snapshot is malformed
        """
        if not isinstance(data, dict) or not data.get("type"):
            raise SnapshotError("Event message has no type")

        snapshot = None
        if data.get("snapshot") is not None:
            snapshot = DomSnapshot.from_json(data["snapshot"])

        try:
            target = data.get("target")
            return cls(
                type=str(data["type"]),
                target=int(target) if target is not None else None,
                timestamp_ms=float(data.get("timestamp") or 0),
                url=str(data.get("url") or ""),
                path=[int(rid) for rid in data.get("path") or []],
                key=data.get("key"),
                client_x=_optional_float(data.get("x")),
                client_y=_optional_float(data.get("y")),
                value=data.get("value"),
                snapshot=snapshot,
            )
        except (TypeError, ValueError) as e:
            raise SnapshotError("Malformed event message", {"error": str(e)}) from e


def _optional_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None
