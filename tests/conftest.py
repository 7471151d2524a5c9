"""
Pytest configuration and fixtures.
"""

from typing import Any, Callable, Dict, List, Optional

import pytest


@pytest.fixture
def settings():
    """Provide test settings."""
    from stepforge.config import Settings, BrowserSettings, RecorderSettings

    return Settings(
        browser=BrowserSettings(headless=True),
        recorder=RecorderSettings(settle_delay_ms=0),
    )


@pytest.fixture
def snapshot_from():
    """Build a snapshot from a fragment of body markup."""
    from stepforge.dom import DomSnapshot

    def build(body: str, url: str = "https://app.test/") -> DomSnapshot:
        return DomSnapshot.from_html(f"<html><head></head><body>{body}</body></html>", url)

    return build


@pytest.fixture
def sent_actions():
    """List that a BestEffortSender fills."""
    return []


@pytest.fixture
def action_recorder(sent_actions):
    """Started reducer with no settle delay, delivering into ``sent_actions``."""
    from stepforge.config import RecorderSettings
    from stepforge.recorder import ActionRecorder, BestEffortSender

    recorder = ActionRecorder(RecorderSettings(settle_delay_ms=0), BestEffortSender(sent_actions.append))
    recorder.start()
    return recorder


def make_event(event_type: str, snapshot, el=None, timestamp_ms: float = 1000.0, **fields):
    """RawEvent targeting ``el`` inside ``snapshot``."""
    from stepforge.recorder import RawEvent

    target = snapshot.rid_of(el) if el is not None else None
    if event_type == "input":
        path = []
        current = el
        while current is not None and current.tag not in ("body", "html"):
            path.append(snapshot.rid_of(current))
            current = snapshot.parent(current)
        return RawEvent(
            type="input", target=target, timestamp_ms=timestamp_ms,
            url=snapshot.url, path=path, **fields,
        )
    return RawEvent(
        type=event_type, target=target, timestamp_ms=timestamp_ms,
        url=snapshot.url, snapshot=snapshot, **fields,
    )


class FakeFrame:
    def __init__(self, url: str):
        self.url = url


class FakePage:
    """
    Minimal stand-in for a Playwright page.

    ``evaluate`` answers snapshot requests with ``snapshot_payload`` and
    records every other script it is given.
    """

    def __init__(self, url: str = "about:blank"):
        self.url = url
        self.main_frame = FakeFrame(url)
        self.handlers: Dict[str, List[Callable]] = {}
        self.exposed: Dict[str, Callable] = {}
        self.evaluated: List[str] = []
        self.snapshot_payload: Optional[Dict[str, Any]] = None
        self.closed = False

    def on(self, event: str, handler: Callable) -> None:
        self.handlers.setdefault(event, []).append(handler)

    async def expose_function(self, name: str, callback: Callable) -> None:
        self.exposed[name] = callback

    async def evaluate(self, script: str, *args: Any) -> Any:
        if "__stepforgeSnapshot()" in script and "addEventListener" not in script:
            return self.snapshot_payload
        self.evaluated.append(script)
        return None

    async def goto(self, url: str) -> None:
        self.url = url
        self.main_frame.url = url
        for handler in self.handlers.get("framenavigated", []):
            handler(self.main_frame)

    def is_closed(self) -> bool:
        return self.closed


@pytest.fixture
def fake_page():
    return FakePage()


def todo_payload(url: str = "https://todo.test/", typed: str = "", checked: bool = False) -> Dict[str, Any]:
    """
    Listener snapshot of a small todo page.

    rids: 1 html, 2 head, 3 body, 4 text input, 5 ul,
    6/9 li, 7/10 checkbox, 8/11 label.
    """
    def item(rid: int, text: str, is_checked: bool, top: int) -> Dict[str, Any]:
        return {
            "rid": rid, "tag": "LI", "rect": [0, top, 300, 20], "children": [
                {"rid": rid + 1, "tag": "INPUT", "attrs": {"type": "checkbox"},
                 "rect": [4, top + 4, 12, 12], "checked": is_checked, "value": "on"},
                {"rid": rid + 2, "tag": "LABEL", "rect": [24, top, 200, 20], "children": [text]},
            ],
        }

    return {
        "url": url,
        "focused": 4,
        "root": {"rid": 1, "tag": "HTML", "children": [
            {"rid": 2, "tag": "HEAD"},
            {"rid": 3, "tag": "BODY", "children": [
                {"rid": 4, "tag": "INPUT", "attrs": {"data-testid": "text-input", "type": "text"},
                 "rect": [0, 0, 300, 30], "value": typed},
                {"rid": 5, "tag": "UL", "children": [
                    item(6, "write a letter", checked, 40),
                    item(9, "buy milk", False, 60),
                ]},
            ]},
        ]},
    }


@pytest.fixture(name="todo_payload")
def todo_payload_fixture():
    return todo_payload


@pytest.fixture(name="make_event")
def make_event_fixture():
    return make_event
