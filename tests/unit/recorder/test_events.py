"""
Tests for parsing listener messages.
"""

import pytest

from stepforge.exceptions import SnapshotError
from stepforge.recorder import EventType, RawEvent


def test_input_message():
    event = RawEvent.from_message({
        "type": "input", "target": 7, "timestamp": 12.5,
        "url": "https://a.test/", "path": [7, 6, "5"], "value": "ab",
    })
    assert event.type == EventType.INPUT
    assert event.path == [7, 6, 5]
    assert event.snapshot is None
    assert event.click_point is None


def test_click_message_with_snapshot():
    event = RawEvent.from_message({
        "type": "click", "target": 3, "x": 10, "y": 20,
        "snapshot": {
            "url": "https://a.test/",
            "root": {"rid": 1, "tag": "HTML", "children": [
                {"rid": 2, "tag": "BODY", "children": [
                    {"rid": 3, "tag": "BUTTON", "children": ["Go"]},
                ]},
            ]},
        },
    })
    assert event.click_point == (10.0, 20.0)
    assert event.snapshot.get(3).tag == "button"


@pytest.mark.parametrize("data", [
    None,
    {},
    {"type": "click", "target": "not-a-number"},
    {"type": "click", "snapshot": {"root": None}},
])
def test_malformed_messages(data):
    with pytest.raises(SnapshotError):
        RawEvent.from_message(data)
