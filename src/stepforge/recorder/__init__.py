"""
Recorder module - Turns browser interactions into replayable actions.

Usage:
    from stepforge.recorder import BrowserRecorder

    recorder = BrowserRecorder()
    await recorder.start(page, "Login")
    session = await recorder.stop()
"""

from stepforge.recorder.actions import ActionRecord, ActionType
from stepforge.recorder.events import EventType, RawEvent
from stepforge.recorder.transport import BestEffortSender
from stepforge.recorder.reducer import ActionRecorder, ElementCaches
from stepforge.recorder.dedup import ActionDeduplicator
from stepforge.recorder.session import (
    RecordingSession,
    SessionController,
    SessionSummary,
    sanitize_feature_name,
    save_session,
)
from stepforge.recorder.browser_recorder import BrowserRecorder

__all__ = [
    "ActionRecord",
    "ActionType",
    "EventType",
    "RawEvent",
    "BestEffortSender",
    "ActionRecorder",
    "ElementCaches",
    "ActionDeduplicator",
    "RecordingSession",
    "SessionController",
    "SessionSummary",
    "sanitize_feature_name",
    "save_session",
    "BrowserRecorder",
]
