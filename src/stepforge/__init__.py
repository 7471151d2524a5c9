"""
StepForge - Record browser interactions as replayable UI actions.

A thin in-page listener forwards DOM events to Python, where a selector
engine infers durable locators and a reducer collapses the noisy event
stream into a minimal action log.

Example:
    >>> from stepforge import BrowserRecorder
    >>> recorder = BrowserRecorder()
    >>> await recorder.start(page, "Login", start_url="https://example.com")
    >>> session = await recorder.stop()
"""

__version__ = "0.1.0"

# Public API exports
from stepforge.config.settings import Settings
from stepforge.dom import DomSnapshot
from stepforge.selectors import Locator, LocatorKind, SelectorEngine
from stepforge.recorder import (
    ActionDeduplicator,
    ActionRecord,
    ActionRecorder,
    ActionType,
    BrowserRecorder,
    RecordingSession,
    SessionController,
)

__all__ = [
    "Settings",
    "DomSnapshot",
    "Locator",
    "LocatorKind",
    "SelectorEngine",
    "ActionDeduplicator",
    "ActionRecord",
    "ActionRecorder",
    "ActionType",
    "BrowserRecorder",
    "RecordingSession",
    "SessionController",
    "__version__",
]
