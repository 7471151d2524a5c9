"""
Recorder-related exceptions.
"""

from stepforge.exceptions.base import StepForgeError


class RecorderError(StepForgeError):
    """Base exception for recording errors."""
    pass


class RecorderStateError(RecorderError):
    """
    Recorder used in the wrong state.
    
    Raised when starting a recorder that is already recording,
    or stopping one that is idle.
    """
    
    def __init__(self, message: str, is_recording: bool):
        super().__init__(message, {"is_recording": is_recording})
        self.is_recording = is_recording


class SnapshotError(RecorderError):
    """
    Malformed DOM snapshot.
    
    Raised when a snapshot payload sent by the page cannot be turned
    into a document (missing root, wrong shape).
    """
    pass


class ActionValidationError(RecorderError):
    """
    Action record violates its invariants.
    
    Raised when, for example, a non-navigate action has no locator.
    """
    
    def __init__(self, message: str, action_type: str | None = None):
        super().__init__(message, {"action_type": action_type})
        self.action_type = action_type


class TransportError(RecorderError):
    """
    Page-to-host message could not be delivered.
    
    Never escapes the best-effort sender; it exists so sinks can signal
    a torn-down channel explicitly.
    """
    pass
