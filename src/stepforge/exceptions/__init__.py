"""
Exceptions module - Custom exception hierarchy.

This module defines all custom exceptions used throughout StepForge,
providing clear error types for different failure scenarios.
"""

from stepforge.exceptions.base import (
    StepForgeError,
    ConfigurationError,
)
from stepforge.exceptions.recorder import (
    RecorderError,
    RecorderStateError,
    SnapshotError,
    ActionValidationError,
    TransportError,
)

__all__ = [
    # Base exceptions
    "StepForgeError",
    "ConfigurationError",
    # Recorder exceptions
    "RecorderError",
    "RecorderStateError",
    "SnapshotError",
    "ActionValidationError",
    "TransportError",
]
