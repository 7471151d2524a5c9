"""
Utilities module - Common utility functions.
"""

from stepforge.utils.logging import setup_logging, JsonLineFormatter

__all__ = [
    "setup_logging",
    "JsonLineFormatter",
]
