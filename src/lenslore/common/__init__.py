"""Common utilities for LensLore."""

from lenslore.common.logging import get_logger, setup_logging
from lenslore.common.events import EventBus, Event
from lenslore.common.errors import LensLoreError, classify_error

__all__ = [
    "get_logger",
    "setup_logging",
    "EventBus",
    "Event",
    "LensLoreError",
    "classify_error",
]
