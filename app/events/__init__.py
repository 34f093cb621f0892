"""Error events shared across the capture coach."""

from app.events.error_bus import (
    ErrorCategory,
    ErrorEvent,
    ErrorEventBus,
    ErrorSeverity,
    get_error_bus,
    publish_error,
)

__all__ = [
    "ErrorCategory",
    "ErrorEvent",
    "ErrorEventBus",
    "ErrorSeverity",
    "get_error_bus",
    "publish_error",
]
