"""Centralized error event bus for non-fatal capture coach failures.

Components report degraded conditions (no video source, encode failures,
dropped frames) here; the UI subscribes to surface them to the operator.
"""

from __future__ import annotations

import threading
import time
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from log_config.logger import get_logger

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""

    CAMERA = "camera"
    ANALYSIS = "analysis"
    CAPTURE = "capture"
    ORIENTATION = "orientation"
    DETECTION = "detection"
    CONFIG = "config"
    SYSTEM = "system"


_LOG_LEVELS = {
    ErrorSeverity.INFO: "INFO",
    ErrorSeverity.WARNING: "WARNING",
    ErrorSeverity.ERROR: "ERROR",
    ErrorSeverity.CRITICAL: "CRITICAL",
}


@dataclass
class ErrorEvent:
    """Error event with context information."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    source: str
    timestamp: float = field(default_factory=time.time)
    exception: Optional[Exception] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        exc_info = f" ({self.exception.__class__.__name__})" if self.exception else ""
        return f"[{self.severity.value.upper()}] {self.category.value}/{self.source}: {self.message}{exc_info}"


Subscriber = Callable[[ErrorEvent], None]


class ErrorEventBus:
    """Publish-subscribe bus for operator-facing failures.

    Keeps the last ``max_history`` events and a running count per category.
    Subscribers registered without a category receive every event.
    """

    def __init__(self, max_history: int = 100):
        self._lock = threading.Lock()
        self._subscribers: Dict[Optional[ErrorCategory], List[Subscriber]] = defaultdict(list)
        self._history: Deque[ErrorEvent] = deque(maxlen=max_history)
        self._counts: Counter = Counter()

    def subscribe(self, callback: Subscriber, category: Optional[ErrorCategory] = None) -> None:
        with self._lock:
            self._subscribers[category].append(callback)

    def unsubscribe(self, callback: Subscriber, category: Optional[ErrorCategory] = None) -> None:
        with self._lock:
            listeners = self._subscribers.get(category, [])
            if callback in listeners:
                listeners.remove(callback)

    def publish(self, event: ErrorEvent) -> None:
        """Record and log ``event``, then notify subscribers outside the lock."""
        with self._lock:
            self._history.append(event)
            self._counts[event.category] += 1
            targets = list(self._subscribers.get(event.category, [])) + list(self._subscribers.get(None, []))

        logger.log(_LOG_LEVELS[event.severity], str(event))

        for callback in targets:
            try:
                callback(event)
            except Exception as e:
                name = getattr(callback, "__name__", repr(callback))
                logger.opt(exception=e).error(f"Error subscriber {name} failed: {e}")

    def get_history(self, category: Optional[ErrorCategory] = None, limit: int = 100) -> List[ErrorEvent]:
        with self._lock:
            history = list(self._history)
        if category is not None:
            history = [e for e in history if e.category == category]
        return history[-limit:]

    def get_error_counts(self) -> Dict[ErrorCategory, int]:
        with self._lock:
            return dict(self._counts)

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
            self._counts.clear()


# Global error event bus instance
_error_bus: Optional[ErrorEventBus] = None
_bus_lock = threading.Lock()


def get_error_bus() -> ErrorEventBus:
    """Get global error event bus instance."""
    global _error_bus
    if _error_bus is None:
        with _bus_lock:
            if _error_bus is None:
                _error_bus = ErrorEventBus()
                logger.debug("Created global error event bus")
    return _error_bus


def publish_error(
    category: ErrorCategory,
    severity: ErrorSeverity,
    message: str,
    source: str,
    exception: Optional[Exception] = None,
    bus: Optional[ErrorEventBus] = None,
    **metadata: Any,
) -> ErrorEvent:
    """Build an ``ErrorEvent`` and publish it (to the global bus unless ``bus`` is given)."""
    event = ErrorEvent(
        category=category,
        severity=severity,
        message=message,
        source=source,
        exception=exception,
        metadata=metadata,
    )
    (bus or get_error_bus()).publish(event)
    return event


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorEvent",
    "ErrorEventBus",
    "get_error_bus",
    "publish_error",
]
