"""Device orientation sources delivering roll readings through owned subscriptions."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from log_config.logger import get_logger

logger = get_logger(__name__)

RollCallback = Callable[[Optional[float]], None]


class Subscription:
    """Handle for one listener; ``close`` detaches it exactly once."""

    def __init__(self, detach: Callable[[], None]) -> None:
        self._detach: Optional[Callable[[], None]] = detach

    @property
    def active(self) -> bool:
        return self._detach is not None

    def close(self) -> None:
        detach, self._detach = self._detach, None
        if detach is not None:
            detach()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


class OrientationSource(ABC):
    @abstractmethod
    def subscribe(self, callback: RollCallback) -> Subscription:
        """Register ``callback`` for roll readings (degrees, or None when lost)."""


class ManualOrientation(OrientationSource):
    """Orientation fed by the host application (sensor bridge, tests, CLI)."""

    def __init__(self) -> None:
        self._listeners: List[RollCallback] = []
        self._lock = threading.Lock()
        self._last: Optional[float] = None

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def subscribe(self, callback: RollCallback) -> Subscription:
        with self._lock:
            self._listeners.append(callback)
            last = self._last

        def _detach() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)
            logger.debug("Orientation listener detached")

        if last is not None:
            callback(last)
        return Subscription(_detach)

    def push(self, roll_deg: Optional[float]) -> None:
        with self._lock:
            self._last = roll_deg
            listeners = list(self._listeners)
        for callback in listeners:
            callback(roll_deg)


__all__ = ["ManualOrientation", "OrientationSource", "RollCallback", "Subscription"]
