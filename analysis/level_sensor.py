"""Reduces a roll reading to a level pass/fail for orientation-sensitive overlays."""

from __future__ import annotations

import threading
from typing import FrozenSet, Iterable, Optional

from capture.orientation import OrientationSource, Subscription
from configs.settings import LevelConfig
from contracts import OverlayKind
from log_config.logger import get_logger

logger = get_logger(__name__)


class LevelSensor:
    """Tracks the latest roll and answers ``level_ok`` per overlay.

    With no reading the sensor fails open. ``attach`` owns one subscription on
    an orientation source; ``detach`` releases it and forgets the reading.
    """

    def __init__(self, config: Optional[LevelConfig] = None) -> None:
        self.config = config or LevelConfig()
        self._required: FrozenSet[OverlayKind] = _parse_overlays(self.config.level_required_overlays)
        self._roll: Optional[float] = None
        self._lock = threading.Lock()
        self._subscription: Optional[Subscription] = None

    @property
    def roll_deg(self) -> Optional[float]:
        with self._lock:
            return self._roll

    @property
    def attached(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def requires_level(self, overlay: OverlayKind) -> bool:
        return OverlayKind.parse(overlay) in self._required

    def update(self, roll_deg: Optional[float]) -> None:
        with self._lock:
            self._roll = None if roll_deg is None else float(roll_deg)

    def level_ok(self, overlay: OverlayKind) -> bool:
        if not self.requires_level(overlay):
            return True
        roll = self.roll_deg
        if roll is None:
            return True
        return abs(roll) < self.config.max_roll_deg

    def attach(self, source: OrientationSource) -> None:
        self.detach()
        self._subscription = source.subscribe(self.update)
        logger.debug("Level sensor attached to orientation source")

    def detach(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.close()
        self.update(None)


def _parse_overlays(values: Iterable) -> FrozenSet[OverlayKind]:
    return frozenset(OverlayKind.parse(v) for v in values)
