"""Gate states and the capture request the gate emits when the shutter should fire."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from contracts import PendingArtifact


class GatePhase(Enum):
    IDLE = "idle"
    DWELLING = "dwelling"
    COUNTING_DOWN = "counting_down"
    CAPTURING = "capturing"
    REVIEWING = "reviewing"


@dataclass(frozen=True)
class GateState:
    """One phase plus the payload that phase carries; all other fields stay None/0."""

    phase: GatePhase
    dwell_started_at: Optional[float] = None
    countdown_started_at: Optional[float] = None
    countdown_remaining: int = 0
    capture_id: Optional[int] = None
    pending: Optional[PendingArtifact] = None

    @classmethod
    def idle(cls) -> "GateState":
        return cls(GatePhase.IDLE)

    @classmethod
    def dwelling(cls, started_at: float) -> "GateState":
        return cls(GatePhase.DWELLING, dwell_started_at=started_at)

    @classmethod
    def counting_down(cls, started_at: float, remaining: int) -> "GateState":
        return cls(GatePhase.COUNTING_DOWN, countdown_started_at=started_at, countdown_remaining=remaining)

    @classmethod
    def capturing(cls, capture_id: int) -> "GateState":
        return cls(GatePhase.CAPTURING, capture_id=capture_id)

    @classmethod
    def reviewing(cls, pending: PendingArtifact) -> "GateState":
        return cls(GatePhase.REVIEWING, capture_id=pending.capture_id, pending=pending)


@dataclass(frozen=True)
class CaptureRequest:
    capture_id: int
    manual: bool
    requested_at: float
