"""Capture gating: dwell, countdown, capture and review."""

from app.gate.capture_gate import CaptureGate
from app.gate.states import CaptureRequest, GatePhase, GateState
from app.gate.timers import StateTimer

__all__ = [
    "CaptureGate",
    "CaptureRequest",
    "GatePhase",
    "GateState",
    "StateTimer",
]
