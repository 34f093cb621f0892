"""Capture gate: turns per-tick readiness into dwell, countdown, capture, and review.

Transitions::

    IDLE --all-green--> DWELLING --dwell elapsed--> COUNTING_DOWN --zero--> CAPTURING
    DWELLING --not green--> IDLE
    CAPTURING --artifact--> REVIEWING --keep/retake--> IDLE
    CAPTURING --encode failed--> IDLE

Oval overlays never dwell or count down; a manual capture goes straight from
IDLE to CAPTURING once the coverage check passes.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable, List, Optional

from configs.settings import GateConfig
from contracts import FrameAnalysis, OverlayKind, PendingArtifact
from exceptions import CaptureStateError
from log_config.logger import get_logger

from app.gate.states import CaptureRequest, GatePhase, GateState
from app.gate.timers import StateTimer

logger = get_logger(__name__)

TransitionListener = Callable[[GateState, GateState], None]


class CaptureGate:
    def __init__(
        self,
        config: Optional[GateConfig] = None,
        overlay: OverlayKind = OverlayKind.NONE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or GateConfig()
        self._clock = clock
        self._overlay = OverlayKind.parse(overlay)
        self._state = GateState.idle()
        self._timer = StateTimer()
        self._ready = False
        self._last: Optional[FrameAnalysis] = None
        self._next_capture_id = 0
        self._manual_countdown = False
        self._listeners: List[TransitionListener] = []
        self._lock = threading.RLock()

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def phase(self) -> GatePhase:
        return self._state.phase

    @property
    def overlay(self) -> OverlayKind:
        return self._overlay

    @property
    def timer(self) -> StateTimer:
        return self._timer

    @property
    def auto_capture(self) -> bool:
        return self._overlay != OverlayKind.OVAL

    @property
    def capture_enabled(self) -> bool:
        """Overlay-appropriate readiness on the latest tick, outside capture/review."""
        if self._state.phase in (GatePhase.CAPTURING, GatePhase.REVIEWING):
            return False
        return self._ready

    @property
    def last_analysis(self) -> Optional[FrameAnalysis]:
        return self._last

    def add_listener(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    def set_overlay(self, overlay: OverlayKind) -> None:
        """Switch to a new step's overlay; any dwell, countdown or capture is dropped."""
        with self._lock:
            self.cancel()
            self._overlay = OverlayKind.parse(overlay)

    def is_ready(self, analysis: FrameAnalysis) -> bool:
        if self._overlay == OverlayKind.OVAL:
            return analysis.subject.coverage_ok
        return analysis.all_green

    # ------------------------------------------------------------------ ticks

    def update(self, analysis: FrameAnalysis, now: Optional[float] = None) -> Optional[CaptureRequest]:
        """Feed one tick's analysis; returns a request when the shutter should fire."""
        with self._lock:
            now = self._clock() if now is None else now
            self._last = analysis
            self._ready = self.is_ready(analysis)
            green = analysis.all_green
            phase = self._state.phase

            if phase in (GatePhase.CAPTURING, GatePhase.REVIEWING):
                return None
            if not self.auto_capture:
                return None

            if phase == GatePhase.IDLE:
                if not green:
                    return None
                self._enter_dwelling(now)
                phase = self._state.phase

            if phase == GatePhase.DWELLING:
                if not green:
                    self._transition(GateState.idle())
                    return None
                if self._timer.expired(now):
                    return self._enter_countdown(now)
                return None

            if phase == GatePhase.COUNTING_DOWN:
                if self.config.abort_countdown_on_fail and not green:
                    logger.debug("Countdown aborted: frame no longer all-green")
                    self._transition(GateState.idle())
                    return None
                return self._advance_countdown(now)
            return None

    def poll(self, now: Optional[float] = None) -> Optional[CaptureRequest]:
        """Advance the countdown between frames."""
        with self._lock:
            if self._state.phase != GatePhase.COUNTING_DOWN:
                return None
            now = self._clock() if now is None else now
            return self._advance_countdown(now)

    # ----------------------------------------------------------- operator

    def request_manual_capture(self, now: Optional[float] = None) -> Optional[CaptureRequest]:
        """Operator tap. Skips the dwell, never the countdown (except on oval overlays).

        A no-op while a countdown, capture or review is already under way.
        """
        with self._lock:
            phase = self._state.phase
            if phase in (GatePhase.COUNTING_DOWN, GatePhase.CAPTURING, GatePhase.REVIEWING):
                logger.debug(f"Manual capture ignored in phase {phase.value}")
                return None
            if self.config.manual_requires_ready and not self._ready:
                logger.debug("Manual capture ignored: capture control disabled")
                return None
            now = self._clock() if now is None else now
            if not self.auto_capture:
                return self._begin_capture(now, manual=True)
            return self._enter_countdown(now, manual=True)

    def complete_capture(self, capture_id: int, artifact: PendingArtifact) -> bool:
        """Attach the encoded snapshot; False when the capture was cancelled meanwhile."""
        with self._lock:
            if self._state.phase != GatePhase.CAPTURING or self._state.capture_id != capture_id:
                logger.debug(f"Discarding stale capture {capture_id}")
                return False
            self._transition(GateState.reviewing(artifact))
            return True

    def fail_capture(self, capture_id: int, reason: str = "") -> bool:
        with self._lock:
            if self._state.phase != GatePhase.CAPTURING or self._state.capture_id != capture_id:
                return False
            logger.warning(f"Capture {capture_id} failed: {reason}")
            self._transition(GateState.idle())
            return True

    def keep(self) -> PendingArtifact:
        """Hand the pending artifact over and reset for the next step."""
        with self._lock:
            pending = self._require_pending()
            self._transition(GateState.idle())
            return pending

    def retake(self) -> None:
        """Discard the pending artifact and start evaluating fresh frames."""
        with self._lock:
            pending = self._require_pending()
            self._transition(GateState.idle())
            pending.release()

    def cancel(self) -> None:
        """Leave the step: stop timers, invalidate in-flight captures, drop any pending artifact."""
        with self._lock:
            pending = self._state.pending
            if self._state.phase != GatePhase.IDLE:
                self._transition(GateState.idle())
            self._ready = False
            self._last = None
            if pending is not None:
                pending.release()

    # -------------------------------------------------------------- internals

    def _require_pending(self) -> PendingArtifact:
        if self._state.phase != GatePhase.REVIEWING or self._state.pending is None:
            raise CaptureStateError(f"No artifact under review (phase {self._state.phase.value})")
        return self._state.pending

    def _enter_dwelling(self, now: float) -> None:
        self._transition(GateState.dwelling(now))
        self._timer.arm(now + self.config.dwell_ms / 1000.0, GatePhase.DWELLING.value)

    def _enter_countdown(self, now: float, manual: bool = False) -> Optional[CaptureRequest]:
        seconds = int(self.config.countdown_s)
        if seconds <= 0:
            return self._begin_capture(now, manual=manual)
        self._transition(GateState.counting_down(now, seconds))
        self._timer.arm(now + seconds, GatePhase.COUNTING_DOWN.value)
        self._manual_countdown = manual
        return None

    def _advance_countdown(self, now: float) -> Optional[CaptureRequest]:
        if self._timer.expired(now):
            return self._begin_capture(now, manual=self._manual_countdown)
        remaining = max(1, math.ceil(self._timer.remaining(now)))
        if remaining != self._state.countdown_remaining:
            self._transition(
                GateState.counting_down(self._state.countdown_started_at, remaining),
                keep_timer=True,
            )
        return None

    def _begin_capture(self, now: float, manual: bool) -> CaptureRequest:
        self._next_capture_id += 1
        capture_id = self._next_capture_id
        self._transition(GateState.capturing(capture_id))
        logger.info(f"Capture {capture_id} triggered ({'manual' if manual else 'auto'})")
        return CaptureRequest(capture_id=capture_id, manual=manual, requested_at=now)

    def _transition(self, new_state: GateState, keep_timer: bool = False) -> None:
        old_state = self._state
        if not keep_timer:
            self._timer.cancel()
        self._state = new_state
        if old_state.phase != new_state.phase:
            logger.debug(f"Gate {old_state.phase.value} -> {new_state.phase.value}")
        for listener in list(self._listeners):
            listener(old_state, new_state)
