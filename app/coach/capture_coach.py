"""Capture coach: owns the video source and runs the analysis -> gate -> capture loop."""

from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Callable, Optional

from analysis.frame_analyzer import FrameAnalyzer
from analysis.level_sensor import LevelSensor
from app.coach.coach_spec import coach_spec_for
from app.events.error_bus import ErrorCategory, ErrorEventBus, ErrorSeverity, publish_error
from app.gate.capture_gate import CaptureGate
from app.gate.states import CaptureRequest, GatePhase
from app.pipeline.capture_pipeline import CapturePipeline
from capture.camera_device import VideoSource
from capture.orientation import OrientationSource
from configs.settings import AppConfig
from contracts import CaptureArtifact, CoachSpec, Frame, FrameAnalysis, PendingArtifact
from detect.ml_detector import create_subject_detector
from exceptions import CaptureStateError, SourceReadError, SourceUnavailableError
from log_config.logger import get_logger

logger = get_logger(__name__)


class CoachStatus(Enum):
    IDLE = "idle"  # Constructed, source not yet opened
    LIVE = "live"
    NO_SOURCE = "no_source"  # Open failed; retry_source() may recover
    CLOSED = "closed"


class CaptureCoach:
    """Drives one coaching session against a single video source.

    Each tick reads an analysis-resolution frame, scores it, and feeds the
    gate. Frames that arrive while a tick is still running are dropped, never
    queued. The source and the orientation subscription are released exactly
    once by ``close``.
    """

    def __init__(
        self,
        source: VideoSource,
        config: Optional[AppConfig] = None,
        analyzer: Optional[FrameAnalyzer] = None,
        orientation: Optional[OrientationSource] = None,
        pipeline: Optional[CapturePipeline] = None,
        on_capture: Optional[Callable[[CaptureArtifact], None]] = None,
        on_analysis: Optional[Callable[[FrameAnalysis], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        error_bus: Optional[ErrorEventBus] = None,
    ) -> None:
        self.config = config or AppConfig()
        self._source = source
        self._clock = clock
        self._orientation = orientation
        self._error_bus = error_bus
        self._on_capture = on_capture
        self._on_analysis = on_analysis

        if analyzer is None:
            detector = create_subject_detector(self.config.detector, self.config.subject)
            analyzer = FrameAnalyzer(self.config.analyzer, detector)
        self.analyzer = analyzer
        self.level = LevelSensor(self.config.level)
        self.gate = CaptureGate(self.config.gate, clock=clock)
        self._owns_pipeline = pipeline is None
        self.pipeline = pipeline or CapturePipeline(self.config.capture)

        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._status = CoachStatus.IDLE
        self._status_reason = ""
        self._source_acquired = False
        self._step_name = ""
        self._spec = coach_spec_for("")

        self.ticks = 0
        self.dropped_frames = 0

    # ------------------------------------------------------------ properties

    @property
    def status(self) -> CoachStatus:
        return self._status

    @property
    def status_reason(self) -> str:
        return self._status_reason

    @property
    def step_name(self) -> str:
        return self._step_name

    @property
    def spec(self) -> CoachSpec:
        return self._spec

    @property
    def phase(self) -> GatePhase:
        return self.gate.phase

    @property
    def capture_enabled(self) -> bool:
        return self._status == CoachStatus.LIVE and self.gate.capture_enabled

    @property
    def countdown(self) -> int:
        state = self.gate.state
        return state.countdown_remaining if state.phase == GatePhase.COUNTING_DOWN else 0

    @property
    def pending(self) -> Optional[PendingArtifact]:
        return self.gate.state.pending

    # ------------------------------------------------------------- lifecycle

    def start(self) -> bool:
        """Open the source. Returns False (status NO_SOURCE) when it is unavailable."""
        with self._lock:
            if self._status == CoachStatus.CLOSED:
                raise CaptureStateError("Coach is closed")
            if self._status == CoachStatus.LIVE:
                return True
            self._source_acquired = True
            try:
                self._source.open()
            except SourceUnavailableError as e:
                self._status = CoachStatus.NO_SOURCE
                self._status_reason = str(e)
                self._release_source()
                publish_error(
                    ErrorCategory.CAMERA,
                    ErrorSeverity.ERROR,
                    f"Video source unavailable: {e}",
                    source="CaptureCoach",
                    exception=e,
                    bus=self._error_bus,
                )
                return False

            self._status = CoachStatus.LIVE
            self._status_reason = ""
            if self._orientation is not None and not self.level.attached:
                self.level.attach(self._orientation)
            logger.info("Capture coach live")
            return True

    def retry_source(self) -> bool:
        if self._status == CoachStatus.LIVE:
            return True
        logger.info("Retrying video source")
        return self.start()

    def close(self) -> None:
        """Stop the session: cancel timers, drop any capture, release the source once."""
        with self._lock:
            if self._status == CoachStatus.CLOSED:
                return
            self._status = CoachStatus.CLOSED
            self.gate.cancel()
            self.level.detach()
            self._release_source()
        # Outside the lock: an in-flight encode needs it to report back.
        if self._owns_pipeline:
            self.pipeline.shutdown(wait=True)
        logger.info(f"Capture coach closed ({self.ticks} ticks, {self.dropped_frames} dropped)")

    def __enter__(self) -> "CaptureCoach":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def _release_source(self) -> None:
        if not self._source_acquired:
            return
        self._source_acquired = False
        self._source.close()

    # ----------------------------------------------------------------- steps

    def set_step(self, step_name: str, spec: Optional[CoachSpec] = None) -> CoachSpec:
        """Enter a step; any dwell, countdown or pending review of the previous step is dropped."""
        spec = spec or coach_spec_for(step_name)
        with self._lock:
            self.gate.set_overlay(spec.overlay)
            self._step_name = step_name
            self._spec = spec
        logger.info(f"Step '{step_name}': {spec.overlay.value} overlay")
        return spec

    def leave_step(self) -> None:
        with self._lock:
            self.gate.cancel()

    # ------------------------------------------------------------------ loop

    def tick(self, now: Optional[float] = None) -> Optional[FrameAnalysis]:
        """Read one frame from the source and process it."""
        if self._status != CoachStatus.LIVE:
            return None
        try:
            frame = self._source.read_frame(self.config.camera.read_timeout_ms)
        except SourceReadError as e:
            publish_error(
                ErrorCategory.CAMERA,
                ErrorSeverity.WARNING,
                f"Frame read failed: {e}",
                source="CaptureCoach",
                exception=e,
                bus=self._error_bus,
            )
            return None
        return self.process_frame(frame, now)

    def process_frame(self, frame: Frame, now: Optional[float] = None) -> Optional[FrameAnalysis]:
        """Analyze ``frame`` and advance the gate; None when the frame was dropped."""
        if not self._tick_lock.acquire(blocking=False):
            self.dropped_frames += 1
            logger.debug(f"Dropped frame {frame.frame_index}: analysis still running")
            return None
        try:
            if self._status != CoachStatus.LIVE:
                return None
            overlay = self._spec.overlay
            analysis = self.analyzer.analyze(
                frame.image,
                overlay,
                level_ok=self.level.level_ok(overlay),
                roll_deg=self.level.roll_deg,
            )
            with self._lock:
                request = self.gate.update(analysis, now)
                if request is not None:
                    self._fire(request)
            self.ticks += 1
            if self._on_analysis is not None:
                self._on_analysis(analysis)
            return analysis
        finally:
            self._tick_lock.release()

    def poll(self, now: Optional[float] = None) -> Optional[CaptureRequest]:
        """Advance a running countdown between frames."""
        with self._lock:
            if self._status != CoachStatus.LIVE:
                return None
            request = self.gate.poll(now)
            if request is not None:
                self._fire(request)
            return request

    def run(self, stop_event: Optional[threading.Event] = None, max_ticks: Optional[int] = None) -> int:
        """Tick until stopped, closed, or ``max_ticks`` frames have been read."""
        count = 0
        while self._status == CoachStatus.LIVE:
            if stop_event is not None and stop_event.is_set():
                break
            if max_ticks is not None and count >= max_ticks:
                break
            self.tick()
            self.poll()
            count += 1
        return count

    # --------------------------------------------------------------- capture

    def capture_now(self, now: Optional[float] = None) -> Optional[CaptureRequest]:
        """Operator tap on the capture control."""
        with self._lock:
            if self._status != CoachStatus.LIVE:
                return None
            request = self.gate.request_manual_capture(now)
            if request is not None:
                self._fire(request)
            return request

    def keep(self) -> CaptureArtifact:
        """Accept the photo under review and deliver it for the current step."""
        with self._lock:
            pending = self.gate.keep()
            artifact = CaptureArtifact(
                step_name=self._step_name,
                image_bytes=pending.image_bytes,
                preview=pending.preview,
                captured_at=pending.captured_at,
                width=pending.width,
                height=pending.height,
            )
            pending.release()
        logger.info(f"Kept photo for '{artifact.step_name}' ({len(artifact.image_bytes)} bytes)")
        if self._on_capture is not None:
            self._on_capture(artifact)
        return artifact

    def retake(self) -> None:
        with self._lock:
            self.gate.retake()

    def _fire(self, request: CaptureRequest) -> None:
        self.pipeline.submit(self._source, request.capture_id, self._on_encoded)

    def _on_encoded(
        self, capture_id: int, artifact: Optional[PendingArtifact], error: Optional[Exception]
    ) -> None:
        with self._lock:
            if error is not None:
                if self.gate.fail_capture(capture_id, str(error)):
                    publish_error(
                        ErrorCategory.CAPTURE,
                        ErrorSeverity.WARNING,
                        f"Capture failed, try again: {error}",
                        source="CaptureCoach",
                        exception=error,
                        bus=self._error_bus,
                    )
                return
            if self._status == CoachStatus.CLOSED or not self.gate.complete_capture(capture_id, artifact):
                artifact.release()


__all__ = ["CaptureCoach", "CoachStatus"]
