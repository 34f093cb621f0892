"""OpenCV-based video source."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from contracts import Frame
from exceptions import SourceReadError, SourceUnavailableError
from log_config.logger import get_logger

from .camera_device import SourceStats, VideoSource
from .timeout_utils import RetryPolicy, retry_on_failure, run_with_timeout

logger = get_logger(__name__)


@dataclass
class _Stats:
    last_frame_ns: int = 0
    frames: int = 0
    dropped: int = 0
    snapshots: int = 0
    fps_avg: float = 0.0
    fps_instant: float = 0.0


def downsample(image: np.ndarray, analysis_width: int) -> np.ndarray:
    """Resize ``image`` to ``analysis_width`` keeping the aspect ratio."""
    height, width = image.shape[:2]
    if width <= analysis_width:
        return image
    analysis_height = max(1, int(height * analysis_width / float(width)))
    return cv2.resize(image, (analysis_width, analysis_height), interpolation=cv2.INTER_AREA)


class OpenCVCamera(VideoSource):
    def __init__(
        self,
        index: int = 0,
        width: int = 1280,
        height: int = 720,
        fps: int = 30,
        analysis_width: int = 320,
        open_timeout_s: float = 5.0,
    ) -> None:
        self._index = index
        self._width = width
        self._height = height
        self._fps = fps
        self._analysis_width = analysis_width
        self._open_timeout_s = open_timeout_s
        self._capture: Optional[cv2.VideoCapture] = None
        self._lock = threading.Lock()
        self._stats = _Stats()

    @property
    def source_id(self) -> str:
        return f"cam{self._index}"

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    @retry_on_failure(
        policy=RetryPolicy(
            max_attempts=3,
            base_delay=0.5,
            max_delay=2.0,
            retry_on=(SourceUnavailableError,),
        )
    )
    def open(self) -> None:
        """Open the camera and configure its capture mode.

        Raises:
            SourceUnavailableError: If the device is missing, busy or denied,
                or does not open within the timeout.
        """
        if self._capture is not None:
            return
        logger.info(f"Opening OpenCV camera index {self._index}")

        def _open_camera():
            capture = cv2.VideoCapture(self._index)
            if not capture.isOpened():
                capture.release()
                raise SourceUnavailableError(
                    f"Failed to open camera index {self._index} - camera may be in use, missing or access was denied",
                    source_id=self.source_id,
                )
            return capture

        try:
            capture = run_with_timeout(
                _open_camera,
                timeout_seconds=self._open_timeout_s,
                error_message=f"OpenCV camera {self._index} open timed out",
            )
        except SourceUnavailableError:
            self._capture = None
            raise
        except Exception as e:
            self._capture = None
            raise SourceUnavailableError(str(e), source_id=self.source_id) from e

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        capture.set(cv2.CAP_PROP_FPS, self._fps)

        actual_width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if actual_width != self._width or actual_height != self._height:
            logger.warning(
                f"Camera {self._index}: Requested {self._width}x{self._height} "
                f"but got {actual_width}x{actual_height}"
            )
        self._capture = capture
        logger.info(f"Successfully opened OpenCV camera index {self._index}")

    def _grab(self) -> np.ndarray:
        if self._capture is None:
            raise SourceReadError("Camera not opened.", source_id=self.source_id)
        with self._lock:
            ok, image = self._capture.read()
        if not ok or image is None:
            self._stats.dropped += 1
            raise SourceReadError("Failed to read frame.", source_id=self.source_id)
        return image

    def _frame(self, image: np.ndarray) -> Frame:
        return Frame(
            source_id=self.source_id,
            frame_index=self._stats.frames,
            t_capture_monotonic_ns=time.monotonic_ns(),
            image=image,
            width=image.shape[1],
            height=image.shape[0],
            pixfmt="BGR24",
        )

    def read_frame(self, timeout_ms: int) -> Frame:
        image = self._grab()
        now_ns = time.monotonic_ns()
        if self._stats.last_frame_ns:
            delta_s = (now_ns - self._stats.last_frame_ns) / 1e9
            if delta_s > 0:
                self._stats.fps_instant = 1.0 / delta_s
                self._stats.fps_avg = (
                    (self._stats.fps_avg * self._stats.frames) + self._stats.fps_instant
                ) / (self._stats.frames + 1)
        self._stats.frames += 1
        self._stats.last_frame_ns = now_ns
        return self._frame(downsample(image, self._analysis_width))

    def snapshot(self) -> Frame:
        image = self._grab()
        self._stats.snapshots += 1
        return self._frame(image)

    def get_stats(self) -> SourceStats:
        return SourceStats(
            fps_avg=self._stats.fps_avg,
            fps_instant=self._stats.fps_instant,
            frames_read=self._stats.frames,
            dropped_frames=self._stats.dropped,
            snapshots=self._stats.snapshots,
        )

    def close(self) -> None:
        """Close camera and release resources.

        Note:
            - Idempotent - safe to call multiple times
            - Uses timeout to prevent hanging on release
        """
        if self._capture is None:
            logger.debug(f"Camera {self._index}: Already closed")
            return

        logger.info(f"Camera {self._index}: Closing")
        capture = self._capture
        try:
            run_with_timeout(
                capture.release,
                timeout_seconds=2.0,
                error_message=f"Camera {self._index} release timed out",
            )
            logger.info(f"Camera {self._index}: Closed successfully")
        except Exception as e:
            logger.error(f"Camera {self._index}: Error during close: {e}")
        finally:
            # Always clear capture reference
            self._capture = None
