"""Full-resolution snapshot and JPEG encoding for a triggered capture."""

from __future__ import annotations

import base64
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

import cv2
import numpy as np

from capture.camera_device import VideoSource
from configs.settings import CaptureConfig
from contracts import Frame, PendingArtifact
from exceptions import CaptureCoachError, SnapshotEncodeError
from log_config.logger import get_logger, log_performance

logger = get_logger(__name__)

# (capture_id, artifact, error); exactly one of artifact/error is set.
CaptureCallback = Callable[[int, Optional[PendingArtifact], Optional[Exception]], None]


def encode_jpeg(image: np.ndarray, quality: int) -> bytes:
    try:
        ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    except cv2.error as e:
        raise SnapshotEncodeError(f"JPEG encode failed: {e}")
    if not ok:
        raise SnapshotEncodeError("JPEG encode returned no data")
    return buffer.tobytes()


def preview_data_url(image: np.ndarray, quality: int, max_width: int) -> str:
    """Downscaled JPEG preview as a ``data:image/jpeg;base64,...`` URL."""
    height, width = image.shape[:2]
    if width > max_width:
        scale = max_width / float(width)
        image = cv2.resize(
            image, (max_width, max(1, int(round(height * scale)))), interpolation=cv2.INTER_AREA
        )
    payload = base64.b64encode(encode_jpeg(image, quality)).decode("ascii")
    return f"data:image/jpeg;base64,{payload}"


class CapturePipeline:
    """Turns a capture request into a ``PendingArtifact``.

    The snapshot is read synchronously so it matches the moment the countdown
    hit zero; encoding runs on a single worker thread when ``async_encode`` is
    set, otherwise inline on the caller's thread.
    """

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or CaptureConfig()
        self._clock = clock
        self._owns_executor = executor is None and self.config.async_encode
        if self._owns_executor:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture-encode")
        self._executor = executor

    def encode(self, frame: Frame, capture_id: int) -> PendingArtifact:
        cfg = self.config
        if frame.image is None or getattr(frame.image, "size", 0) == 0:
            raise SnapshotEncodeError(f"Capture {capture_id}: snapshot is empty")

        start = time.perf_counter()
        image_bytes = encode_jpeg(frame.image, cfg.jpeg_quality)
        preview = preview_data_url(frame.image, cfg.preview_quality, cfg.preview_max_width)
        log_performance(f"capture encode #{capture_id}", (time.perf_counter() - start) * 1000.0, cfg.encode_budget_ms)

        return PendingArtifact(
            capture_id=capture_id,
            image_bytes=image_bytes,
            preview=preview,
            captured_at=self._clock(),
            width=frame.width,
            height=frame.height,
        )

    def submit(self, source: VideoSource, capture_id: int, callback: CaptureCallback) -> Optional[Future]:
        """Snapshot now, encode now or later, then report through ``callback``.

        Every failure reaches ``callback`` as an error; nothing raises out of here.
        Returns the encode future when encoding was handed to the executor.
        """
        try:
            frame = source.snapshot()
        except CaptureCoachError as e:
            logger.warning(f"Capture {capture_id}: snapshot failed: {e}")
            callback(capture_id, None, e)
            return None
        except Exception as e:
            logger.opt(exception=e).error(f"Capture {capture_id}: unexpected snapshot failure: {e}")
            error = SnapshotEncodeError(f"Capture {capture_id}: snapshot failed: {e}")
            error.__cause__ = e
            callback(capture_id, None, error)
            return None

        if self._executor is None:
            self._run(frame, capture_id, callback)
            return None
        return self._executor.submit(self._run, frame, capture_id, callback)

    def _run(self, frame: Frame, capture_id: int, callback: CaptureCallback) -> None:
        try:
            artifact = self.encode(frame, capture_id)
        except SnapshotEncodeError as e:
            callback(capture_id, None, e)
            return
        except Exception as e:
            logger.opt(exception=e).error(f"Capture {capture_id}: unexpected encode failure: {e}")
            error = SnapshotEncodeError(f"Capture {capture_id}: encode failed: {e}")
            error.__cause__ = e
            callback(capture_id, None, error)
            return
        callback(capture_id, artifact, None)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
