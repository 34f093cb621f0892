"""Simulated video source and synthetic scenes for testing the coach."""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Sequence

import cv2
import numpy as np

from contracts import Frame
from exceptions import SourceReadError, SourceUnavailableError

from .camera_device import SourceStats, VideoSource
from .opencv_backend import downsample


def wheel_scene(width: int = 320, height: int = 240) -> np.ndarray:
    """Bright upper band over dark ground with a rim-like ring in the guide annulus."""
    image = np.full((height, width, 3), 70, dtype=np.uint8)
    image[: int(height * 0.4), :] = 200
    center = (width // 2, int(height * 0.6))
    radius = int(height * 0.21)
    thickness = max(2, int(height * 0.035))
    cv2.circle(image, center, radius, (200, 200, 200), thickness)
    return image


def undercarriage_scene(width: int = 320, height: int = 240, inside: bool = True) -> np.ndarray:
    """Checkerboard texture inside (or outside) the under-carriage ellipse."""
    image = np.full((height, width, 3), 110, dtype=np.uint8)
    tile = max(2, width // 40)
    yy, xx = np.mgrid[0:height, 0:width]
    checker = (((yy // tile) + (xx // tile)) % 2).astype(bool)
    mask = np.zeros((height, width), dtype=np.uint8)
    cv2.ellipse(
        mask,
        (width // 2, int(height * 0.62)),
        (int(width * 0.30), int(height * 0.15)),
        0,
        0,
        360,
        255,
        -1,
    )
    region = mask > 0
    if not inside:
        region = np.zeros_like(region)
        region[: int(height * 0.3), :] = True
    textured = region & checker
    image[textured] = 30
    image[region & ~checker] = 200
    return image


def textured_scene(width: int = 320, height: int = 240, seed: int = 7) -> np.ndarray:
    """Mid-gray scene with random block texture, good exposure and sharp edges."""
    rng = np.random.default_rng(seed)
    blocks = rng.integers(40, 215, size=(height // 8 + 1, width // 8 + 1), dtype=np.uint8)
    gray = np.kron(blocks, np.ones((8, 8), dtype=np.uint8))[:height, :width]
    return np.dstack([gray, gray, gray])


def blank_scene(width: int = 320, height: int = 240, value: int = 128) -> np.ndarray:
    return np.full((height, width, 3), value, dtype=np.uint8)


SCENES: Dict[str, Callable[..., np.ndarray]] = {
    "wheel": wheel_scene,
    "undercarriage": undercarriage_scene,
    "textured": textured_scene,
    "blank": blank_scene,
}


class SimulatedCamera(VideoSource):
    """Plays back scripted images (or a named scene) as a live source.

    ``fail_open`` simulates a missing or denied device.
    """

    def __init__(
        self,
        frames: Optional[Sequence[np.ndarray]] = None,
        scene: str = "textured",
        width: int = 1280,
        height: int = 960,
        analysis_width: int = 320,
        fps: int = 0,
        fail_open: Optional[str] = None,
        source_id: str = "sim",
    ) -> None:
        if frames is None:
            frames = [SCENES[scene](width, height)]
        if not frames:
            raise ValueError("SimulatedCamera needs at least one frame")
        self._frames = list(frames)
        self._analysis_width = analysis_width
        self._fps = fps
        self._fail_open = fail_open
        self._source_id = source_id
        self._open = False
        self._frame_index = 0
        self._cursor = 0
        self._snapshots = 0
        self._last_frame_time = time.monotonic()
        self.open_count = 0
        self.close_count = 0

    @property
    def is_open(self) -> bool:
        return self._open

    def set_frames(self, frames: Sequence[np.ndarray]) -> None:
        self._frames = list(frames)
        self._cursor = 0

    def open(self) -> None:
        if self._fail_open:
            raise SourceUnavailableError(self._fail_open, source_id=self._source_id)
        if not self._open:
            self._open = True
            self.open_count += 1

    def _current(self) -> np.ndarray:
        return self._frames[min(self._cursor, len(self._frames) - 1)]

    def _make_frame(self, image: np.ndarray) -> Frame:
        return Frame(
            source_id=self._source_id,
            frame_index=self._frame_index,
            t_capture_monotonic_ns=time.monotonic_ns(),
            image=image,
            width=image.shape[1],
            height=image.shape[0],
            pixfmt="BGR24",
        )

    def read_frame(self, timeout_ms: int) -> Frame:
        if not self._open:
            raise SourceReadError("Simulated source not opened.", source_id=self._source_id)
        if self._fps > 0:
            target_delay = 1.0 / self._fps
            elapsed = time.monotonic() - self._last_frame_time
            if elapsed < target_delay:
                time.sleep(target_delay - elapsed)
        self._last_frame_time = time.monotonic()
        image = self._current()
        self._cursor = (self._cursor + 1) % len(self._frames)
        self._frame_index += 1
        return self._make_frame(downsample(image, self._analysis_width))

    def snapshot(self) -> Frame:
        if not self._open:
            raise SourceReadError("Simulated source not opened.", source_id=self._source_id)
        self._snapshots += 1
        return self._make_frame(self._current().copy())

    def get_stats(self) -> SourceStats:
        return SourceStats(
            fps_avg=float(self._fps),
            fps_instant=float(self._fps),
            frames_read=self._frame_index,
            dropped_frames=0,
            snapshots=self._snapshots,
        )

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self.close_count += 1
