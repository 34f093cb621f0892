"""Per-tick frame quality scoring: sharpness, exposure, glare, and subject presence."""

from __future__ import annotations

import time
from typing import Optional, Tuple

import numpy as np

from configs.settings import AnalyzerConfig
from contracts import FrameAnalysis, OverlayKind, QualityMetrics
from detect.subject import PixelStatsDetector, SubjectDetector
from log_config.logger import get_logger, log_performance

logger = get_logger(__name__)


def luma(image: np.ndarray) -> np.ndarray:
    """Rec. 601 luma as float32; accepts BGR or single-channel images."""
    if image.ndim == 2:
        return image.astype(np.float32)
    b = image[..., 0].astype(np.float32)
    g = image[..., 1].astype(np.float32)
    r = image[..., 2].astype(np.float32)
    return 0.299 * r + 0.587 * g + 0.114 * b


def to_gray(image: np.ndarray) -> np.ndarray:
    """Luma truncated to an 8-bit channel."""
    return np.clip(luma(image), 0, 255).astype(np.uint8)


def laplacian_variance(gray: np.ndarray) -> float:
    """Variance of the 4-neighbour Laplacian over interior pixels."""
    if gray.shape[0] < 3 or gray.shape[1] < 3:
        return 0.0
    g = gray.astype(np.int32, copy=False)
    response = (
        4 * g[1:-1, 1:-1]
        - g[:-2, 1:-1]
        - g[2:, 1:-1]
        - g[1:-1, :-2]
        - g[1:-1, 2:]
    )
    return max(0.0, float(response.astype(np.float64).var()))


def luma_stats(image: np.ndarray) -> Tuple[float, float]:
    y = luma(image).astype(np.float64)
    return float(y.mean()), float(y.var())


def glare_fraction(image: np.ndarray, channel_threshold: int) -> float:
    """Fraction of pixels whose every channel exceeds ``channel_threshold``."""
    if image.size == 0:
        return 0.0
    if image.ndim == 2:
        hot = image > channel_threshold
    else:
        hot = np.all(image > channel_threshold, axis=-1)
    return float(np.count_nonzero(hot)) / float(hot.size)


class FrameAnalyzer:
    """Turns one analysis-resolution frame into quality flags and a subject score.

    Pure with respect to its inputs: the same image, overlay and level flag
    always produce the same metrics. The only side effect is timing telemetry.
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        detector: Optional[SubjectDetector] = None,
    ) -> None:
        self.config = config or AnalyzerConfig()
        self.detector = detector or PixelStatsDetector()

    def analyze(
        self,
        image: np.ndarray,
        overlay: OverlayKind = OverlayKind.NONE,
        level_ok: bool = True,
        roll_deg: Optional[float] = None,
    ) -> FrameAnalysis:
        cfg = self.config
        overlay = OverlayKind.parse(overlay)
        start = time.perf_counter()

        gray = to_gray(image)
        sharpness = laplacian_variance(gray)
        mean, variance = luma_stats(image)
        glare = glare_fraction(image, cfg.glare_channel_threshold)

        exposure_ok = (
            cfg.exposure_mean_min < mean < cfg.exposure_mean_max
            and variance > cfg.exposure_variance_min
        )
        metrics = QualityMetrics(
            sharp=sharpness > cfg.sharpness_threshold,
            glare_safe=glare < cfg.glare_fraction_max,
            exposure_ok=exposure_ok,
            level_ok=level_ok,
            sharpness=sharpness,
            luma_mean=mean,
            luma_variance=variance,
            glare_fraction=glare,
            roll_deg=roll_deg,
        )
        subject = self.detector.score(gray, image, overlay, sharpness, exposure_ok)

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        log_performance(f"frame analysis ({overlay.value})", elapsed_ms, cfg.runtime_budget_ms)
        return FrameAnalysis(metrics=metrics, subject=subject, elapsed_ms=elapsed_ms)
