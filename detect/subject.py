"""Subject-presence detectors keyed by overlay kind."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from configs.settings import SubjectConfig
from contracts import OverlayKind, SubjectScore

from .utils import annulus_mask, ellipse_mask, region_energy_ratio, sobel_magnitude


class SubjectDetector(ABC):
    """Scores how likely the expected subject fills the overlay's region."""

    name = "base"

    @abstractmethod
    def score(
        self,
        gray: np.ndarray,
        image: np.ndarray,
        overlay: OverlayKind,
        sharpness: float,
        exposure_ok: bool,
    ) -> SubjectScore:
        """Return the subject score for one analysis frame."""

    @property
    def available(self) -> bool:
        return True


class PixelStatsDetector(SubjectDetector):
    """Edge-energy heuristics; always available.

    Ring and oval overlays measure the share of Sobel energy inside the guide
    region. Every other overlay only asks for enough edge content at a usable
    exposure.
    """

    name = "pixel"

    def __init__(self, config: Optional[SubjectConfig] = None) -> None:
        self.config = config or SubjectConfig()

    def score(
        self,
        gray: np.ndarray,
        image: np.ndarray,
        overlay: OverlayKind,
        sharpness: float,
        exposure_ok: bool,
    ) -> SubjectScore:
        if overlay == OverlayKind.RING:
            return self.ring_score(gray)
        if overlay == OverlayKind.OVAL:
            return self.oval_score(gray)
        return self.generic_score(overlay, sharpness, exposure_ok)

    def ring_score(self, gray: np.ndarray) -> SubjectScore:
        cfg = self.config
        mags = sobel_magnitude(gray)
        mask = annulus_mask(gray.shape[:2], tuple(cfg.ring_center), tuple(cfg.ring_radii))
        ratio = region_energy_ratio(mags, mask)
        passed = ratio > cfg.ring_threshold
        return SubjectScore(
            score=ratio,
            passed=passed,
            overlay=OverlayKind.RING,
            coverage_ok=passed,
            detector=self.name,
        )

    def oval_score(self, gray: np.ndarray) -> SubjectScore:
        cfg = self.config
        mags = sobel_magnitude(gray)
        mask = ellipse_mask(gray.shape[:2], tuple(cfg.oval_center), tuple(cfg.oval_radii))
        coverage = region_energy_ratio(mags, mask)
        return SubjectScore(
            score=coverage,
            passed=coverage > cfg.oval_threshold,
            overlay=OverlayKind.OVAL,
            coverage_ok=coverage > cfg.oval_coverage_threshold,
            detector=self.name,
        )

    def generic_score(self, overlay: OverlayKind, sharpness: float, exposure_ok: bool) -> SubjectScore:
        threshold = self.config.generic_sharpness_threshold
        score = sharpness / (sharpness + threshold) if sharpness > 0 else 0.0
        passed = sharpness > threshold and exposure_ok
        return SubjectScore(
            score=float(score),
            passed=passed,
            overlay=overlay,
            coverage_ok=passed,
            detector=self.name,
        )
