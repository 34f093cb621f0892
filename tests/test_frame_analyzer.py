"""Frame quality metrics on synthetic scenes."""

from __future__ import annotations

import cv2
import numpy as np
import pytest

from analysis.frame_analyzer import FrameAnalyzer, glare_fraction, laplacian_variance, luma, to_gray
from capture.simulated_camera import blank_scene, textured_scene, undercarriage_scene, wheel_scene
from configs.settings import AnalyzerConfig
from contracts import OverlayKind


@pytest.fixture
def analyzer() -> FrameAnalyzer:
    return FrameAnalyzer()


def test_luma_uses_bgr_channel_order() -> None:
    pixel = np.zeros((1, 1, 3), dtype=np.uint8)
    pixel[0, 0] = (0, 0, 100)  # pure red in BGR
    assert luma(pixel)[0, 0] == pytest.approx(29.9, abs=1e-4)


def test_to_gray_truncates() -> None:
    pixel = np.full((1, 1, 3), 100, dtype=np.uint8)
    pixel[0, 0, 0] = 101  # adds 0.114 to the luma
    assert to_gray(pixel)[0, 0] == 100


def test_laplacian_variance_of_flat_image_is_zero() -> None:
    assert laplacian_variance(np.full((20, 20), 90, dtype=np.uint8)) == 0.0
    assert laplacian_variance(np.zeros((2, 2), dtype=np.uint8)) == 0.0


class TestSharpness:
    def test_textured_scene_is_sharp(self, analyzer: FrameAnalyzer) -> None:
        result = analyzer.analyze(textured_scene())
        assert result.metrics.sharp
        assert result.metrics.sharpness > 45

    def test_sharpness_decreases_under_blur(self, analyzer: FrameAnalyzer) -> None:
        image = textured_scene()
        scores = [analyzer.analyze(image).metrics.sharpness]
        for sigma in (1.0, 2.0, 4.0):
            blurred = cv2.GaussianBlur(image, (0, 0), sigma)
            scores.append(analyzer.analyze(blurred).metrics.sharpness)

        assert scores == sorted(scores, reverse=True)
        assert len(set(scores)) == len(scores)

    def test_heavy_blur_fails_sharpness(self, analyzer: FrameAnalyzer) -> None:
        blurred = cv2.GaussianBlur(textured_scene(), (0, 0), 8.0)
        assert not analyzer.analyze(blurred).metrics.sharp


class TestGlare:
    def test_five_percent_white_is_not_glare_safe(self, analyzer: FrameAnalyzer) -> None:
        image = textured_scene()
        rows = int(image.shape[0] * 0.05)
        image[:rows] = 255

        result = analyzer.analyze(image)
        assert result.metrics.glare_fraction >= 0.05
        assert not result.metrics.glare_safe

    def test_near_white_below_channel_threshold_is_not_glare(self) -> None:
        image = np.full((10, 10, 3), 245, dtype=np.uint8)
        assert glare_fraction(image, 245) == 0.0

    def test_one_dark_channel_is_not_glare(self) -> None:
        image = np.full((10, 10, 3), 255, dtype=np.uint8)
        image[..., 0] = 200
        assert glare_fraction(image, 245) == 0.0

    def test_textured_scene_is_glare_safe(self, analyzer: FrameAnalyzer) -> None:
        assert analyzer.analyze(textured_scene()).metrics.glare_safe


class TestExposure:
    @pytest.mark.parametrize("value", [0, 255])
    def test_black_and_white_frames_fail(self, analyzer: FrameAnalyzer, value: int) -> None:
        assert not analyzer.analyze(blank_scene(value=value)).metrics.exposure_ok

    def test_flat_mid_gray_fails_on_variance(self, analyzer: FrameAnalyzer) -> None:
        metrics = analyzer.analyze(blank_scene(value=128)).metrics
        assert 60 < metrics.luma_mean < 200
        assert metrics.luma_variance == 0.0
        assert not metrics.exposure_ok

    def test_textured_mid_tones_pass(self, analyzer: FrameAnalyzer) -> None:
        metrics = analyzer.analyze(textured_scene()).metrics
        assert metrics.exposure_ok
        assert metrics.luma_variance > 1200

    def test_band_follows_config(self) -> None:
        strict = FrameAnalyzer(AnalyzerConfig(exposure_mean_min=140.0))
        assert not strict.analyze(textured_scene()).metrics.exposure_ok


class TestSubject:
    def test_ring_scene_passes_ring_check(self, analyzer: FrameAnalyzer) -> None:
        result = analyzer.analyze(wheel_scene(), OverlayKind.RING)
        assert result.subject.overlay == OverlayKind.RING
        assert result.subject.score > 0.18
        assert result.subject.passed
        assert result.all_green

    def test_blank_scene_scores_zero(self, analyzer: FrameAnalyzer) -> None:
        result = analyzer.analyze(blank_scene(), OverlayKind.RING)
        assert result.subject.score == 0.0
        assert not result.subject.passed

    def test_texture_outside_ring_fails(self, analyzer: FrameAnalyzer) -> None:
        image = blank_scene(value=110)
        image[:60] = textured_scene()[:60]
        assert not analyzer.analyze(image, OverlayKind.RING).subject.passed

    def test_undercarriage_covers_oval(self, analyzer: FrameAnalyzer) -> None:
        subject = analyzer.analyze(undercarriage_scene(inside=True), OverlayKind.OVAL).subject
        assert subject.passed
        assert subject.coverage_ok
        assert subject.score > 0.32

    def test_texture_outside_oval_fails(self, analyzer: FrameAnalyzer) -> None:
        subject = analyzer.analyze(undercarriage_scene(inside=False), OverlayKind.OVAL).subject
        assert not subject.passed
        assert not subject.coverage_ok

    @pytest.mark.parametrize("overlay", [OverlayKind.TRAPEZOID, OverlayKind.RECTANGLE, OverlayKind.NONE])
    def test_generic_overlays_need_sharpness_and_exposure(self, analyzer: FrameAnalyzer, overlay) -> None:
        good = analyzer.analyze(textured_scene(), overlay).subject
        assert good.passed
        assert 0.0 < good.score < 1.0

        flat = analyzer.analyze(blank_scene(), overlay).subject
        assert not flat.passed
        assert flat.score == 0.0

    def test_overlay_accepts_strings(self, analyzer: FrameAnalyzer) -> None:
        assert analyzer.analyze(wheel_scene(), "circle").subject.overlay == OverlayKind.RING


class TestAnalysis:
    def test_level_flag_passes_through(self, analyzer: FrameAnalyzer) -> None:
        result = analyzer.analyze(textured_scene(), OverlayKind.TRAPEZOID, level_ok=False, roll_deg=9.0)
        assert not result.metrics.level_ok
        assert result.metrics.roll_deg == 9.0
        assert result.subject.passed
        assert not result.all_green

    def test_analysis_is_deterministic(self, analyzer: FrameAnalyzer) -> None:
        image = wheel_scene()
        first = analyzer.analyze(image, OverlayKind.RING)
        second = analyzer.analyze(image, OverlayKind.RING)
        assert first.metrics == second.metrics
        assert first.subject == second.subject
        assert first.elapsed_ms >= 0.0
