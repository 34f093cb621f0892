"""Subject detectors: pixel heuristics and the model-backed detector's fallbacks."""

from __future__ import annotations

from unittest.mock import Mock, patch

import numpy as np
import pytest

from analysis.frame_analyzer import to_gray
from capture.simulated_camera import textured_scene, wheel_scene
from configs.settings import DetectorConfig, SubjectConfig
from contracts import OverlayKind
from detect import MlSubjectDetector, PixelStatsDetector, create_subject_detector
from detect.ml_detector import best_class_confidence
from detect.utils import annulus_mask, ellipse_mask, region_energy_ratio, sobel_magnitude
from exceptions import ModelInferenceError, ModelLoadError


class TestGeometry:
    def test_sobel_border_is_zero(self) -> None:
        gray = np.zeros((10, 10), dtype=np.uint8)
        gray[:, 5:] = 200
        mags = sobel_magnitude(gray)
        assert mags[0].sum() == 0 and mags[-1].sum() == 0
        assert mags[:, 0].sum() == 0 and mags[:, -1].sum() == 0
        assert mags[5, 5] == pytest.approx(800.0)

    def test_annulus_excludes_center(self) -> None:
        mask = annulus_mask((240, 320), (0.5, 0.6), (0.15, 0.27))
        assert not mask[144, 160]
        assert mask[144, 160 + 50]
        assert not mask[0, 0]

    def test_masks_are_read_only(self) -> None:
        mask = ellipse_mask((240, 320), (0.5, 0.62), (0.33, 0.18))
        assert mask[149, 160]
        with pytest.raises(ValueError):
            mask[0, 0] = True

    def test_no_energy_means_zero_ratio(self) -> None:
        mags = np.zeros((10, 10), dtype=np.float32)
        mask = np.ones((10, 10), dtype=bool)
        assert region_energy_ratio(mags, mask) == 0.0


class TestPixelStatsDetector:
    def test_ring_threshold_is_configurable(self) -> None:
        gray = to_gray(wheel_scene())
        image = wheel_scene()
        lenient = PixelStatsDetector().score(gray, image, OverlayKind.RING, 0.0, True)
        strict = PixelStatsDetector(SubjectConfig(ring_threshold=0.99)).score(
            gray, image, OverlayKind.RING, 0.0, True
        )
        assert lenient.passed
        assert not strict.passed
        assert strict.score == lenient.score

    def test_generic_score_formula(self) -> None:
        detector = PixelStatsDetector()
        result = detector.generic_score(OverlayKind.RECTANGLE, 30.0, True)
        assert result.score == pytest.approx(0.5)
        assert not result.passed  # strictly greater than the threshold

        result = detector.generic_score(OverlayKind.RECTANGLE, 90.0, False)
        assert result.score == pytest.approx(0.75)
        assert not result.passed

        assert detector.generic_score(OverlayKind.NONE, 31.0, True).passed


class TestMlSubjectDetector:
    def test_unloaded_detector_uses_fallback(self) -> None:
        detector = MlSubjectDetector(model_path=None)
        image = textured_scene()
        result = detector.score(to_gray(image), image, OverlayKind.RECTANGLE, 100.0, True)
        assert not detector.available
        assert result.detector == "pixel"
        assert result.passed

    def test_missing_model_raises_on_load(self, tmp_path) -> None:
        detector = MlSubjectDetector(model_path=str(tmp_path / "missing.onnx"))
        with pytest.raises(ModelLoadError):
            detector.load()

    def test_unparseable_model_raises_on_load(self, tmp_path) -> None:
        model = tmp_path / "garbage.onnx"
        model.write_bytes(b"not a model")
        with pytest.raises(ModelLoadError):
            MlSubjectDetector(model_path=str(model)).load()

    def test_ring_and_oval_always_use_fallback(self) -> None:
        detector = MlSubjectDetector()
        detector._net = Mock()
        with patch.object(detector, "infer") as infer:
            image = wheel_scene()
            result = detector.score(to_gray(image), image, OverlayKind.RING, 100.0, True)
        infer.assert_not_called()
        assert result.detector == "pixel"

    def test_model_confidence_scores_generic_overlays(self) -> None:
        detector = MlSubjectDetector(conf_threshold=0.4)
        detector._net = Mock()
        image = textured_scene()
        with patch.object(detector, "infer", return_value=0.6):
            result = detector.score(to_gray(image), image, OverlayKind.TRAPEZOID, 100.0, True)
        assert result.detector == "ml"
        assert result.score == pytest.approx(0.6)
        assert result.passed

    def test_inference_failure_falls_back(self) -> None:
        detector = MlSubjectDetector()
        detector._net = Mock()
        image = textured_scene()
        with patch.object(detector, "infer", side_effect=ModelInferenceError("boom")):
            result = detector.score(to_gray(image), image, OverlayKind.NONE, 100.0, True)
        assert result.detector == "pixel"


class TestBestClassConfidence:
    def test_yolo_v5_rows(self) -> None:
        outputs = np.array(
            [[
                [0, 0, 1, 1, 0.9, 0.1, 0.0, 0.5],
                [0, 0, 1, 1, 0.5, 0.0, 0.0, 0.9],
            ]],
            dtype=np.float32,
        )
        assert best_class_confidence(outputs, 2, "yolo_v5") == pytest.approx(0.45)

    def test_yolo_v8_columns(self) -> None:
        # (1, 4 + 3 classes, 10 boxes)
        outputs = np.zeros((1, 7, 10), dtype=np.float32)
        outputs[0, 6, 1] = 0.7
        assert best_class_confidence(outputs, 2, "yolo_v8") == pytest.approx(0.7)

    def test_missing_class_is_zero(self) -> None:
        outputs = np.zeros((1, 3, 7), dtype=np.float32)
        assert best_class_confidence(outputs, 5, "yolo_v5") == 0.0


class TestFactory:
    def test_pixel_type(self) -> None:
        assert isinstance(create_subject_detector(DetectorConfig()), PixelStatsDetector)

    def test_ml_without_model_falls_back_silently(self, tmp_path) -> None:
        config = DetectorConfig(type="ml", model_path=str(tmp_path / "car.onnx"))
        detector = create_subject_detector(config, SubjectConfig(ring_threshold=0.3))
        assert isinstance(detector, PixelStatsDetector)
        assert detector.config.ring_threshold == 0.3
