"""Model-based subject detector using OpenCV DNN with YOLO-style outputs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from configs.settings import DetectorConfig, SubjectConfig
from contracts import OverlayKind, SubjectScore
from exceptions import ModelInferenceError, ModelLoadError
from log_config.logger import get_logger

from .subject import PixelStatsDetector, SubjectDetector

logger = get_logger(__name__)


class MlSubjectDetector(SubjectDetector):
    """Scores generic overlays by the best detection of ``class_id``.

    Ring and oval overlays keep the region heuristics of the pixel detector,
    which also answers whenever the network fails.
    """

    name = "ml"

    def __init__(
        self,
        model_path: Optional[str] = None,
        input_size: Tuple[int, int] = (640, 640),
        conf_threshold: float = 0.25,
        class_id: int = 2,
        output_format: str = "yolo_v5",
        fallback: Optional[PixelStatsDetector] = None,
    ) -> None:
        self.model_path = model_path
        self.input_size = input_size
        self.conf_threshold = conf_threshold
        self.class_id = class_id
        self.output_format = output_format
        self.fallback = fallback or PixelStatsDetector()
        self._net: Optional[cv2.dnn.Net] = None

    @property
    def available(self) -> bool:
        return self._net is not None

    def load(self) -> None:
        """Load the ONNX network.

        Raises:
            ModelLoadError: If the model is missing or cannot be parsed.
        """
        if self._net is not None:
            return
        if not self.model_path or not Path(self.model_path).exists():
            raise ModelLoadError(f"Model not found: {self.model_path}")
        try:
            self._net = cv2.dnn.readNetFromONNX(str(self.model_path))
        except cv2.error as e:
            raise ModelLoadError(f"Failed to load model {self.model_path}: {e}") from e
        logger.info(f"Loaded subject model from {self.model_path}")

    def score(
        self,
        gray: np.ndarray,
        image: np.ndarray,
        overlay: OverlayKind,
        sharpness: float,
        exposure_ok: bool,
    ) -> SubjectScore:
        if overlay in (OverlayKind.RING, OverlayKind.OVAL) or self._net is None:
            return self.fallback.score(gray, image, overlay, sharpness, exposure_ok)
        try:
            confidence = self.infer(image)
        except ModelInferenceError as e:
            logger.warning(f"Subject model inference failed, using pixel heuristics: {e}")
            return self.fallback.score(gray, image, overlay, sharpness, exposure_ok)
        return SubjectScore(
            score=confidence,
            passed=confidence >= self.conf_threshold and exposure_ok,
            overlay=overlay,
            coverage_ok=confidence >= self.conf_threshold,
            detector=self.name,
        )

    def infer(self, image: np.ndarray) -> float:
        """Best confidence for ``class_id`` in ``image`` (0.0 when absent)."""
        if self._net is None:
            raise ModelInferenceError("Model not loaded")
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        try:
            blob = cv2.dnn.blobFromImage(
                image,
                scalefactor=1 / 255.0,
                size=self.input_size,
                swapRB=True,
                crop=False,
            )
            self._net.setInput(blob)
            outputs = self._net.forward()
        except cv2.error as e:
            raise ModelInferenceError(str(e)) from e
        return best_class_confidence(outputs, self.class_id, self.output_format)


def best_class_confidence(outputs, class_id: int, output_format: str) -> float:
    output = outputs
    if isinstance(outputs, (list, tuple)):
        output = outputs[0]
    output = np.asarray(output)
    if output.ndim == 3:
        output = output[0]
    if output_format == "yolo_v8" and output.shape[0] < output.shape[-1]:
        # v8 exports are (4 + classes, boxes)
        output = output.T
    best = 0.0
    for row in output:
        if output_format == "yolo_v5":
            obj_conf = float(row[4])
            scores = row[5:]
            if class_id >= len(scores):
                continue
            conf = obj_conf * float(scores[class_id])
        else:
            scores = row[4:]
            if class_id >= len(scores):
                continue
            conf = float(scores[class_id])
        if conf > best:
            best = conf
    return float(np.clip(best, 0.0, 1.0))


def create_subject_detector(
    config: Optional[DetectorConfig] = None,
    subject_config: Optional[SubjectConfig] = None,
) -> SubjectDetector:
    """Build the configured detector, probing the model once at startup.

    Falls back to ``PixelStatsDetector`` when the model cannot be loaded.
    """
    config = config or DetectorConfig()
    pixel = PixelStatsDetector(subject_config)
    if config.type != "ml":
        return pixel
    detector = MlSubjectDetector(
        model_path=config.model_path,
        input_size=tuple(config.model_input_size),
        conf_threshold=config.model_conf_threshold,
        class_id=config.model_class_id,
        output_format=config.model_format,
        fallback=pixel,
    )
    try:
        detector.load()
    except ModelLoadError as e:
        logger.info(f"Subject model unavailable ({e}); using pixel heuristics")
        return pixel
    return detector
