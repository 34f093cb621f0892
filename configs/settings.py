"""Configuration loading for the capture coach."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

from configs.validator import validate_config
from exceptions import InvalidConfigError
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default.yaml")

DEFAULT_STEPS: Tuple[str, ...] = (
    "Left 3/4 Corner",
    "Right 3/4 Corner",
    "Left Side",
    "Right Side",
    "Front",
    "Rear",
    "Left Front Wheel",
    "Right Front Wheel",
    "Left Rear Wheel",
    "Right Rear Wheel",
    "Windshield / Dash",
    "Under-carriage",
    "Engine Bay",
    "VIN Plate",
    "Any Extra Damage",
)


@dataclass(frozen=True)
class CameraConfig:
    index: int = 0
    width: int = 1280
    height: int = 720
    fps: int = 30
    analysis_width: int = 320  # Downsampled width used for per-tick analysis
    open_timeout_s: float = 5.0
    read_timeout_ms: int = 200


@dataclass(frozen=True)
class AnalyzerConfig:
    sharpness_threshold: float = 45.0  # Laplacian variance
    exposure_mean_min: float = 60.0
    exposure_mean_max: float = 200.0
    exposure_variance_min: float = 1200.0
    glare_channel_threshold: int = 245  # All channels above this count as glare
    glare_fraction_max: float = 0.02
    runtime_budget_ms: float = 30.0


@dataclass(frozen=True)
class SubjectConfig:
    ring_center: Tuple[float, float] = (0.5, 0.6)  # (x of W, y of H)
    ring_radii: Tuple[float, float] = (0.15, 0.27)  # fractions of H
    ring_threshold: float = 0.18
    oval_center: Tuple[float, float] = (0.5, 0.62)
    oval_radii: Tuple[float, float] = (0.33, 0.18)  # (fraction of W, fraction of H)
    oval_threshold: float = 0.12
    oval_coverage_threshold: float = 0.32
    generic_sharpness_threshold: float = 30.0


@dataclass(frozen=True)
class LevelConfig:
    max_roll_deg: float = 5.0
    level_required_overlays: Tuple[str, ...] = ("trapezoid",)


@dataclass(frozen=True)
class GateConfig:
    dwell_ms: float = 800.0
    countdown_s: int = 3
    abort_countdown_on_fail: bool = False
    manual_requires_ready: bool = True


@dataclass(frozen=True)
class CaptureConfig:
    jpeg_quality: int = 92
    preview_quality: int = 90
    preview_max_width: int = 640
    async_encode: bool = True
    encode_budget_ms: float = 250.0


@dataclass(frozen=True)
class DetectorConfig:
    type: str = "pixel"  # "pixel" or "ml"
    model_path: Optional[str] = None
    model_input_size: Tuple[int, int] = (640, 640)
    model_conf_threshold: float = 0.25
    model_class_id: int = 2  # COCO "car"
    model_format: str = "yolo_v5"


@dataclass(frozen=True)
class SessionConfig:
    steps: Tuple[str, ...] = DEFAULT_STEPS


@dataclass(frozen=True)
class AppConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    subject: SubjectConfig = field(default_factory=SubjectConfig)
    level: LevelConfig = field(default_factory=LevelConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    session: SessionConfig = field(default_factory=SessionConfig)


def _pair(value, default: Tuple) -> Tuple:
    if value is None:
        return default
    return tuple(value)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to configuration file (defaults to the bundled default.yaml)

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    try:
        logger.info(f"Loading configuration from {path}")
        if not path.exists():
            raise InvalidConfigError(f"Configuration file not found: {path}")

        data = yaml.safe_load(path.read_text()) or {}

        # Validate against JSON Schema (fills in schema defaults)
        validate_config(data)

    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")

    return config_from_dict(data)


def config_from_dict(data: dict) -> AppConfig:
    """Build an AppConfig from an already-validated mapping."""
    try:
        camera = CameraConfig(**data.get("camera", {}))
        analyzer = AnalyzerConfig(**data.get("analyzer", {}))
        subject_data = dict(data.get("subject", {}))
        defaults = SubjectConfig()
        subject = SubjectConfig(
            ring_center=_pair(subject_data.pop("ring_center", None), defaults.ring_center),
            ring_radii=_pair(subject_data.pop("ring_radii", None), defaults.ring_radii),
            oval_center=_pair(subject_data.pop("oval_center", None), defaults.oval_center),
            oval_radii=_pair(subject_data.pop("oval_radii", None), defaults.oval_radii),
            **subject_data,
        )
        level_data = dict(data.get("level", {}))
        level = LevelConfig(
            max_roll_deg=float(level_data.get("max_roll_deg", LevelConfig.max_roll_deg)),
            level_required_overlays=tuple(
                level_data.get("level_required_overlays", LevelConfig.level_required_overlays)
            ),
        )
        gate = GateConfig(**data.get("gate", {}))
        capture = CaptureConfig(**data.get("capture", {}))
        detector_data = dict(data.get("detector", {}))
        detector = DetectorConfig(
            type=detector_data.get("type", "pixel"),
            model_path=detector_data.get("model_path"),
            model_input_size=_pair(detector_data.get("model_input_size"), (640, 640)),
            model_conf_threshold=float(detector_data.get("model_conf_threshold", 0.25)),
            model_class_id=int(detector_data.get("model_class_id", 2)),
            model_format=detector_data.get("model_format", "yolo_v5"),
        )
        steps = data.get("session", {}).get("steps") or DEFAULT_STEPS
        session = SessionConfig(steps=tuple(steps))

        config = AppConfig(
            camera=camera,
            analyzer=analyzer,
            subject=subject,
            level=level,
            gate=gate,
            capture=capture,
            detector=detector,
            session=session,
        )

        logger.info(
            f"Configuration loaded successfully: {config.detector.type} detector, "
            f"dwell {config.gate.dwell_ms:.0f}ms, {len(config.session.steps)} steps"
        )
        return config

    except (TypeError, ValueError) as e:
        logger.error(f"Failed to construct configuration objects: {e}")
        raise InvalidConfigError(f"Failed to construct configuration: {e}")
