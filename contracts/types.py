"""Core data contracts for frame analysis, capture gating, and artifacts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class OverlayKind(str, Enum):
    """On-screen guide shape; also selects the subject heuristic."""

    TRAPEZOID = "trapezoid"
    RING = "ring"
    RECTANGLE = "rectangle"
    OVAL = "oval"
    NONE = "none"

    @classmethod
    def parse(cls, value: "OverlayKind | str") -> "OverlayKind":
        if isinstance(value, OverlayKind):
            return value
        text = str(value).strip().lower()
        if text == "circle":
            return cls.RING
        return cls(text)


@dataclass(frozen=True)
class Frame:
    source_id: str
    frame_index: int
    t_capture_monotonic_ns: int
    image: Any
    width: int
    height: int
    pixfmt: str


@dataclass(frozen=True)
class QualityMetrics:
    sharp: bool
    glare_safe: bool
    exposure_ok: bool
    level_ok: bool
    sharpness: float
    luma_mean: float
    luma_variance: float
    glare_fraction: float
    roll_deg: Optional[float] = None

    @property
    def all_ok(self) -> bool:
        return self.sharp and self.glare_safe and self.exposure_ok and self.level_ok


@dataclass(frozen=True)
class SubjectScore:
    score: float
    passed: bool
    overlay: OverlayKind
    coverage_ok: bool = False
    detector: str = "pixel"


@dataclass(frozen=True)
class FrameAnalysis:
    metrics: QualityMetrics
    subject: SubjectScore
    elapsed_ms: float = 0.0

    @property
    def all_green(self) -> bool:
        """Every quality flag and the subject check pass on this tick."""
        return self.metrics.all_ok and self.subject.passed


@dataclass(frozen=True)
class CoachSpec:
    overlay: OverlayKind
    tip: str
    coin_mode: bool = False


@dataclass
class PendingArtifact:
    """Encoded snapshot awaiting the operator's keep/retake decision."""

    capture_id: int
    image_bytes: Optional[bytes]
    preview: Optional[str]
    captured_at: float
    width: int
    height: int
    released: bool = field(default=False, compare=False)

    def release(self) -> None:
        self.image_bytes = None
        self.preview = None
        self.released = True


@dataclass(frozen=True)
class CaptureArtifact:
    step_name: str
    image_bytes: bytes
    preview: str
    captured_at: float
    width: int
    height: int
