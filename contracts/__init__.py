"""Shared data contracts for the capture coach."""

from .types import (
    CaptureArtifact,
    CoachSpec,
    Frame,
    FrameAnalysis,
    OverlayKind,
    PendingArtifact,
    QualityMetrics,
    SubjectScore,
)

__all__ = [
    "CaptureArtifact",
    "CoachSpec",
    "Frame",
    "FrameAnalysis",
    "OverlayKind",
    "PendingArtifact",
    "QualityMetrics",
    "SubjectScore",
]
