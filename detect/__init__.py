"""Subject detection module."""

from .ml_detector import MlSubjectDetector, create_subject_detector
from .subject import PixelStatsDetector, SubjectDetector

__all__ = [
    "MlSubjectDetector",
    "PixelStatsDetector",
    "SubjectDetector",
    "create_subject_detector",
]
