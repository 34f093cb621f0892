"""Frame quality analysis."""

from .frame_analyzer import FrameAnalyzer, glare_fraction, laplacian_variance, luma_stats, to_gray
from .level_sensor import LevelSensor

__all__ = [
    "FrameAnalyzer",
    "LevelSensor",
    "glare_fraction",
    "laplacian_variance",
    "luma_stats",
    "to_gray",
]
