"""Capture module."""

from .camera_device import SourceStats, VideoSource
from .opencv_backend import OpenCVCamera, downsample
from .orientation import ManualOrientation, OrientationSource, Subscription
from .simulated_camera import SCENES, SimulatedCamera

__all__ = [
    "ManualOrientation",
    "OpenCVCamera",
    "OrientationSource",
    "SCENES",
    "SimulatedCamera",
    "SourceStats",
    "Subscription",
    "VideoSource",
    "downsample",
]
