"""Video source abstraction for the capture coach."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from contracts import Frame


@dataclass(frozen=True)
class SourceStats:
    fps_avg: float
    fps_instant: float
    frames_read: int
    dropped_frames: int
    snapshots: int


class VideoSource(ABC):
    """A live feed with a downsampled analysis stream and full-resolution snapshots.

    Implementations must make ``close`` idempotent: the coach calls it on every
    exit path, including after a failed ``open``.
    """

    @abstractmethod
    def open(self) -> None:
        """Acquire the device. Raises SourceUnavailableError on failure."""

    @abstractmethod
    def read_frame(self, timeout_ms: int) -> Frame:
        """Read the next frame at analysis resolution."""

    @abstractmethod
    def snapshot(self) -> Frame:
        """Return the current frame at full resolution."""

    @abstractmethod
    def get_stats(self) -> SourceStats:
        """Return capture diagnostics."""

    @abstractmethod
    def close(self) -> None:
        """Release the device."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the device is currently held."""
