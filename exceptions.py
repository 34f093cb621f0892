"""Custom exception classes for the capture coach."""

from __future__ import annotations

from typing import Optional


class CaptureCoachError(Exception):
    """Base exception for all capture coach errors."""

    pass


class SourceError(CaptureCoachError):
    """Base exception for video source errors."""

    def __init__(self, message: str, source_id: Optional[str] = None):
        self.source_id = source_id
        super().__init__(message)


class SourceUnavailableError(SourceError):
    """Raised when a video source cannot be acquired (missing, busy or denied)."""

    pass


class SourceReadError(SourceError):
    """Raised when an open video source fails to deliver a frame."""

    pass


class AnalysisError(CaptureCoachError):
    """Raised when a frame cannot be analyzed."""

    pass


class CaptureError(CaptureCoachError):
    """Base exception for snapshot and artifact errors."""

    pass


class SnapshotEncodeError(CaptureError):
    """Raised when a full-resolution snapshot cannot be encoded."""

    pass


class CaptureStateError(CaptureError):
    """Raised when an artifact operation is attempted in the wrong gate state."""

    pass


class ConfigError(CaptureCoachError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is invalid or corrupted."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)


class DetectorError(CaptureCoachError):
    """Base exception for subject detector errors."""

    pass


class ModelLoadError(DetectorError):
    """Raised when ML model fails to load."""

    pass


class ModelInferenceError(DetectorError):
    """Raised when ML model inference fails."""

    pass
