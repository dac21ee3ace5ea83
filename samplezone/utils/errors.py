"""
Custom exceptions for SampleZone.

This module defines a hierarchy of exceptions for the error conditions
raised by decoding, onset detection, feature extraction and clustering.
"""

from typing import Any, Optional


class SampleZoneError(Exception):
    """Base exception for all SampleZone errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class DecodeError(SampleZoneError):
    """Raised when an audio source cannot be decoded."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        super().__init__(message, details={"file_path": file_path})
        self.file_path = file_path


class UnsupportedFormatError(DecodeError):
    """Raised when the container format is not supported."""

    def __init__(self, message: str, format: Optional[str] = None):
        super().__init__(message)
        self.format = format
        self.details = {"format": format}


class EmptyInputError(SampleZoneError):
    """Raised when a source decodes to zero samples."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        super().__init__(message, details={"file_path": file_path})
        self.file_path = file_path


class DegenerateClusteringError(SampleZoneError):
    """Raised when there are too few samples for the requested clustering."""

    def __init__(
        self,
        message: str,
        n_samples: Optional[int] = None,
        requested: Optional[int] = None,
    ):
        super().__init__(message)
        self.n_samples = n_samples
        self.requested = requested
        self.details = {"n_samples": n_samples, "requested": requested}


class AnalysisError(SampleZoneError):
    """Raised when an onset detector fails unexpectedly."""

    def __init__(
        self,
        message: str,
        analyzer_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.analyzer_name = analyzer_name
        self.original_error = original_error
        self.details = {
            "analyzer_name": analyzer_name,
            "original_error": str(original_error) if original_error else None,
        }


class FeatureExtractionError(AnalysisError):
    """Raised when feature extraction fails."""

    def __init__(self, message: str, feature_name: Optional[str] = None):
        super().__init__(message, analyzer_name="feature_extractor")
        self.feature_name = feature_name
        self.details["feature_name"] = feature_name


class ConfigurationError(SampleZoneError):
    """Raised when configuration or options are invalid."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}
