"""Shared error taxonomy and logging helpers."""

from phish_email_analyzer.core.error_mapping import is_retryable, map_connection_error
from phish_email_analyzer.core.errors import (
    AnalysisError,
    ConfigError,
    ErrorKind,
    ModelConnectionError,
    PhishAnalyzerError,
)

__all__ = [
    "AnalysisError",
    "ConfigError",
    "ErrorKind",
    "ModelConnectionError",
    "PhishAnalyzerError",
    "is_retryable",
    "map_connection_error",
]
