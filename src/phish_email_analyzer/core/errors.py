"""Error taxonomy for phishing analysis."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    CONFIG = "config"
    CONNECTION = "connection"
    PARSE = "parse"
    VALIDATION = "validation"
    TOOL_EXECUTION = "tool_execution"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AnalysisError:
    """Tagged failure value passed between stages instead of raising.

    `message` is safe to show to end users, `detail` keeps the raw
    underlying text for logs.
    """

    kind: ErrorKind
    code: str
    message: str
    detail: str = ""
    recoverable: bool = False

    def to_payload(self) -> dict[str, object]:
        return {
            "error": True,
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
        }


class PhishAnalyzerError(Exception):
    """Base exception for application-level errors."""

    def __init__(self, error: AnalysisError) -> None:
        super().__init__(error.message)
        self.error = error

    @property
    def code(self) -> str:
        return self.error.code


class ConfigError(PhishAnalyzerError):
    """Raised when a model configuration is rejected before any network call."""


class ModelConnectionError(PhishAnalyzerError):
    """Raised by model handles when the provider call fails."""


def config_error(code: str, message: str) -> ConfigError:
    return ConfigError(AnalysisError(kind=ErrorKind.CONFIG, code=code, message=message))


def cancelled_error() -> AnalysisError:
    return AnalysisError(
        kind=ErrorKind.CANCELLED,
        code="cancelled",
        message="Analysis was cancelled before a verdict was produced.",
        recoverable=True,
    )
