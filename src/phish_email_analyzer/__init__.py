"""LLM-driven phishing email analysis with a bounded tool loop."""

from phish_email_analyzer.core.errors import AnalysisError, ConfigError, ErrorKind
from phish_email_analyzer.domain.models import AnalysisRequest, AnalysisResult, ModelConfig, ToolSettings
from phish_email_analyzer.service import PhishingDetector, analyze_email, build_detector, create_detector

__all__ = [
    "AnalysisError",
    "AnalysisRequest",
    "AnalysisResult",
    "ConfigError",
    "ErrorKind",
    "ModelConfig",
    "PhishingDetector",
    "ToolSettings",
    "analyze_email",
    "build_detector",
    "create_detector",
]
