"""Domain contracts for phishing analysis."""

from phish_email_analyzer.domain.content import EncryptionNotice, check_email_content, detect_encrypted_content
from phish_email_analyzer.domain.models import (
    AnalysisRequest,
    AnalysisResult,
    ChatMessage,
    ModelConfig,
    ModelResponse,
    ToolCall,
    ToolConfig,
    ToolSettings,
)

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "ChatMessage",
    "EncryptionNotice",
    "ModelConfig",
    "ModelResponse",
    "ToolCall",
    "ToolConfig",
    "ToolSettings",
    "check_email_content",
    "detect_encrypted_content",
]
