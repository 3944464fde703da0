"""Structured contracts for analysis requests, conversations and verdicts."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Provider = Literal["openai", "anthropic", "google"]
RiskLevel = Literal["low", "medium", "high"]
Role = Literal["system", "user", "assistant", "tool"]

NO_SUSPICIOUS_POINTS = "no suspicious points found"
MAX_SUSPICIOUS_POINTS = 10
MAX_EXPLANATION_CHARS = 2000
DEFAULT_MAX_EMAIL_CHARS = 50_000


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        protected_namespaces=(),
    )


class ModelConfig(_CamelModel):
    """Provider/model selection; validated by the gateway before use."""

    provider: str
    model: str
    temperature: float = 0.0
    api_key: str = Field(default="", repr=False)


class ToolConfig(_CamelModel):
    api_key: str | None = Field(default=None, repr=False)
    settings: dict[str, Any] = Field(default_factory=dict)


class ToolSettings(_CamelModel):
    enabled_tools: frozenset[str] = Field(
        default_factory=lambda: frozenset(
            {"url_analyzer", "domain_checker", "header_analyzer", "attachment_scanner", "web_search"}
        )
    )
    per_tool_config: dict[str, ToolConfig] = Field(default_factory=dict)

    @field_validator("enabled_tools", mode="before")
    @classmethod
    def _normalize_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(str(item).strip() for item in value if str(item).strip())
        return value

    def config_for(self, name: str) -> ToolConfig:
        return self.per_tool_config.get(name) or ToolConfig()


class AnalysisRequest(_CamelModel):
    """One analysis call: email text plus model and tool configuration."""

    email_content: str
    llm_config: ModelConfig = Field(alias="modelConfig")
    use_tools: bool = False
    tool_settings: ToolSettings = Field(default_factory=ToolSettings)


class ToolCall(_CamelModel):
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    id: str = ""


class ChatMessage(_CamelModel):
    """One immutable entry of the conversation ledger."""

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    def to_provider_payload(self) -> dict[str, Any]:
        """Return the OpenAI-style chat message accepted by LiteLLM."""

        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.role == "assistant" and self.tool_calls:
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.args, ensure_ascii=False)},
                }
                for call in self.tool_calls
            ]
        if self.role == "tool":
            payload["tool_call_id"] = self.tool_call_id or ""
        return payload


class ModelResponse(_CamelModel):
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_message(self) -> ChatMessage:
        return ChatMessage(role="assistant", content=self.content, tool_calls=self.tool_calls)


class AnalysisResult(_CamelModel):
    """Structured phishing verdict returned to callers."""

    is_phishing: bool
    confidence_score: int = Field(ge=0, le=100)
    suspicious_points: list[str] = Field(min_length=1, max_length=MAX_SUSPICIOUS_POINTS)
    explanation: str = Field(min_length=1, max_length=MAX_EXPLANATION_CHARS)
    risk_level: RiskLevel
    timestamp: str = Field(default_factory=utc_timestamp)
    is_error: bool = False
    error_message: str | None = None

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_json_dict(), ensure_ascii=False)
