"""Provider-agnostic chat model handle built on LiteLLM."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
import json
import logging
import time
from typing import Any, Callable, Protocol

from phish_email_analyzer.core.error_mapping import is_retryable, map_connection_error
from phish_email_analyzer.core.errors import ModelConnectionError
from phish_email_analyzer.domain.models import ChatMessage, ModelConfig, ModelResponse, ToolCall

logger = logging.getLogger(__name__)

CompletionFn = Callable[..., Any]

_LITELLM_PREFIX = {
    "openai": "openai/",
    "anthropic": "anthropic/",
    "google": "gemini/",
}


class ModelHandle(Protocol):
    """What the orchestrator needs from a chat model."""

    supports_tool_calling: bool

    def bind_tools(self, tool_schemas: Sequence[dict[str, Any]]) -> "ModelHandle": ...

    def invoke(self, messages: Sequence[ChatMessage]) -> ModelResponse: ...


def litellm_model_name(provider: str, model: str) -> str:
    prefix = _LITELLM_PREFIX.get(provider, "")
    if prefix and model.startswith(prefix):
        return model
    return f"{prefix}{model}"


def default_completion(**kwargs: Any) -> Any:
    import litellm

    return litellm.completion(**kwargs)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {"_raw_arguments": str(raw)}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def _content_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list):
        parts = [str(_field(item, "text", "") or "") for item in raw]
        return "".join(parts)
    return str(raw)


def parse_completion(response: Any) -> ModelResponse:
    """Normalize an OpenAI-style completion object into a ModelResponse."""

    choices = _field(response, "choices") or []
    if not choices:
        return ModelResponse()
    message = _field(choices[0], "message") or {}
    calls: list[ToolCall] = []
    for index, item in enumerate(_field(message, "tool_calls") or []):
        function = _field(item, "function") or {}
        name = str(_field(function, "name", "") or "").strip()
        if not name:
            continue
        call_id = str(_field(item, "id", "") or "") or f"call_{name}_{index}"
        calls.append(ToolCall(name=name, args=_parse_arguments(_field(function, "arguments")), id=call_id))
    return ModelResponse(content=_content_text(_field(message, "content")), tool_calls=tuple(calls))


@dataclass(frozen=True)
class LiteLLMChatModel:
    """Chat handle for one validated ModelConfig.

    Construction performs no network I/O. `invoke` applies a bounded
    timeout and retries only transient failures.
    """

    config: ModelConfig
    supports_tool_calling: bool = True
    timeout_s: float = 60.0
    max_retries: int = 2
    retry_backoff_s: float = 1.0
    tool_schemas: tuple[dict[str, Any], ...] = ()
    completion_fn: CompletionFn = field(default=default_completion, repr=False, compare=False)

    @property
    def litellm_model(self) -> str:
        return litellm_model_name(self.config.provider, self.config.model)

    def bind_tools(self, tool_schemas: Sequence[dict[str, Any]]) -> "LiteLLMChatModel":
        if not self.supports_tool_calling:
            return self
        return replace(self, tool_schemas=tuple(tool_schemas))

    def _request_kwargs(self, messages: Sequence[ChatMessage]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.litellm_model,
            "messages": [item.to_provider_payload() for item in messages],
            "temperature": self.config.temperature,
            "api_key": self.config.api_key,
            "timeout": self.timeout_s,
            "num_retries": 0,
        }
        if self.tool_schemas:
            kwargs["tools"] = list(self.tool_schemas)
        return kwargs

    def invoke(self, messages: Sequence[ChatMessage]) -> ModelResponse:
        kwargs = self._request_kwargs(messages)
        max_attempts = max(1, int(self.max_retries) + 1)
        for attempt in range(1, max_attempts + 1):
            start = time.perf_counter()
            try:
                response = self.completion_fn(**kwargs)
            except Exception as exc:
                error = map_connection_error(exc)
                if attempt < max_attempts and is_retryable(error):
                    logger.warning(
                        "model call failed (attempt %d/%d, %s); retrying",
                        attempt,
                        max_attempts,
                        error.code,
                    )
                    if self.retry_backoff_s > 0:
                        time.sleep(self.retry_backoff_s * attempt)
                    continue
                logger.error("model call failed: %s (%s)", error.code, error.detail)
                raise ModelConnectionError(error) from exc
            logger.debug(
                "model %s replied in %d ms",
                self.litellm_model,
                int((time.perf_counter() - start) * 1000),
            )
            return parse_completion(response)
        raise AssertionError("unreachable")  # pragma: no cover
