"""Model gateway: validate configs and build chat handles."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any

from phish_email_analyzer.core.errors import ModelConnectionError, config_error
from phish_email_analyzer.domain.models import ChatMessage, ModelConfig
from phish_email_analyzer.providers.catalog import ModelCatalog, load_catalog
from phish_email_analyzer.providers.litellm_chat import CompletionFn, LiteLLMChatModel, default_completion

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "anthropic", "google")
_CONNECTION_PROBE_TOKENS = ("ok", "success", "成功", "正常", "確認")


@dataclass(frozen=True)
class ConfigValidation:
    valid: bool
    reason: str | None = None
    code: str | None = None


@dataclass(frozen=True)
class ConnectionCheck:
    success: bool
    error: str | None = None


def _invalid(code: str, reason: str) -> ConfigValidation:
    return ConfigValidation(valid=False, reason=reason, code=code)


@dataclass
class ModelGateway:
    """Builds provider-agnostic chat handles from a ModelConfig."""

    catalog: ModelCatalog = field(default_factory=load_catalog)
    timeout_s: float = 60.0
    max_retries: int = 2
    retry_backoff_s: float = 1.0
    completion_fn: CompletionFn = field(default=default_completion, repr=False)

    def validate_config(self, config: ModelConfig) -> ConfigValidation:
        provider = str(config.provider or "").strip().lower()
        if not provider:
            return _invalid("missing_provider", "Provider must not be empty.")
        if not config.model or not config.model.strip():
            return _invalid("missing_model", "Model name must not be empty.")
        if not config.api_key or not config.api_key.strip():
            return _invalid("missing_api_key", "API key must not be empty.")
        if not 0.0 <= float(config.temperature) <= 2.0:
            return _invalid("invalid_temperature", "Temperature must be between 0 and 2.")
        if provider not in SUPPORTED_PROVIDERS:
            return _invalid("unsupported_provider", f"Unsupported provider: {config.provider}.")
        return self._validate_api_key_shape(provider, config.api_key.strip())

    def _validate_api_key_shape(self, provider: str, api_key: str) -> ConfigValidation:
        # Advisory shape check only; the provider is the real authority.
        info = self.catalog.provider(provider)
        if info is None:
            return ConfigValidation(valid=True)
        if info.api_key_prefix and not api_key.startswith(info.api_key_prefix):
            return _invalid(
                "invalid_api_key_format",
                f"{info.name} API keys start with \"{info.api_key_prefix}\".",
            )
        if len(api_key) < info.api_key_min_length:
            return _invalid("invalid_api_key_format", f"{info.name} API key is too short.")
        return ConfigValidation(valid=True)

    def create_model(self, config: ModelConfig) -> LiteLLMChatModel:
        """Return a chat handle or raise ConfigError; never touches the network."""

        validation = self.validate_config(config)
        if not validation.valid:
            raise config_error(validation.code or "invalid_config", validation.reason or "Invalid model config.")
        provider = config.provider.strip().lower()
        normalized = config.model_copy(
            update={"provider": provider, "model": config.model.strip(), "api_key": config.api_key.strip()}
        )
        return LiteLLMChatModel(
            config=normalized,
            supports_tool_calling=self.catalog.supports_tool_calling(provider, normalized.model),
            timeout_s=self.timeout_s,
            max_retries=self.max_retries,
            retry_backoff_s=self.retry_backoff_s,
            completion_fn=self.completion_fn,
        )

    def default_model(self, provider: str) -> str:
        return self.catalog.default_model(provider)

    def test_connection(self, config: ModelConfig) -> ConnectionCheck:
        """Send a tiny probe prompt; report failures instead of raising."""

        validation = self.validate_config(config)
        if not validation.valid:
            return ConnectionCheck(success=False, error=validation.reason)
        handle = self.create_model(config)
        try:
            response = handle.invoke(
                [
                    ChatMessage(role="system", content="You are a helpful assistant."),
                    ChatMessage(role="user", content="Reply with 'OK' to confirm the connection works."),
                ]
            )
        except ModelConnectionError as exc:
            logger.warning("connection test failed for %s/%s: %s", config.provider, config.model, exc.code)
            return ConnectionCheck(success=False, error=exc.error.message)
        content = response.content.lower()
        if any(token in content for token in _CONNECTION_PROBE_TOKENS):
            return ConnectionCheck(success=True)
        return ConnectionCheck(success=False, error="Unexpected reply to the connection probe.")


def gateway_from_settings(settings: Any) -> ModelGateway:
    return ModelGateway(
        timeout_s=float(getattr(settings, "request_timeout_s", 60.0)),
        max_retries=int(getattr(settings, "max_retries", 2)),
    )
