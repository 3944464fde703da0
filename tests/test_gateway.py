import pytest

from phish_email_analyzer.core.errors import ConfigError, ErrorKind
from phish_email_analyzer.domain.models import ModelConfig
from phish_email_analyzer.providers.catalog import parse_catalog
from phish_email_analyzer.providers.gateway import ModelGateway

from conftest import completion_payload


def _gateway(completion_fn=None) -> ModelGateway:
    return ModelGateway(completion_fn=completion_fn or (lambda **kwargs: completion_payload("OK")), retry_backoff_s=0)


@pytest.mark.parametrize(
    ("config", "code"),
    [
        (ModelConfig(provider="", model="gpt-4o", api_key="sk-x"), "missing_provider"),
        (ModelConfig(provider="openai", model=" ", api_key="sk-x"), "missing_model"),
        (ModelConfig(provider="openai", model="gpt-4o", api_key=""), "missing_api_key"),
        (ModelConfig(provider="openai", model="gpt-4o", api_key="sk-x", temperature=2.5), "invalid_temperature"),
        (ModelConfig(provider="mistral", model="m", api_key="k"), "unsupported_provider"),
        (ModelConfig(provider="openai", model="gpt-4o", api_key="abc"), "invalid_api_key_format"),
        (ModelConfig(provider="anthropic", model="claude", api_key="sk-abc"), "invalid_api_key_format"),
        (ModelConfig(provider="google", model="gemini", api_key="short"), "invalid_api_key_format"),
    ],
)
def test_validate_config_rejects_bad_configs(config, code):
    validation = _gateway().validate_config(config)
    assert validation.valid is False
    assert validation.code == code
    assert validation.reason


def test_create_model_raises_config_error_without_network():
    calls = []
    gateway = _gateway(lambda **kwargs: calls.append(kwargs))
    with pytest.raises(ConfigError) as info:
        gateway.create_model(ModelConfig(provider="openai", model="gpt-4o", api_key="nope"))
    assert info.value.error.kind == ErrorKind.CONFIG
    assert info.value.code == "invalid_api_key_format"
    assert calls == []


def test_create_model_normalizes_and_sets_capabilities():
    gateway = _gateway()
    handle = gateway.create_model(ModelConfig(provider=" Google ", model=" gemini-1.0-pro ", api_key="AIza-long-enough-key"))
    assert handle.config.provider == "google"
    assert handle.config.model == "gemini-1.0-pro"
    assert handle.litellm_model == "gemini/gemini-1.0-pro"
    assert handle.supports_tool_calling is False
    assert handle.timeout_s == 60.0
    assert handle.max_retries == 2


def test_test_connection_reports_success_and_failures(model_config):
    assert _gateway().test_connection(model_config).success is True

    unexpected = _gateway(lambda **kwargs: completion_payload("Hmm?")).test_connection(model_config)
    assert unexpected.success is False

    def denied(**kwargs):
        raise Exception("401 Unauthorized")

    failed = _gateway(denied).test_connection(model_config)
    assert failed.success is False
    assert failed.error == "API key is invalid or has expired."

    invalid = _gateway().test_connection(ModelConfig(provider="openai", model="gpt-4o", api_key=""))
    assert invalid.success is False


def test_key_shape_rules_come_from_the_catalog():
    catalog = parse_catalog(
        {"providers": {"openai": {"name": "OpenAI", "api_key_prefix": "proj-", "api_key_min_length": 12, "models": [{"id": "gpt-4o"}]}}}
    )
    gateway = ModelGateway(catalog=catalog, completion_fn=lambda **kwargs: completion_payload("OK"), retry_backoff_s=0)

    assert gateway.validate_config(ModelConfig(provider="openai", model="gpt-4o", api_key="proj-abcdefgh")).valid
    wrong_prefix = gateway.validate_config(ModelConfig(provider="openai", model="gpt-4o", api_key="sk-abcdefghijk"))
    assert wrong_prefix.code == "invalid_api_key_format"
    assert "proj-" in wrong_prefix.reason
    too_short = gateway.validate_config(ModelConfig(provider="openai", model="gpt-4o", api_key="proj-abc"))
    assert too_short.code == "invalid_api_key_format"
