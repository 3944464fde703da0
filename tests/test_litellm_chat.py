import json

import pytest

from phish_email_analyzer.core.errors import ModelConnectionError
from phish_email_analyzer.domain.models import ChatMessage, ToolCall
from phish_email_analyzer.providers.litellm_chat import LiteLLMChatModel, litellm_model_name, parse_completion

from conftest import completion_payload


class _StatusError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


def _handle(model_config, completion_fn, **kwargs) -> LiteLLMChatModel:
    return LiteLLMChatModel(config=model_config, completion_fn=completion_fn, retry_backoff_s=0, **kwargs)


def test_model_name_prefixes():
    assert litellm_model_name("openai", "gpt-4o") == "openai/gpt-4o"
    assert litellm_model_name("anthropic", "anthropic/claude") == "anthropic/claude"
    assert litellm_model_name("google", "gemini-1.5-pro") == "gemini/gemini-1.5-pro"


def test_parse_completion_reads_tool_calls():
    response = completion_payload(
        "",
        tool_calls=[
            {"id": "abc", "function": {"name": "url_analyzer", "arguments": json.dumps({"urls": ["x"]})}},
            {"function": {"name": "domain_checker", "arguments": "not json"}},
            {"function": {"name": "", "arguments": "{}"}},
        ],
    )
    parsed = parse_completion(response)
    assert [call.name for call in parsed.tool_calls] == ["url_analyzer", "domain_checker"]
    assert parsed.tool_calls[0].args == {"urls": ["x"]}
    assert parsed.tool_calls[1].id == "call_domain_checker_1"
    assert parsed.tool_calls[1].args == {"_raw_arguments": "not json"}
    assert parse_completion({"choices": []}).content == ""


def test_invoke_sends_openai_style_messages(model_config):
    seen = {}

    def fake_completion(**kwargs):
        seen.update(kwargs)
        return completion_payload("hi")

    handle = _handle(model_config, fake_completion).bind_tools([{"type": "function", "function": {"name": "t"}}])
    messages = [
        ChatMessage(role="user", content="q"),
        ChatMessage(role="assistant", tool_calls=(ToolCall(name="t", args={"a": 1}, id="c1"),)),
        ChatMessage(role="tool", content="{}", tool_call_id="c1"),
    ]
    response = handle.invoke(messages)

    assert response.content == "hi"
    assert seen["model"] == "openai/gpt-4o-mini"
    assert seen["timeout"] == 60.0
    assert seen["num_retries"] == 0
    assert seen["tools"][0]["function"]["name"] == "t"
    assert seen["messages"][1]["tool_calls"][0]["function"]["arguments"] == '{"a": 1}'
    assert seen["messages"][2]["tool_call_id"] == "c1"


def test_bind_tools_is_a_no_op_without_tool_support(model_config):
    handle = _handle(model_config, lambda **kwargs: None, supports_tool_calling=False)
    assert handle.bind_tools([{"type": "function"}]) is handle


def test_transient_failures_are_retried(model_config):
    attempts = []

    def flaky(**kwargs):
        attempts.append(1)
        if len(attempts) < 3:
            raise TimeoutError("slow")
        return completion_payload("ok")

    assert _handle(model_config, flaky).invoke([ChatMessage(role="user", content="q")]).content == "ok"
    assert len(attempts) == 3


def test_retry_budget_is_bounded(model_config):
    attempts = []

    def always_down(**kwargs):
        attempts.append(1)
        raise _StatusError("down", 503)

    with pytest.raises(ModelConnectionError) as info:
        _handle(model_config, always_down, max_retries=2).invoke([ChatMessage(role="user", content="q")])
    assert info.value.code == "server_error"
    assert len(attempts) == 3


def test_auth_failures_are_not_retried(model_config):
    attempts = []

    def denied(**kwargs):
        attempts.append(1)
        raise _StatusError("bad key", 401)

    with pytest.raises(ModelConnectionError) as info:
        _handle(model_config, denied).invoke([ChatMessage(role="user", content="q")])
    assert info.value.code == "invalid_api_key"
    assert len(attempts) == 1
