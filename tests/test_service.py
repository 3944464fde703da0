import threading

import pytest

from phish_email_analyzer.config.settings import AppConfig
from phish_email_analyzer.core.errors import ConfigError
from phish_email_analyzer.domain.models import AnalysisRequest, ModelConfig
from phish_email_analyzer.orchestrator.agent import AgentOrchestrator
from phish_email_analyzer.providers.gateway import ModelGateway
from phish_email_analyzer.service import PhishingDetector, build_detector

from conftest import completion_payload, verdict_json


class _ScriptedCompletion:
    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


def _detector(completion, registry, **kwargs) -> PhishingDetector:
    return PhishingDetector(
        gateway=ModelGateway(completion_fn=completion, retry_backoff_s=0),
        orchestrator=AgentOrchestrator(registry=registry),
        **kwargs,
    )


def test_analyze_returns_verdict_from_first_reply(registry, make_request):
    completion = _ScriptedCompletion(completion_payload(verdict_json()))
    result = _detector(completion, registry).analyze(make_request())

    assert result.is_phishing is True
    assert result.confidence_score == 92
    assert result.risk_level == "high"
    assert result.is_error is False
    assert len(completion.calls) == 1
    assert completion.calls[0]["model"] == "openai/gpt-4o-mini"
    assert {tool["function"]["name"] for tool in completion.calls[0]["tools"]} == set(registry.names)


def test_tool_round_then_verdict(registry, make_request):
    completion = _ScriptedCompletion(
        completion_payload(
            "",
            tool_calls=[{"id": "c1", "function": {"name": "url_analyzer", "arguments": '{"urls": ["http://203.0.113.5/verify-login"]}'}}],
        ),
        completion_payload("Analysis complete, no more tools needed."),
        completion_payload(verdict_json(riskLevel="high")),
    )
    run = _detector(completion, registry).analyze_detailed(make_request())

    assert run.result.risk_level == "high"
    assert run.model_calls == 3
    assert "url_analyzer" in run.ledger.tool_results
    assert any(event.stage == "tool_calling" and event.round == 1 for event in run.trace)


def test_invalid_config_raises_before_any_call(registry, make_request):
    completion = _ScriptedCompletion(completion_payload(verdict_json()))
    request = make_request().model_copy(
        update={"llm_config": ModelConfig(provider="openai", model="gpt-4o", api_key="bad")}
    )
    with pytest.raises(ConfigError):
        _detector(completion, registry).analyze(request)
    assert completion.calls == []


def test_empty_content_is_an_error_result(registry, make_request):
    completion = _ScriptedCompletion(completion_payload(verdict_json()))
    run = _detector(completion, registry).analyze_detailed(make_request("   \n"))

    assert run.result.is_error is True
    assert run.error.code == "empty_content"
    assert run.model_calls == 0
    assert completion.calls == []
    assert run.trace[0].stage == "input"
    assert run.trace[0].code == "empty_content"


def test_oversized_content_is_rejected(registry, make_request):
    completion = _ScriptedCompletion(completion_payload(verdict_json()))
    run = _detector(completion, registry, max_email_chars=20).analyze_detailed(make_request("x" * 50))
    assert run.result.is_error is True
    assert completion.calls == []


def test_encrypted_content_is_flagged_and_analyzed(registry, make_request):
    completion = _ScriptedCompletion(completion_payload(verdict_json(isPhishing=False, riskLevel="low")))
    text = "Subject: hi\n\n-----BEGIN PGP MESSAGE-----\nhQEMA...\n-----END PGP MESSAGE-----"
    run = _detector(completion, registry).analyze_detailed(make_request(text, use_tools=False))

    assert run.result.risk_level == "low"
    assert run.trace[0].status == "warning"
    assert run.trace[0].data["encryption_type"] == "PGP"
    user_prompt = completion.calls[0]["messages"][1]["content"]
    assert "PGP" in user_prompt


def test_connection_failure_becomes_error_result(registry, make_request):
    completion = _ScriptedCompletion(Exception("401 Unauthorized"))
    result = _detector(completion, registry).analyze(make_request())
    assert result.is_error is True
    assert result.error_message == "API key is invalid or has expired."


def test_cancelled_run_makes_no_model_call(registry, make_request):
    completion = _ScriptedCompletion(completion_payload(verdict_json()))
    cancel = threading.Event()
    cancel.set()
    result = _detector(completion, registry).analyze(make_request(), cancel_event=cancel)
    assert result.is_error is True
    assert completion.calls == []


def test_build_detector_uses_app_config(registry):
    config = AppConfig(round_cap=3, max_email_chars=1000, request_timeout_s=15, max_retries=1)
    detector = build_detector(config, registry=registry)

    assert detector.registry is registry
    assert detector.orchestrator.round_cap == 3
    assert detector.max_email_chars == 1000
    assert detector.gateway.timeout_s == 15.0
    assert detector.gateway.max_retries == 1


def test_request_accepts_camel_case_payload():
    request = AnalysisRequest.model_validate(
        {
            "emailContent": "hello",
            "modelConfig": {"provider": "openai", "model": "gpt-4o", "apiKey": "sk-x"},
            "useTools": True,
            "toolSettings": {"enabledTools": ["url_analyzer"]},
        }
    )
    assert request.llm_config.api_key == "sk-x"
    assert request.tool_settings.enabled_tools == frozenset({"url_analyzer"})
