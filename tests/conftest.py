from __future__ import annotations

from dataclasses import dataclass, field
import json
import os
from typing import Any

import pytest

from phish_email_analyzer.domain.models import AnalysisRequest, ModelConfig, ModelResponse, ToolCall, ToolSettings
from phish_email_analyzer.tools.registry import ToolRegistry


def verdict_json(**overrides: Any) -> str:
    payload: dict[str, Any] = {
        "isPhishing": True,
        "confidenceScore": 92,
        "suspiciousPoints": ["urgent password reset", "sender domain mismatch"],
        "explanation": "The email pressures the reader to reset a password on a look-alike domain.",
        "riskLevel": "high",
    }
    payload.update(overrides)
    return json.dumps(payload, ensure_ascii=False)


def tool_reply(*names: str, args: dict[str, Any] | None = None) -> ModelResponse:
    calls = tuple(
        ToolCall(name=name, args=args if args is not None else {"urls": ["https://bit.ly/xyz"]}, id=f"call_{i}")
        for i, name in enumerate(names)
    )
    return ModelResponse(content="", tool_calls=calls)


@dataclass
class FakeChatModel:
    """Scripted model handle; the last reply repeats once the script runs out."""

    replies: list[Any]
    supports_tool_calling: bool = True
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    bound_tools: tuple[dict[str, Any], ...] = ()

    def bind_tools(self, tool_schemas):
        self.bound_tools = tuple(tool_schemas)
        return self

    def invoke(self, messages):
        self.calls.append(tuple(messages))
        item = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            return ModelResponse(content=item)
        return item


@dataclass
class StubSearchBackend:
    results: list[dict[str, str]] = field(default_factory=list)
    error: Exception | None = None
    name: str = "stub"
    queries: list[tuple[str, int]] = field(default_factory=list)

    def search(self, query: str, max_results: int) -> list[dict[str, str]]:
        self.queries.append((query, max_results))
        if self.error is not None:
            raise self.error
        return self.results[:max_results]


def completion_payload(content: str = "", tool_calls: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {"choices": [{"message": message}]}


@pytest.fixture
def search_backend() -> StubSearchBackend:
    return StubSearchBackend(
        results=[{"title": "Example Corp", "url": "https://example.com", "snippet": "Official site"}]
    )


@pytest.fixture
def registry(search_backend) -> ToolRegistry:
    return ToolRegistry.default(backend_factory=lambda api_key: search_backend)


@pytest.fixture
def model_config() -> ModelConfig:
    return ModelConfig(provider="openai", model="gpt-4o-mini", temperature=0.1, api_key="sk-test-key")


@pytest.fixture
def make_request(model_config):
    def _make(
        text: str = "Subject: Reset your password\n\nClick http://203.0.113.5/verify-login now.",
        *,
        use_tools: bool = True,
        **settings: Any,
    ) -> AnalysisRequest:
        return AnalysisRequest(
            email_content=text,
            llm_config=model_config,
            use_tools=use_tools,
            tool_settings=ToolSettings(**settings),
        )

    return _make


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in (
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
        "TAVILY_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.startswith("PHISH_ANALYZER_"):
            monkeypatch.delenv(name, raising=False)
