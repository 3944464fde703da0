import requests

from phish_email_analyzer.tools import web_search as web_search_module
from phish_email_analyzer.tools.web_search import (
    DuckDuckGoSearchBackend,
    TavilySearchBackend,
    backend_for,
    web_search,
)

from conftest import StubSearchBackend


class _FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


def test_search_normalizes_results(search_backend):
    out = web_search("example corp", 3, backend=search_backend)
    assert out["query"] == "example corp"
    assert out["totalResults"] == 1
    assert out["searchResults"][0]["url"] == "https://example.com"
    assert out["riskLevel"] == "low"
    assert out["timestamp"]
    assert search_backend.queries == [("example corp", 3)]


def test_scam_reports_raise_risk():
    backend = StubSearchBackend(
        results=[{"title": "Warning", "url": "https://forum.example/t/1", "snippet": "Known phishing campaign"}]
    )
    out = web_search("paypal-secure-login.tk", backend=backend)
    assert out["riskLevel"] == "medium"
    assert out["suspiciousFeatures"] == ["scam_report:https://forum.example/t/1"]


def test_transport_failure_returns_error_payload():
    backend = StubSearchBackend(error=requests.ConnectionError("offline"))
    out = web_search("example", backend=backend)
    assert out["error"] is True
    assert "ConnectionError" in out["message"]
    assert out["searchResults"] == []


def test_empty_query_and_result_limit(search_backend):
    assert web_search("   ", backend=search_backend)["error"] is True
    web_search("example", 50, backend=search_backend)
    assert search_backend.queries[-1] == ("example", 10)


def test_duckduckgo_backend_flattens_topics(monkeypatch):
    payload = {
        "Heading": "Example",
        "AbstractText": "Example is a test domain.",
        "AbstractURL": "https://example.com",
        "RelatedTopics": [
            {"Text": "Example scam - reports", "FirstURL": "https://duckduckgo.com/a"},
            {"Topics": [{"Text": "Nested topic", "FirstURL": "https://duckduckgo.com/b"}]},
        ],
    }
    seen = {}

    def fake_get(url, params=None, headers=None, timeout=None):
        seen.update(url=url, params=params, timeout=timeout)
        return _FakeResponse(payload)

    monkeypatch.setattr(web_search_module.requests, "get", fake_get)
    results = DuckDuckGoSearchBackend().search("example", 5)

    assert seen["params"]["q"] == "example"
    assert seen["params"]["format"] == "json"
    assert [item["url"] for item in results] == [
        "https://example.com",
        "https://duckduckgo.com/a",
        "https://duckduckgo.com/b",
    ]
    assert results[1]["title"] == "Example scam"


def test_tavily_backend_posts_api_key(monkeypatch):
    seen = {}

    def fake_post(url, json=None, timeout=None):
        seen.update(url=url, json=json)
        return _FakeResponse({"results": [{"title": "T", "url": "https://t.example", "content": "body"}]})

    monkeypatch.setattr(web_search_module.requests, "post", fake_post)
    results = TavilySearchBackend(api_key="tvly-123").search("example", 2)

    assert seen["json"] == {"api_key": "tvly-123", "query": "example", "max_results": 2}
    assert results == [{"title": "T", "url": "https://t.example", "snippet": "body"}]


def test_backend_selection_follows_api_key():
    assert isinstance(backend_for(None), DuckDuckGoSearchBackend)
    assert isinstance(backend_for("tvly-123"), TavilySearchBackend)
