"""Web search tool with pluggable backends."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Protocol

import requests

from phish_email_analyzer.domain.models import utc_timestamp

logger = logging.getLogger(__name__)

DUCKDUCKGO_ENDPOINT = "https://api.duckduckgo.com/"
TAVILY_ENDPOINT = "https://api.tavily.com/search"
DEFAULT_MAX_RESULTS = 5
MAX_RESULTS_LIMIT = 10
SCAM_TERMS = ("scam", "phishing", "fraud", "詐騙", "钓鱼", "釣魚")


class SearchBackend(Protocol):
    name: str

    def search(self, query: str, max_results: int) -> list[dict[str, str]]: ...


def _flatten_topics(topics: list[Any]) -> list[dict[str, Any]]:
    flat: list[dict[str, Any]] = []
    for item in topics:
        if not isinstance(item, dict):
            continue
        if isinstance(item.get("Topics"), list):
            flat.extend(_flatten_topics(item["Topics"]))
        else:
            flat.append(item)
    return flat


@dataclass(frozen=True)
class DuckDuckGoSearchBackend:
    """Keyless DuckDuckGo instant-answer lookups."""

    endpoint: str = DUCKDUCKGO_ENDPOINT
    timeout_s: float = 10.0
    name: str = "duckduckgo"

    def search(self, query: str, max_results: int) -> list[dict[str, str]]:
        response = requests.get(
            self.endpoint,
            params={"q": query, "format": "json", "no_html": 1, "skip_disambig": 1},
            headers={"Accept": "application/json"},
            timeout=self.timeout_s,
        )
        response.raise_for_status()
        data = response.json()
        results: list[dict[str, str]] = []
        if isinstance(data, dict):
            if data.get("AbstractText"):
                results.append(
                    {
                        "title": str(data.get("Heading") or query),
                        "url": str(data.get("AbstractURL") or ""),
                        "snippet": str(data["AbstractText"]),
                    }
                )
            for topic in _flatten_topics(data.get("RelatedTopics") or []):
                text = str(topic.get("Text") or "").strip()
                if not text:
                    continue
                results.append({"title": text.split(" - ", 1)[0], "url": str(topic.get("FirstURL") or ""), "snippet": text})
        return results[:max_results]


@dataclass(frozen=True)
class TavilySearchBackend:
    api_key: str
    endpoint: str = TAVILY_ENDPOINT
    timeout_s: float = 15.0
    name: str = "tavily"

    def search(self, query: str, max_results: int) -> list[dict[str, str]]:
        response = requests.post(
            self.endpoint,
            json={"api_key": self.api_key, "query": query, "max_results": max_results},
            timeout=self.timeout_s,
        )
        response.raise_for_status()
        data = response.json()
        items = data.get("results", []) if isinstance(data, dict) else []
        return [
            {
                "title": str(item.get("title") or ""),
                "url": str(item.get("url") or ""),
                "snippet": str(item.get("content") or ""),
            }
            for item in items
            if isinstance(item, dict)
        ][:max_results]


def backend_for(api_key: str | None) -> SearchBackend:
    if api_key:
        return TavilySearchBackend(api_key=api_key)
    return DuckDuckGoSearchBackend()


def _clamp_max_results(raw: Any) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_MAX_RESULTS
    return max(1, min(MAX_RESULTS_LIMIT, value))


def web_search(query: str, max_results: int = DEFAULT_MAX_RESULTS, *, backend: SearchBackend) -> dict[str, Any]:
    """Run one search; transport failures come back as an error payload."""

    cleaned = (query or "").strip()
    limit = _clamp_max_results(max_results)
    if not cleaned:
        return {
            "query": cleaned,
            "error": True,
            "message": "Search query must not be empty.",
            "timestamp": utc_timestamp(),
        }
    try:
        results = backend.search(cleaned, limit)
    except (requests.RequestException, ValueError) as exc:
        logger.warning("web search via %s failed: %s", backend.name, exc)
        return {
            "query": cleaned,
            "error": True,
            "message": f"Search failed: {type(exc).__name__}",
            "searchResults": [],
            "totalResults": 0,
            "timestamp": utc_timestamp(),
        }

    mentions = [
        item["url"] or item["title"]
        for item in results
        if any(term in f"{item['title']} {item['snippet']}".lower() for term in SCAM_TERMS)
    ]
    risk = "medium" if mentions else "low"
    analysis = f'Search for "{cleaned}" via {backend.name} returned {len(results)} result(s).'
    if mentions:
        analysis += f" {len(mentions)} result(s) mention scams or phishing."
    return {
        "query": cleaned,
        "totalResults": len(results),
        "searchResults": results,
        "analysis": analysis,
        "timestamp": utc_timestamp(),
        "riskLevel": risk,
        "suspiciousFeatures": [f"scam_report:{item}" for item in mentions],
    }
