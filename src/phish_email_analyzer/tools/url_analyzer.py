"""URL structure heuristics."""

from __future__ import annotations

import ipaddress
import re
from typing import Any
from urllib.parse import parse_qsl, urlparse

from phish_email_analyzer.tools.common import max_risk, risk_from_flags, tool_report

PHISHING_KEYWORDS = ("secure", "verify", "update", "confirm", "login", "account")
URL_SHORTENERS = (
    "bit.ly",
    "tinyurl.com",
    "t.co",
    "goo.gl",
    "ow.ly",
    "is.gd",
    "buff.ly",
    "rebrand.ly",
    "tiny.cc",
    "rb.gy",
    "cutt.ly",
    "short.link",
)
REDIRECT_PARAM_NAMES = frozenset({"next", "goto", "dest", "destination", "continue", "target"})
MAX_DOMAIN_LENGTH = 50
MAX_SUBDOMAINS = 4

_HOST_PATTERN = re.compile(r"[^\s/<>\"'{}|\\^`]+")


def _split_url(url: str) -> tuple[str, str, str]:
    raw = (url or "").strip()
    if not raw:
        raise ValueError("empty url")
    if "://" not in raw:
        raw = f"http://{raw}"
    parsed = urlparse(raw)
    host = (parsed.hostname or "").strip(".").lower()
    if not host or not _HOST_PATTERN.fullmatch(host):
        raise ValueError(f"no usable host in {url!r}")
    return host, parsed.path or "", parsed.query or ""


def _is_ipv4(host: str) -> bool:
    try:
        ipaddress.IPv4Address(host)
    except ValueError:
        return False
    return True


def _is_shortener(host: str) -> bool:
    return any(host == item or host.endswith(f".{item}") for item in URL_SHORTENERS)


def _is_redirect_param(name: str) -> bool:
    lowered = name.strip().lower()
    return "redirect" in lowered or "url" in lowered or lowered in REDIRECT_PARAM_NAMES


def analyze_single_url(url: str) -> dict[str, Any]:
    try:
        host, path, query = _split_url(url)
    except ValueError:
        return {
            "url": url,
            "domain": "",
            "path": "",
            "riskLevel": "high",
            "features": ["unparsable_url"],
        }

    features: list[str] = []
    is_ip = _is_ipv4(host)
    if len(host) > MAX_DOMAIN_LENGTH:
        features.append("long_domain")
    if is_ip:
        features.append("ip_address_domain")
    else:
        labels = [part for part in host.split(".") if part]
        if len(labels) - 2 > MAX_SUBDOMAINS:
            features.append("excessive_subdomains")

    haystack = f"{host} {path.lower()}"
    for keyword in PHISHING_KEYWORDS:
        if keyword in haystack:
            features.append(f"phishing_keyword:{keyword}")

    if _is_shortener(host):
        features.append("url_shortener")

    try:
        params = parse_qsl(query, keep_blank_values=True)
    except ValueError:
        params = []
    if any(_is_redirect_param(name) for name, _ in params):
        features.append("redirect_parameter")

    return {
        "url": url,
        "domain": host,
        "path": path,
        "riskLevel": risk_from_flags(len(features), high_above=2),
        "features": features,
    }


def analyze_urls(urls: list[str]) -> dict[str, Any]:
    reports = [analyze_single_url(item) for item in urls]
    if not reports:
        return tool_report("low", [], "No URLs were supplied.", urls=[])

    features = [f"{feature} ({item['url']})" for item in reports for feature in item["features"]]
    levels = [item["riskLevel"] for item in reports]
    high = levels.count("high")
    medium = levels.count("medium")
    analysis = f"Analyzed {len(reports)} URL(s): {high} high risk, {medium} medium risk."
    return tool_report(max_risk(levels), features, analysis, urls=reports)
