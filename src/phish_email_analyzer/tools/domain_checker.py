"""Domain reputation heuristics (offline)."""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlparse

from phish_email_analyzer.tools.common import max_risk, risk_from_flags, tool_report

KNOWN_BRANDS = (
    "paypal",
    "apple",
    "microsoft",
    "google",
    "amazon",
    "facebook",
    "netflix",
    "instagram",
    "linkedin",
    "dropbox",
    "chase",
    "wellsfargo",
    "bankofamerica",
    "citibank",
    "dhl",
    "fedex",
)
IMPERSONATION_PREFIXES = ("secure", "verify", "login", "account", "my", "support", "update")
SUSPICIOUS_TLDS = frozenset({"tk", "ml", "ga", "cf", "click", "download"})
MAX_DIGIT_RATIO = 0.3
MAX_HYPHENS = 2
# Short brands produce too many edit-distance-1 collisions with real words.
TYPOSQUAT_MIN_BRAND_LENGTH = 5


def _levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        curr = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            curr.append(min(curr[j - 1] + 1, prev[j] + 1, prev[j - 1] + cost))
        prev = curr
    return prev[-1]


def normalize_domain(raw: str) -> str:
    value = (raw or "").strip().lower()
    if "://" in value:
        value = urlparse(value).hostname or ""
    elif "@" in value:
        value = value.rsplit("@", 1)[-1]
    value = value.split("/", 1)[0].split(":", 1)[0].strip(".")
    if value.startswith("www."):
        value = value[4:]
    return value


def _impersonated_brands(domain: str) -> list[str]:
    labels = [label for label in domain.split(".") if label]
    if len(labels) < 2:
        return []
    registrable = labels[-2]
    hits: list[str] = []
    for brand in KNOWN_BRANDS:
        for label in labels[:-1]:
            if label == brand:
                continue
            if f"{brand}-" in label or f"-{brand}" in label:
                hits.append(brand)
                break
            if any(label.startswith(f"{prefix}{brand}") for prefix in IMPERSONATION_PREFIXES):
                hits.append(brand)
                break
        else:
            if (
                len(brand) >= TYPOSQUAT_MIN_BRAND_LENGTH
                and registrable != brand
                and _levenshtein(registrable, brand) == 1
            ):
                hits.append(brand)
    return list(dict.fromkeys(hits))


def check_single_domain(raw: str) -> dict[str, Any]:
    domain = normalize_domain(raw)
    if not domain or not re.fullmatch(r"[a-z0-9.\-_]+", domain):
        return {
            "domain": raw,
            "riskLevel": "medium",
            "features": ["invalid_domain"],
        }

    features: list[str] = []
    brands = _impersonated_brands(domain)
    if brands:
        features.append(f"brand_impersonation:{','.join(brands)}")

    digits = sum(ch.isdigit() for ch in domain)
    if digits / len(domain) > MAX_DIGIT_RATIO:
        features.append("high_digit_ratio")

    if domain.count("-") > MAX_HYPHENS:
        features.append("excessive_hyphens")

    tld = domain.rsplit(".", 1)[-1] if "." in domain else ""
    if tld in SUSPICIOUS_TLDS:
        features.append(f"suspicious_tld:{tld}")

    return {
        "domain": domain,
        "riskLevel": risk_from_flags(len(features), high_above=1),
        "features": features,
    }


def check_domains(domains: list[str]) -> dict[str, Any]:
    reports = [check_single_domain(item) for item in domains]
    if not reports:
        return tool_report("low", [], "No domains were supplied.", domains=[])

    features = [f"{feature} ({item['domain']})" for item in reports for feature in item["features"]]
    levels = [item["riskLevel"] for item in reports]
    flagged = [item["domain"] for item in reports if item["riskLevel"] != "low"]
    if flagged:
        analysis = f"Checked {len(reports)} domain(s); suspicious: {', '.join(flagged)}."
    else:
        analysis = f"Checked {len(reports)} domain(s); none looked suspicious."
    return tool_report(max_risk(levels), features, analysis, domains=reports)
