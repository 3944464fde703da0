"""Shared risk helpers for the deterministic tools."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

RISK_ORDER = {"low": 0, "medium": 1, "high": 2}


def risk_from_flags(flag_count: int, *, high_above: int) -> str:
    if flag_count > high_above:
        return "high"
    if flag_count >= 1:
        return "medium"
    return "low"


def max_risk(levels: Iterable[str]) -> str:
    best = "low"
    for level in levels:
        if RISK_ORDER.get(level, 0) > RISK_ORDER[best]:
            best = level
    return best


def tool_report(risk_level: str, features: list[str], analysis: str, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "riskLevel": risk_level,
        "suspiciousFeatures": list(dict.fromkeys(features)),
        "analysis": analysis,
    }
    payload.update(extra)
    return payload
