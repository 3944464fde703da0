"""Turn raw model text into a schema-valid AnalysisResult.

Parsing is layered: strict JSON, then the first balanced ``{...}`` block,
then a cleanup pass (code fences, surrounding prose, trailing commas).
Field coercion failures are reported as tagged errors; ``parse`` never
raises and falls back to a conservative error result instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
import logging
import math
import re
from typing import Any

from phish_email_analyzer.core.errors import AnalysisError, ErrorKind
from phish_email_analyzer.domain.models import (
    MAX_EXPLANATION_CHARS,
    MAX_SUSPICIOUS_POINTS,
    NO_SUSPICIOUS_POINTS,
    AnalysisResult,
    utc_timestamp,
)

logger = logging.getLogger(__name__)

_TRUE_WORDS = frozenset({"true", "是", "yes"})
_FALSE_WORDS = frozenset({"false", "否", "no"})
_RISK_SYNONYMS = (
    ("low", ("低", "low")),
    ("medium", ("中", "medium")),
    ("high", ("高", "high")),
)
_CODE_FENCE = re.compile(r"```(?:json|JSON)?")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_BULLET_PREFIX = re.compile(r"^(?:[-*•]\s+|\d+[.)]\s+)")
ELLIPSIS = "..."
FORMAT_FAILURE_POINT = "model response format was invalid"
INCOMPLETE_POINT = "analysis could not be completed"


class FieldValidationError(ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class ParseOutcome:
    result: AnalysisResult | None = None
    error: AnalysisError | None = None
    layer: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _balanced_blocks(text: str):
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start : index + 1]


def _cleaned(text: str) -> str:
    stripped = _CODE_FENCE.sub("", text)
    first = stripped.find("{")
    last = stripped.rfind("}")
    if first == -1 or last <= first:
        return stripped.strip()
    return _TRAILING_COMMA.sub(r"\1", stripped[first : last + 1])


def extract_json_object(text: str) -> tuple[dict[str, Any], str] | None:
    """Return the decoded object plus the name of the layer that produced it."""

    raw = text or ""
    data = _loads_object(raw.strip())
    if data is not None:
        return data, "strict"
    for block in _balanced_blocks(raw):
        data = _loads_object(block)
        if data is not None:
            return data, "balanced_block"
    data = _loads_object(_cleaned(raw))
    if data is not None:
        return data, "cleaned"
    return None


def _pick(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def coerce_is_phishing(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
    raise FieldValidationError("isPhishing", f"isPhishing must be a boolean, got {value!r}")


def coerce_confidence(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        raise FieldValidationError("confidenceScore", f"confidenceScore must be numeric, got {value!r}")
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise FieldValidationError("confidenceScore", f"confidenceScore must be numeric, got {value!r}") from None
    if math.isnan(number):
        raise FieldValidationError("confidenceScore", "confidenceScore must not be NaN")
    clamped = max(0.0, min(100.0, number))
    return int(math.floor(clamped + 0.5))


def coerce_suspicious_points(value: Any) -> list[str]:
    if value is None:
        return [NO_SUSPICIOUS_POINTS]
    if isinstance(value, str):
        items: list[Any] = [_BULLET_PREFIX.sub("", line.strip()) for line in value.splitlines()]
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise FieldValidationError("suspiciousPoints", "suspiciousPoints must be a list of strings")
    points: list[str] = []
    for item in items:
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            continue
        text = str(item).strip()
        if text:
            points.append(text)
    return points[:MAX_SUSPICIOUS_POINTS] or [NO_SUSPICIOUS_POINTS]


def coerce_explanation(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise FieldValidationError("explanation", "explanation must be a non-empty string")
    text = value.strip()
    if len(text) > MAX_EXPLANATION_CHARS:
        text = text[: MAX_EXPLANATION_CHARS - len(ELLIPSIS)] + ELLIPSIS
    return text


def coerce_risk_level(value: Any) -> str:
    if not isinstance(value, str):
        raise FieldValidationError("riskLevel", f"riskLevel must be a string, got {value!r}")
    lowered = value.strip().lower()
    if lowered in {"low", "medium", "high"}:
        return lowered
    for level, synonyms in _RISK_SYNONYMS:
        if any(token in lowered for token in synonyms):
            return level
    raise FieldValidationError("riskLevel", f"unrecognized riskLevel {value!r}")


def _timestamp(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        try:
            datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return utc_timestamp()
        return value.strip()
    return utc_timestamp()


def validate_payload(data: dict[str, Any]) -> AnalysisResult:
    """Coerce a decoded object into an AnalysisResult or raise FieldValidationError.

    An unrecognized riskLevel is tolerated here and mapped to medium.
    """

    raw_risk = _pick(data, "riskLevel", "risk_level")
    try:
        risk_level = coerce_risk_level(raw_risk)
    except FieldValidationError:
        logger.warning("unrecognized riskLevel %r; defaulting to medium", raw_risk)
        risk_level = "medium"

    error_message = _pick(data, "errorMessage", "error_message")
    return AnalysisResult(
        is_phishing=coerce_is_phishing(_pick(data, "isPhishing", "is_phishing")),
        confidence_score=coerce_confidence(_pick(data, "confidenceScore", "confidence_score")),
        suspicious_points=coerce_suspicious_points(_pick(data, "suspiciousPoints", "suspicious_points")),
        explanation=coerce_explanation(_pick(data, "explanation")),
        risk_level=risk_level,
        timestamp=_timestamp(data.get("timestamp")),
        is_error=_pick(data, "isError", "is_error") is True,
        error_message=error_message if isinstance(error_message, str) and error_message else None,
    )


def try_parse(text: str) -> ParseOutcome:
    extracted = extract_json_object(text)
    if extracted is None:
        return ParseOutcome(
            error=AnalysisError(
                kind=ErrorKind.PARSE,
                code="unparsable_output",
                message="The model response did not contain a JSON verdict.",
                detail=(text or "")[:200],
            )
        )
    data, layer = extracted
    try:
        result = validate_payload(data)
    except FieldValidationError as exc:
        return ParseOutcome(
            layer=layer,
            error=AnalysisError(
                kind=ErrorKind.VALIDATION,
                code=f"invalid_{exc.field}",
                message=str(exc),
            ),
        )
    return ParseOutcome(result=result, layer=layer)


def fallback_result(
    error_message: str,
    *,
    point: str = INCOMPLETE_POINT,
    explanation: str = "The analysis could not be completed. Review the email manually.",
) -> AnalysisResult:
    """Conservative, always well-formed result flagged as an error."""

    return AnalysisResult(
        is_phishing=True,
        confidence_score=50,
        suspicious_points=[point],
        explanation=coerce_explanation(explanation),
        risk_level="medium",
        is_error=True,
        error_message=error_message,
    )


def error_result(error: AnalysisError) -> AnalysisResult:
    return fallback_result(
        error.message,
        explanation=f"{error.message} The analysis could not be completed; review the email manually.",
    )


def parse(text: str) -> AnalysisResult:
    outcome = try_parse(text)
    if outcome.result is not None:
        return outcome.result
    error = outcome.error
    logger.warning("model output rejected (%s): %s", error.code, error.message)
    return fallback_result(
        error.message,
        point=FORMAT_FAILURE_POINT,
        explanation="The model response format was invalid, so no detailed analysis is available. "
        "Review the email manually.",
    )
