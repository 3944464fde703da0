"""Map provider/transport failures onto stable, user-facing connection errors."""

from __future__ import annotations

from dataclasses import dataclass

from phish_email_analyzer.core.errors import AnalysisError, ErrorKind

_RETRYABLE_CODES = frozenset({"timeout", "network", "server_error"})


@dataclass(frozen=True)
class _Rule:
    code: str
    message: str
    needles: tuple[str, ...]
    requires: tuple[str, ...] = ()
    recoverable: bool = False


# Order matters: the first matching rule wins.
_RULES: tuple[_Rule, ...] = (
    _Rule(
        code="invalid_api_key",
        message="API key is invalid or has expired.",
        needles=("401", "unauthorized", "invalid api key", "invalid x-api-key", "api key not valid", "authentication"),
    ),
    _Rule(
        code="permission_denied",
        message="API key lacks permission for this model; check the key settings.",
        needles=("403", "forbidden", "permission denied"),
    ),
    _Rule(
        code="rate_limited",
        message="Rate limited by the provider; retry later.",
        needles=("429", "rate limit", "ratelimit", "too many requests"),
        recoverable=True,
    ),
    _Rule(
        code="quota_exceeded",
        message="API quota exhausted; check the account balance.",
        needles=("quota", "billing", "insufficient_quota", "credit balance"),
    ),
    _Rule(
        code="model_not_found",
        message="The selected model does not exist or is not available.",
        needles=("not found", "does not exist", "not_found", "404"),
        requires=("model",),
    ),
    _Rule(
        code="content_policy",
        message="The email content was rejected by the provider's usage policy.",
        needles=("policy",),
        requires=("content",),
    ),
    _Rule(
        code="context_too_long",
        message="The email is too long for this model; shorten it and retry.",
        needles=("too long", "context length", "context_length", "maximum context", "too many tokens", "max_tokens"),
    ),
    _Rule(
        code="timeout",
        message="The model provider timed out; retry later.",
        needles=("timeout", "timed out"),
        recoverable=True,
    ),
    _Rule(
        code="network",
        message="Network connection failed; check connectivity and retry.",
        needles=("network", "connection", "fetch", "dns", "unreachable"),
        recoverable=True,
    ),
    _Rule(
        code="server_error",
        message="The model provider is temporarily unavailable; retry later.",
        needles=("500", "502", "503", "504", "internal server error", "service unavailable", "overloaded"),
        recoverable=True,
    ),
)

_STATUS_CODES = {
    401: "invalid_api_key",
    403: "permission_denied",
    429: "rate_limited",
}


def _status_code(exc: BaseException) -> int | None:
    raw = getattr(exc, "status_code", None)
    if raw is None:
        response = getattr(exc, "response", None)
        raw = getattr(response, "status_code", None)
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def map_connection_error(exc: BaseException) -> AnalysisError:
    """Classify an exception raised while talking to a model provider."""

    detail = _describe(exc)
    lowered = detail.lower()
    rules_by_code = {rule.code: rule for rule in _RULES}

    status = _status_code(exc)
    if status in _STATUS_CODES:
        rule = rules_by_code[_STATUS_CODES[status]]
        return _from_rule(rule, detail)
    if status is not None and status >= 500:
        return _from_rule(rules_by_code["server_error"], detail)
    if isinstance(exc, TimeoutError):
        return _from_rule(rules_by_code["timeout"], detail)

    for rule in _RULES:
        if rule.requires and not all(token in lowered for token in rule.requires):
            continue
        if any(needle in lowered for needle in rule.needles):
            return _from_rule(rule, detail)

    raw_message = str(exc).strip()
    message = raw_message if raw_message and len(raw_message) < 100 else (
        "Connection to the model failed; check the network and API settings."
    )
    return AnalysisError(
        kind=ErrorKind.CONNECTION,
        code="unknown",
        message=message,
        detail=detail,
        recoverable=False,
    )


def _from_rule(rule: _Rule, detail: str) -> AnalysisError:
    return AnalysisError(
        kind=ErrorKind.CONNECTION,
        code=rule.code,
        message=rule.message,
        detail=detail,
        recoverable=rule.recoverable,
    )


def is_retryable(error: AnalysisError) -> bool:
    """Only clearly transient failures are retried; auth and quota never are."""

    return error.kind == ErrorKind.CONNECTION and error.code in _RETRYABLE_CODES
