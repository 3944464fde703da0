"""Trace events recorded while one analysis runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from phish_email_analyzer.core.errors import AnalysisError

TraceStatus = Literal["started", "ok", "warning", "error"]


@dataclass(frozen=True)
class TraceEvent:
    """One step of a run; `round` is the tool round the step belongs to."""

    stage: str
    status: TraceStatus
    message: str
    round: int | None = None
    code: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"stage": self.stage, "status": self.status, "message": self.message}
        if self.round is not None:
            payload["round"] = self.round
        if self.code:
            payload["code"] = self.code
        if self.data:
            payload["data"] = dict(self.data)
        return payload


def make_event(
    stage: str,
    status: TraceStatus,
    message: str,
    data: dict[str, Any] | None = None,
    *,
    round: int | None = None,
    code: str | None = None,
) -> TraceEvent:
    return TraceEvent(stage=stage, status=status, message=message, round=round, code=code, data=dict(data or {}))


def error_event(stage: str, error: AnalysisError, *, round: int | None = None) -> TraceEvent:
    return TraceEvent(stage=stage, status="error", message=error.message, round=round, code=error.code)


def trace_payload(events: list[TraceEvent]) -> list[dict[str, Any]]:
    return [event.to_dict() for event in events]
