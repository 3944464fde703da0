"""Bounded analyze -> tool loop -> verdict driver."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import threading
from typing import Any

from phish_email_analyzer.core.errors import AnalysisError, ModelConnectionError
from phish_email_analyzer.domain.models import AnalysisRequest, AnalysisResult, ChatMessage
from phish_email_analyzer.orchestrator import prompts
from phish_email_analyzer.orchestrator.state import (
    CancelRequested,
    Completed,
    ContinueAnalysis,
    ConversationState,
    FinalAnalysis,
    InitialAnalysis,
    LoopEvent,
    LoopPolicy,
    LoopState,
    ModelFailed,
    ModelReplied,
    ToolCalling,
    ToolsFinished,
    VerdictReady,
)
from phish_email_analyzer.orchestrator.tracing import TraceEvent, error_event, make_event
from phish_email_analyzer.orchestrator.transitions import transition
from phish_email_analyzer.orchestrator.validator import parse, try_parse
from phish_email_analyzer.providers.litellm_chat import ModelHandle
from phish_email_analyzer.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_SKIPPED_CALL = json.dumps({"error": True, "message": "Tool round limit reached; call skipped."})


@dataclass(frozen=True)
class AgentRun:
    result: AnalysisResult
    ledger: ConversationState
    trace: list[TraceEvent]
    model_calls: int
    error: AnalysisError | None = None


@dataclass
class _RunContext:
    handle: ModelHandle
    request: AnalysisRequest
    ledger: ConversationState
    trace: list[TraceEvent] = field(default_factory=list)
    model_calls: int = 0


@dataclass
class AgentOrchestrator:
    """Drives one request through the loop; holds no per-request state."""

    registry: ToolRegistry
    round_cap: int = 5
    honor_completion_marker: bool = False

    def run(
        self,
        model: ModelHandle,
        request: AnalysisRequest,
        *,
        cancel_event: threading.Event | None = None,
        encryption_warning: str | None = None,
    ) -> AgentRun:
        settings = request.tool_settings
        tools_enabled = bool(request.use_tools and model.supports_tool_calling and self.registry.enabled(settings))
        if request.use_tools and not tools_enabled:
            logger.info("tool calling unavailable for %s; analyzing without tools", request.llm_config.model)
        policy = LoopPolicy(
            round_cap=self.round_cap,
            tools_enabled=tools_enabled,
            honor_completion_marker=self.honor_completion_marker,
        )
        handle = model.bind_tools(self.registry.schemas(settings)) if tools_enabled else model
        ledger = ConversationState().append(
            ChatMessage(role="system", content=prompts.SYSTEM_PROMPT),
            ChatMessage(
                role="user",
                content=prompts.analysis_prompt(request.email_content, encryption_warning=encryption_warning),
            ),
        )
        ctx = _RunContext(handle=handle, request=request, ledger=ledger)
        ctx.trace.append(
            make_event("initial", "started", "analysis started", {"tools_enabled": tools_enabled})
        )

        state: LoopState = InitialAnalysis()
        while not isinstance(state, Completed):
            if cancel_event is not None and cancel_event.is_set():
                event: LoopEvent = CancelRequested()
            else:
                event = self._perform(state, ctx)
            next_state = transition(state, event, policy)
            logger.debug("%s --%s--> %s", state.step.value, type(event).__name__, next_state.step.value)
            ctx.ledger = ctx.ledger.advance(next_state.step, next_state.round)
            state = next_state

        status = "error" if state.result.is_error else "ok"
        ctx.trace.append(
            make_event(
                "completed",
                status,
                state.error.message if state.error else "verdict ready",
                {"model_calls": ctx.model_calls},
                round=state.round,
                code=state.error.code if state.error else None,
            )
        )
        logger.info(
            "analysis finished: risk=%s error=%s model_calls=%d rounds=%d",
            state.result.risk_level,
            state.result.is_error,
            ctx.model_calls,
            state.round,
        )
        return AgentRun(
            result=state.result,
            ledger=ctx.ledger,
            trace=ctx.trace,
            model_calls=ctx.model_calls,
            error=state.error,
        )

    def _perform(self, state: LoopState, ctx: _RunContext) -> LoopEvent:
        if isinstance(state, InitialAnalysis):
            return self._call_model(ctx, "initial", state.round)
        if isinstance(state, ToolCalling):
            return self._run_tools(state, ctx)
        if isinstance(state, ContinueAnalysis):
            ctx.ledger = ctx.ledger.append(
                ChatMessage(role="user", content=prompts.continue_prompt(state.round, self.round_cap))
            )
            return self._call_model(ctx, "continue_analysis", state.round)
        if isinstance(state, FinalAnalysis):
            if state.answer is None:
                return self._final_call(ctx, state.round)
            return self._verdict(state, ctx)
        raise TypeError(f"unexpected state {state!r}")

    def _call_model(self, ctx: _RunContext, stage: str, round: int) -> LoopEvent:
        ctx.model_calls += 1
        try:
            response = ctx.handle.invoke(ctx.ledger.messages)
        except ModelConnectionError as exc:
            ctx.trace.append(error_event(stage, exc.error, round=round))
            return ModelFailed(error=exc.error)
        ctx.ledger = ctx.ledger.append(response.to_message())
        ctx.trace.append(
            make_event(
                stage,
                "ok",
                "model replied",
                {"tool_calls": [call.name for call in response.tool_calls]} if response.tool_calls else None,
                round=round,
            )
        )
        return ModelReplied(response=response)

    def _run_tools(self, state: ToolCalling, ctx: _RunContext) -> LoopEvent:
        settings = ctx.request.tool_settings
        results = []
        # Sequential on purpose: later rounds reason over all results together.
        for call in state.calls:
            result = self.registry.invoke(call.name, call.args, settings)
            ctx.ledger = ctx.ledger.append(
                ChatMessage(role="tool", content=result.to_observation(), tool_call_id=call.id or call.name)
            ).record_tool_result(call.name, result.output)
            if result.error is not None:
                ctx.trace.append(error_event("tool_calling", result.error, round=state.round))
            else:
                ctx.trace.append(
                    make_event(
                        "tool_calling",
                        "ok",
                        f"{call.name} finished",
                        {"tool": call.name, "elapsed_ms": result.elapsed_ms},
                        round=state.round,
                    )
                )
            results.append(result)
        return ToolsFinished(results=tuple(results))

    def _close_pending_calls(self, ctx: _RunContext) -> None:
        messages = ctx.ledger.messages
        if not messages or messages[-1].role != "assistant" or not messages[-1].tool_calls:
            return
        skipped = [
            ChatMessage(role="tool", content=_SKIPPED_CALL, tool_call_id=call.id or call.name)
            for call in messages[-1].tool_calls
        ]
        ctx.ledger = ctx.ledger.append(*skipped)

    def _best_answer(self, ledger: ConversationState) -> str | None:
        for answer in ledger.assistant_answers():
            if try_parse(answer).ok:
                return answer
        return None

    def _final_call(self, ctx: _RunContext, round: int) -> LoopEvent:
        self._close_pending_calls(ctx)
        ctx.ledger = ctx.ledger.append(
            ChatMessage(role="user", content=prompts.final_prompt(ctx.ledger.tool_results))
        )
        event = self._call_model(ctx, "final", round)
        if isinstance(event, ModelFailed):
            return ModelFailed(error=event.error, fallback_answer=self._best_answer(ctx.ledger))
        return event

    def _verdict(self, state: FinalAnalysis, ctx: _RunContext) -> LoopEvent:
        outcome = try_parse(state.answer or "")
        if outcome.result is not None:
            data: dict[str, Any] = {"layer": outcome.layer}
            if state.degraded:
                data["degraded"] = True
            ctx.trace.append(make_event("final", "ok", "verdict parsed", data, round=state.round))
            return VerdictReady(result=outcome.result)
        ctx.trace.append(error_event("final", outcome.error, round=state.round))
        return VerdictReady(result=parse(state.answer or ""), error=outcome.error)
