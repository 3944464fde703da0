"""Pure transition function for the analysis loop."""

from __future__ import annotations

from phish_email_analyzer.core.errors import cancelled_error
from phish_email_analyzer.orchestrator.prompts import has_completion_marker
from phish_email_analyzer.orchestrator.state import (
    CancelRequested,
    Completed,
    ContinueAnalysis,
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
from phish_email_analyzer.orchestrator.validator import error_result


class InvalidTransition(RuntimeError):
    def __init__(self, state: LoopState, event: LoopEvent):
        super().__init__(f"no transition from {type(state).__name__} on {type(event).__name__}")
        self.state = state
        self.event = event


def _stops_tool_loop(content: str, policy: LoopPolicy) -> bool:
    return policy.honor_completion_marker and has_completion_marker(content)


def transition(state: LoopState, event: LoopEvent, policy: LoopPolicy) -> LoopState:
    if isinstance(state, Completed):
        raise InvalidTransition(state, event)

    if isinstance(event, CancelRequested):
        error = cancelled_error()
        return Completed(round=state.round, result=error_result(error), error=error)

    if isinstance(state, InitialAnalysis):
        if isinstance(event, ModelReplied):
            response = event.response
            wants_tools = response.has_tool_calls and policy.tools_enabled
            if wants_tools and not _stops_tool_loop(response.content, policy):
                return ToolCalling(round=1, calls=response.tool_calls)
            return FinalAnalysis(round=0, answer=response.content)
        if isinstance(event, ModelFailed):
            return Completed(round=0, result=error_result(event.error), error=event.error)

    elif isinstance(state, ToolCalling):
        if isinstance(event, ToolsFinished):
            return ContinueAnalysis(round=state.round)

    elif isinstance(state, ContinueAnalysis):
        if isinstance(event, ModelReplied):
            response = event.response
            more_tools = response.has_tool_calls and state.round < policy.round_cap
            if more_tools and not _stops_tool_loop(response.content, policy):
                return ToolCalling(round=state.round + 1, calls=response.tool_calls)
            return FinalAnalysis(round=state.round)
        if isinstance(event, ModelFailed):
            return FinalAnalysis(round=state.round)

    elif isinstance(state, FinalAnalysis):
        if isinstance(event, VerdictReady):
            return Completed(round=state.round, result=event.result, error=event.error)
        if state.answer is None:
            if isinstance(event, ModelReplied):
                return FinalAnalysis(round=state.round, answer=event.response.content)
            if isinstance(event, ModelFailed):
                if event.fallback_answer is not None:
                    return FinalAnalysis(round=state.round, answer=event.fallback_answer, degraded=True)
                return Completed(round=state.round, result=error_result(event.error), error=event.error)

    raise InvalidTransition(state, event)
