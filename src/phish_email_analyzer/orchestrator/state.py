"""Loop states, events and the append-only conversation ledger."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Union

from phish_email_analyzer.core.errors import AnalysisError
from phish_email_analyzer.domain.models import AnalysisResult, ChatMessage, ModelResponse, ToolCall


class Step(str, Enum):
    INITIAL = "initial"
    TOOL_CALLING = "tool_calling"
    CONTINUE_ANALYSIS = "continue_analysis"
    FINAL = "final"
    COMPLETED = "completed"


@dataclass(frozen=True)
class InitialAnalysis:
    step = Step.INITIAL
    round: int = 0


@dataclass(frozen=True)
class ToolCalling:
    step = Step.TOOL_CALLING
    round: int
    calls: tuple[ToolCall, ...]


@dataclass(frozen=True)
class ContinueAnalysis:
    step = Step.CONTINUE_ANALYSIS
    round: int


@dataclass(frozen=True)
class FinalAnalysis:
    """`answer` is None until the model text to parse is known."""

    step = Step.FINAL
    round: int
    answer: str | None = None
    degraded: bool = False


@dataclass(frozen=True)
class Completed:
    step = Step.COMPLETED
    round: int
    result: AnalysisResult
    error: AnalysisError | None = None


LoopState = Union[InitialAnalysis, ToolCalling, ContinueAnalysis, FinalAnalysis, Completed]


@dataclass(frozen=True)
class ModelReplied:
    response: ModelResponse


@dataclass(frozen=True)
class ModelFailed:
    error: AnalysisError
    fallback_answer: str | None = None


@dataclass(frozen=True)
class ToolsFinished:
    results: tuple[Any, ...] = ()


@dataclass(frozen=True)
class VerdictReady:
    result: AnalysisResult
    error: AnalysisError | None = None


@dataclass(frozen=True)
class CancelRequested:
    pass


LoopEvent = Union[ModelReplied, ModelFailed, ToolsFinished, VerdictReady, CancelRequested]


@dataclass(frozen=True)
class LoopPolicy:
    round_cap: int = 5
    tools_enabled: bool = True
    honor_completion_marker: bool = False


@dataclass(frozen=True)
class ConversationState:
    """Immutable ledger for one run; every update returns a new value."""

    messages: tuple[ChatMessage, ...] = ()
    tool_entries: tuple[tuple[str, Any], ...] = ()
    round: int = 0
    step: Step = Step.INITIAL

    def append(self, *messages: ChatMessage) -> "ConversationState":
        return replace(self, messages=self.messages + tuple(messages))

    def record_tool_result(self, name: str, output: Any) -> "ConversationState":
        return replace(self, tool_entries=self.tool_entries + ((name, output),))

    def advance(self, step: Step, round_number: int) -> "ConversationState":
        if round_number < self.round:
            raise ValueError("round counter must not decrease")
        return replace(self, step=step, round=round_number)

    @property
    def tool_results(self) -> dict[str, Any]:
        """Tool name -> output; repeated calls are keyed ``name#2``, ``name#3``..."""

        results: dict[str, Any] = {}
        counts: dict[str, int] = {}
        for name, output in self.tool_entries:
            counts[name] = counts.get(name, 0) + 1
            key = name if counts[name] == 1 else f"{name}#{counts[name]}"
            results[key] = output
        return results

    def assistant_answers(self) -> list[str]:
        """Non-empty assistant texts, newest first."""

        return [item.content for item in reversed(self.messages) if item.role == "assistant" and item.content.strip()]

    def replay(self, upto: int) -> tuple[ChatMessage, ...]:
        """Ledger prefix as the model saw it before message `upto`."""

        if upto < 0:
            upto = len(self.messages) + upto
        return self.messages[: max(0, upto)]
