"""Analysis loop: states, transitions, driver and verdict validation."""

from phish_email_analyzer.orchestrator.agent import AgentOrchestrator, AgentRun
from phish_email_analyzer.orchestrator.state import ConversationState, LoopPolicy, Step
from phish_email_analyzer.orchestrator.transitions import InvalidTransition, transition

__all__ = [
    "AgentOrchestrator",
    "AgentRun",
    "ConversationState",
    "InvalidTransition",
    "LoopPolicy",
    "Step",
    "transition",
]
