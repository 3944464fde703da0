"""Deterministic analysis tools and their registry."""

from phish_email_analyzer.tools.registry import ToolDescriptor, ToolExecutionResult, ToolRegistry

__all__ = ["ToolDescriptor", "ToolExecutionResult", "ToolRegistry"]
