"""Tool execution logic."""

from .tool_loop import ToolExecutionLoop, ToolLoopResult

__all__ = ["ToolExecutionLoop", "ToolLoopResult"]
