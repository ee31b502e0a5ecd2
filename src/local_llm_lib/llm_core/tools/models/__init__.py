"""Tool-related data models."""

from .models import ToolDefinition, FunctionTool, ProviderDefinedTool, Tool
from .tool_call import PendingToolCall, ToolCallRequest, ToolCallResult

__all__ = [
    "ToolDefinition",
    "FunctionTool",
    "ProviderDefinedTool",
    "Tool",
    "PendingToolCall",
    "ToolCallRequest",
    "ToolCallResult",
]
