"""Tool declarations, the tool registry and schema helpers.

The execution loop lives in ``tools.execution`` and is imported separately, because it
depends on the language model base classes which themselves depend on the tool models.
"""

from .models import (
    ToolDefinition,
    FunctionTool,
    ProviderDefinedTool,
    Tool,
    PendingToolCall,
    ToolCallRequest,
    ToolCallResult,
)
from .registry import ToolRegistry
from .schema import SchemaValidator

__all__ = [
    "ToolDefinition",
    "FunctionTool",
    "ProviderDefinedTool",
    "Tool",
    "PendingToolCall",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolRegistry",
    "SchemaValidator",
]
