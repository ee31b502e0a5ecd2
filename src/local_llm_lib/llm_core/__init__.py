"""Public exports for the core abstractions and utilities."""

from .logger import get_logger, setup_logging
from .exceptions import (
    LLMProviderError,
    SessionInitializationError,
    ModelResolutionError,
    GenerationError,
    GenerationCancelledError,
    LLMToolError,
    ToolRegistrationError,
    ToolNotFoundError,
    ToolExecutionError,
    ToolValidationError,
)
from .cancellation import CancellationToken
from .messages import (
    BaseMessage,
    SystemMessage,
    UserMessage,
    AssistantMessage,
    ToolMessage,
    Message,
    Prompt,
    TextPart,
    FilePart,
    ReasoningPart,
    ToolCallPart,
    ToolResultPart,
    ToolResultOutput,
)
from .stream import (
    Usage,
    StreamEvent,
    TextStartEvent,
    TextDeltaEvent,
    TextEndEvent,
    ReasoningStartEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ToolCallEvent,
    FinishEvent,
)
from .tools import (
    ToolDefinition,
    FunctionTool,
    ProviderDefinedTool,
    Tool,
    PendingToolCall,
    ToolCallRequest,
    ToolCallResult,
    ToolRegistry,
    SchemaValidator,
)
from .base import (
    GenericLanguageModel,
    CallOptions,
    GenerateResult,
    StreamResult,
    TextContent,
    ReasoningContent,
    ToolCallContent,
)
from .tools.execution import ToolExecutionLoop, ToolLoopResult

__all__ = [
    "get_logger",
    "setup_logging",
    "LLMProviderError",
    "SessionInitializationError",
    "ModelResolutionError",
    "GenerationError",
    "GenerationCancelledError",
    "LLMToolError",
    "ToolRegistrationError",
    "ToolNotFoundError",
    "ToolExecutionError",
    "ToolValidationError",
    "CancellationToken",
    "BaseMessage",
    "SystemMessage",
    "UserMessage",
    "AssistantMessage",
    "ToolMessage",
    "Message",
    "Prompt",
    "TextPart",
    "FilePart",
    "ReasoningPart",
    "ToolCallPart",
    "ToolResultPart",
    "ToolResultOutput",
    "Usage",
    "StreamEvent",
    "TextStartEvent",
    "TextDeltaEvent",
    "TextEndEvent",
    "ReasoningStartEvent",
    "ReasoningDeltaEvent",
    "ReasoningEndEvent",
    "ToolCallEvent",
    "FinishEvent",
    "ToolDefinition",
    "FunctionTool",
    "ProviderDefinedTool",
    "Tool",
    "PendingToolCall",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolRegistry",
    "SchemaValidator",
    "GenericLanguageModel",
    "CallOptions",
    "GenerateResult",
    "StreamResult",
    "TextContent",
    "ReasoningContent",
    "ToolCallContent",
    "ToolExecutionLoop",
    "ToolLoopResult",
]
