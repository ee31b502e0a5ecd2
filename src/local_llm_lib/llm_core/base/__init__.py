"""Re-export the base language model interface and the request/response models shared by implementations."""

from .base import (
    GenericLanguageModel,
    CallOptions,
    GenerateResult,
    StreamResult,
    TextContent,
    ReasoningContent,
    ToolCallContent,
    GeneratedContent,
)

__all__ = [
    "GenericLanguageModel",
    "CallOptions",
    "GenerateResult",
    "StreamResult",
    "TextContent",
    "ReasoningContent",
    "ToolCallContent",
    "GeneratedContent",
]
