"""Expose provider-agnostic prompt message types shared by model implementations."""

from .models import (
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
    message_text,
)

__all__ = [
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
    "message_text",
]
