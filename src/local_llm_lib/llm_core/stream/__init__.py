"""Stream event models for incremental generation output."""

from .events import (
    FinishReason,
    Usage,
    TextStartEvent,
    TextDeltaEvent,
    TextEndEvent,
    ReasoningStartEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ToolCallEvent,
    FinishEvent,
    StreamEvent,
)

__all__ = [
    "FinishReason",
    "Usage",
    "TextStartEvent",
    "TextDeltaEvent",
    "TextEndEvent",
    "ReasoningStartEvent",
    "ReasoningDeltaEvent",
    "ReasoningEndEvent",
    "ToolCallEvent",
    "FinishEvent",
    "StreamEvent",
]
