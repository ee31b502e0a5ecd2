"""Data models for tool calls flowing between the model and the caller."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import uuid4


@dataclass(frozen=True)
class PendingToolCall:
    """A tool call the runtime made during generation and the caller still has to execute."""

    tool_name: str
    params: Any
    tool_call_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass(frozen=True)
class ToolCallRequest:
    """Represents a normalized tool call request handed to the tool execution loop."""

    name: str
    arguments: Any
    call_id: Optional[str] = None


@dataclass(frozen=True)
class ToolCallResult:
    """Represents the outcome of executing a tool call."""

    name: str
    response: Any
    call_id: Optional[str] = None
    is_error: bool = False
