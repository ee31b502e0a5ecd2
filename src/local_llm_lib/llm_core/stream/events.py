"""Stream events emitted by ``GenericLanguageModel.do_stream``.

The sequence follows the AI SDK stream protocol: a ``*-start`` event for an id precedes
every ``*-delta`` for that id, which precede its ``*-end`` event. A stream ends with
exactly one ``finish`` event, unless generation failed.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

FinishReason = Literal["stop", "tool-calls"]


class Usage(BaseModel):
    """Token usage. Token accounting is not implemented, so all counters stay ``None``."""

    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class TextStartEvent(BaseModel):
    type: Literal["text-start"] = "text-start"
    id: str


class TextDeltaEvent(BaseModel):
    type: Literal["text-delta"] = "text-delta"
    id: str
    delta: str


class TextEndEvent(BaseModel):
    type: Literal["text-end"] = "text-end"
    id: str


class ReasoningStartEvent(BaseModel):
    type: Literal["reasoning-start"] = "reasoning-start"
    id: str


class ReasoningDeltaEvent(BaseModel):
    type: Literal["reasoning-delta"] = "reasoning-delta"
    id: str
    delta: str


class ReasoningEndEvent(BaseModel):
    type: Literal["reasoning-end"] = "reasoning-end"
    id: str


class ToolCallEvent(BaseModel):
    """A tool call the consumer has to execute before resuming generation.

    Attributes:
        tool_call_id: Fresh identifier of this call.
        tool_name: Name of the called tool.
        input: JSON-serialized call parameters.
    """

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: str


class FinishEvent(BaseModel):
    type: Literal["finish"] = "finish"
    finish_reason: FinishReason
    usage: Usage = Field(default_factory=Usage)


StreamEvent = Annotated[
    Union[
        TextStartEvent,
        TextDeltaEvent,
        TextEndEvent,
        ReasoningStartEvent,
        ReasoningDeltaEvent,
        ReasoningEndEvent,
        ToolCallEvent,
        FinishEvent,
    ],
    Field(discriminator="type"),
]
