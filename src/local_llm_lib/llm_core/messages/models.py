"""Provider-agnostic prompt models: role-tagged messages and their content parts."""

from abc import ABC
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class TextPart(BaseModel):
    """Plain text content."""

    type: Literal["text"] = "text"
    text: str


class FilePart(BaseModel):
    """Binary or URL file content. Accepted on user messages but never sent to the model."""

    type: Literal["file"] = "file"
    data: Any
    media_type: str


class ReasoningPart(BaseModel):
    """Reasoning ("thinking") text produced by the assistant in an earlier turn."""

    type: Literal["reasoning"] = "reasoning"
    text: str


class ToolCallPart(BaseModel):
    """A tool call the assistant made in an earlier turn.

    Attributes:
        tool_call_id: Identifier that links the call to its result.
        tool_name: Name of the called tool.
        input: Parsed call parameters.
    """

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: Any = None


class ToolResultOutput(BaseModel):
    """Typed tool output. Only ``json`` outputs are unwrapped to their raw value for the model."""

    type: Literal["text", "json", "error-text", "error-json"]
    value: Any


class ToolResultPart(BaseModel):
    """The result of executing a tool call.

    Attributes:
        tool_call_id: Identifier of the call this result answers.
        tool_name: Name of the executed tool.
        output: Either a ``ToolResultOutput`` or any raw value.
    """

    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    output: Any = None


UserContentPart = Annotated[Union[TextPart, FilePart], Field(discriminator="type")]
AssistantContentPart = Annotated[Union[TextPart, ReasoningPart, ToolCallPart], Field(discriminator="type")]


def _coerce_text(value: Any) -> Any:
    if isinstance(value, str):
        return [TextPart(text=value)]
    return value


class BaseMessage(ABC, BaseModel):
    """Base model for messages exchanged with an LLM.

    Attributes:
        role: Role associated with the message.
    """

    role: str


class SystemMessage(BaseMessage):
    """Message authored by the system to steer behavior."""

    role: Literal["system"] = "system"
    content: str


class UserMessage(BaseMessage):
    """Message authored by an end user. A plain string is accepted as a single text part."""

    role: Literal["user"] = "user"
    content: List[UserContentPart]

    @field_validator("content", mode="before")
    @classmethod
    def _coerce_content(cls, value: Any) -> Any:
        return _coerce_text(value)


class AssistantMessage(BaseMessage):
    """Message authored by the assistant, optionally containing reasoning and tool calls."""

    role: Literal["assistant"] = "assistant"
    content: List[AssistantContentPart]

    @field_validator("content", mode="before")
    @classmethod
    def _coerce_content(cls, value: Any) -> Any:
        return _coerce_text(value)

    @property
    def tool_calls(self) -> List[ToolCallPart]:
        """Tool-call parts of this message, in order."""
        return [part for part in self.content if isinstance(part, ToolCallPart)]


class ToolMessage(BaseMessage):
    """Message carrying the results of one or more tool calls."""

    role: Literal["tool"] = "tool"
    content: List[ToolResultPart]


Message = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]

# A prompt may also contain BaseMessage subclasses with roles the translator does not know.
Prompt = List[BaseMessage]


def message_text(message: BaseMessage) -> str:
    """Return the concatenated text of a message.

    String content is returned verbatim, content part lists contribute their
    ``text`` parts only.

    Args:
        message: Any prompt message.

    Returns:
        The message text, or an empty string if it carries none.
    """
    content: Optional[Any] = getattr(message, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(part.text if isinstance(part, TextPart) else "" for part in content)
    return ""
