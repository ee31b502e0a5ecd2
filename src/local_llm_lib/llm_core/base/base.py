"""Core abstractions for language model implementations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Annotated, Any, AsyncIterator, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..messages import BaseMessage
from ..stream import FinishReason, StreamEvent, Usage
from ..tools.models import Tool


class CallOptions(BaseModel):
    """A single generation request.

    Attributes:
        prompt: The conversation, oldest message first.
        temperature: Sampling temperature.
        top_p: Nucleus sampling threshold.
        max_output_tokens: Upper bound of generated tokens.
        stop_sequences: Custom strings that end generation.
        tools: Tool declarations the model may call during this request.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    prompt: List[BaseMessage]
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_output_tokens: Optional[int] = None
    stop_sequences: Optional[List[str]] = None
    tools: List[Tool] = Field(default_factory=list)


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ReasoningContent(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str


class ToolCallContent(BaseModel):
    """A tool call returned by ``do_generate``; ``input`` holds the parsed parameters."""

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: Any = None


GeneratedContent = Annotated[Union[TextContent, ReasoningContent, ToolCallContent], Field(discriminator="type")]


class GenerateResult(BaseModel):
    """Normalized non-streaming output returned by model implementations.

    Attributes:
        content: Generated text/reasoning, or the tool calls that stopped generation.
        finish_reason: ``stop`` or ``tool-calls``.
        usage: Token usage (not tracked, all ``None``).
        warnings: Non-fatal issues found while preparing the call.
    """

    content: List[GeneratedContent]
    finish_reason: FinishReason
    usage: Usage = Field(default_factory=Usage)
    warnings: List[str] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.content if isinstance(part, TextContent))

    @property
    def tool_calls(self) -> List[ToolCallContent]:
        return [part for part in self.content if isinstance(part, ToolCallContent)]


@dataclass
class StreamResult:
    """Result of ``do_stream``: the ordered event sequence of one generation."""

    stream: AsyncIterator[StreamEvent]


class GenericLanguageModel(ABC):
    """Abstract base class for streaming chat-completion models.

    Implementations translate ``CallOptions`` to their runtime and report results
    through ``GenerateResult`` or an ordered ``StreamEvent`` sequence.
    """

    specification_version: str = "v2"

    def __init__(self, model_id: str, provider: str):
        self.model_id = model_id
        self.provider = provider

    @abstractmethod
    async def do_generate(self, options: CallOptions) -> GenerateResult:
        """Run one generation and return the aggregated result.

        Args:
            options: The request.

        Returns:
            The final text with ``stop``, or the fired tool calls with ``tool-calls``.
        """
        pass

    @abstractmethod
    async def do_stream(self, options: CallOptions) -> StreamResult:
        """Run one generation and return its events as they are produced.

        Args:
            options: The request.

        Returns:
            A ``StreamResult`` whose ``stream`` yields ``StreamEvent`` objects.
        """
        pass
