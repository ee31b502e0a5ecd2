"""Chat completion handlers in the OpenAI wire format.

The handlers are plain coroutines over a ``GenericLanguageModel`` so they can be used
without the HTTP layer.
"""

import time
import uuid
from typing import AsyncIterator, List

from openai.types import CompletionUsage
from openai.types.chat import ChatCompletion, ChatCompletionChunk, ChatCompletionMessage
from openai.types.chat.chat_completion import Choice
from openai.types.chat.chat_completion_chunk import Choice as ChunkChoice, ChoiceDelta

from local_llm_lib.llm_core import (
    AssistantMessage,
    BaseMessage,
    CallOptions,
    GenericLanguageModel,
    SystemMessage,
    UserMessage,
    get_logger,
)
from .models import ChatCompletionRequest

logger = get_logger(__name__)


def generate_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"


def to_prompt(request: ChatCompletionRequest) -> List[BaseMessage]:
    """Maps OpenAI chat messages onto the prompt model. Only text content is kept."""
    prompt: List[BaseMessage] = []
    for message in request.messages or []:
        if message.role == "system":
            prompt.append(SystemMessage(content=message.text))
        elif message.role == "user":
            prompt.append(UserMessage(content=message.text))
        elif message.role == "assistant":
            prompt.append(AssistantMessage(content=message.text))
        else:
            logger.warning(f"Unsupported message role: {message.role}")
    return prompt


def to_call_options(request: ChatCompletionRequest) -> CallOptions:
    return CallOptions(
        prompt=to_prompt(request),
        temperature=request.temperature,
        top_p=request.top_p,
        max_output_tokens=request.max_tokens,
        stop_sequences=request.stop_sequences,
    )


async def handle_chat_completion(
    model: GenericLanguageModel, request: ChatCompletionRequest, model_name: str
) -> ChatCompletion:
    """
    Runs a non-streaming chat completion.

    Args:
        model: The language model to generate with.
        request: The parsed request body.
        model_name: Reported as ``model`` when the request does not name one.

    Returns:
        A ``chat.completion`` object with a single choice. Token usage is not tracked
        and reported as zero.
    """
    result = await model.do_generate(to_call_options(request))

    return ChatCompletion(
        id=generate_id(),
        object="chat.completion",
        created=int(time.time()),
        model=request.model or model_name,
        choices=[
            Choice(
                index=0,
                message=ChatCompletionMessage(role="assistant", content=result.text),
                finish_reason="stop",
            )
        ],
        usage=CompletionUsage(prompt_tokens=0, completion_tokens=0, total_tokens=0),
    )


async def handle_streaming_chat_completion(
    model: GenericLanguageModel, request: ChatCompletionRequest, model_name: str
) -> AsyncIterator[str]:
    """
    Runs a streaming chat completion and yields Server-Sent Events lines.

    Every text delta becomes one ``chat.completion.chunk``; the first one carries the
    assistant role. The stream ends with an empty chunk with ``finish_reason`` set to
    ``stop`` and ``data: [DONE]``.

    Args:
        model: The language model to generate with.
        request: The parsed request body.
        model_name: Reported as ``model`` when the request does not name one.

    Yields:
        ``data: ...\\n\\n`` formatted strings.
    """
    completion_id = generate_id()
    created = int(time.time())
    name = request.model or model_name

    def chunk(delta: ChoiceDelta, finish_reason=None) -> str:
        payload = ChatCompletionChunk(
            id=completion_id,
            object="chat.completion.chunk",
            created=created,
            model=name,
            choices=[ChunkChoice(index=0, delta=delta, finish_reason=finish_reason)],
        )
        return f"data: {payload.model_dump_json(exclude_unset=True)}\n\n"

    result = await model.do_stream(to_call_options(request))

    is_first = True
    async for event in result.stream:
        if event.type != "text-delta":
            continue
        if is_first:
            yield chunk(ChoiceDelta(role="assistant", content=event.delta))
            is_first = False
        else:
            yield chunk(ChoiceDelta(content=event.delta))

    yield chunk(ChoiceDelta(), finish_reason="stop")
    yield "data: [DONE]\n\n"
