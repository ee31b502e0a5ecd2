"""Streaming chat model on top of the provider's shared chat session."""

from __future__ import annotations

import asyncio
import json
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from local_llm_lib.llm_core import (
    BaseMessage,
    CallOptions,
    CancellationToken,
    FinishEvent,
    GenerateResult,
    GenerationCancelledError,
    GenerationError,
    GenericLanguageModel,
    PendingToolCall,
    ReasoningContent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ReasoningStartEvent,
    StreamEvent,
    StreamResult,
    TextContent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolCallContent,
    ToolCallEvent,
    UserMessage,
    get_logger,
)
from local_llm_lib.llm_core.messages import message_text
from .history import convert_to_chat_history, extract_prompt_text, has_tool_results
from .native import ThoughtSegment
from .session import ChatSessionFunction, LlamaChatSession, PromptResult, SegmentChunk
from .tool_bridge import TOOL_CALL_CANCEL_REASON, convert_tools

if TYPE_CHECKING:
    from .provider import LlamaCppProvider

logger = get_logger(__name__)

STREAM_CLOSED_REASON = "stream-closed"


class StreamState(Enum):
    IDLE = "idle"
    GENERATING = "generating"
    FINISHING_STOP = "finishing-stop"
    FINISHING_TOOL_CALL = "finishing-tool-call"
    ERRORING = "erroring"
    CLOSED = "closed"


def _new_id() -> str:
    return uuid.uuid4().hex


class _EventBuilder:
    """Turns session callbacks into ordered stream events.

    Text and reasoning each use one id for the whole request. Every span is started
    before its first delta and ended before the finish event. Once the stream is
    closed all further input is ignored.
    """

    def __init__(self) -> None:
        self.state = StreamState.IDLE
        self._text_id: Optional[str] = None
        self._text_open = False
        self._reasoning_id: Optional[str] = None
        self._reasoning_open = False

    @property
    def closed(self) -> bool:
        return self.state is StreamState.CLOSED

    def start(self) -> None:
        self.state = StreamState.GENERATING

    def text(self, delta: str) -> List[StreamEvent]:
        if self.closed or not delta:
            return []
        events: List[StreamEvent] = []
        if not self._text_open:
            self._text_id = self._text_id or _new_id()
            self._text_open = True
            events.append(TextStartEvent(id=self._text_id))
        events.append(TextDeltaEvent(id=self._text_id, delta=delta))
        return events

    def segment(self, chunk: SegmentChunk) -> List[StreamEvent]:
        if self.closed or chunk.segment_type != "thought":
            return []
        events: List[StreamEvent] = []
        if chunk.segment_start_time is not None:
            events.extend(self._open_reasoning())
        if chunk.text:
            events.extend(self._open_reasoning())
            events.append(ReasoningDeltaEvent(id=self._reasoning_id, delta=chunk.text))
        if chunk.segment_end_time is not None:
            events.extend(self._close_reasoning())
        return events

    def tool_call(self, tool_name: str, params: Any) -> List[StreamEvent]:
        if self.closed:
            logger.warning(f"Ignoring call to '{tool_name}': the stream already finished.")
            return []
        self.state = StreamState.FINISHING_TOOL_CALL
        events = self._close_spans()
        events.append(
            ToolCallEvent(tool_call_id=_new_id(), tool_name=tool_name, input=json.dumps(params, default=str))
        )
        events.append(FinishEvent(finish_reason="tool-calls"))
        self.state = StreamState.CLOSED
        return events

    def finish(self) -> List[StreamEvent]:
        if self.closed:
            return []
        self.state = StreamState.FINISHING_STOP
        events = self._close_spans()
        events.append(FinishEvent(finish_reason="stop"))
        self.state = StreamState.CLOSED
        return events

    def fail(self) -> None:
        self.state = StreamState.ERRORING
        self._text_open = self._reasoning_open = False
        self.state = StreamState.CLOSED

    def _open_reasoning(self) -> List[StreamEvent]:
        if self._reasoning_open:
            return []
        self._reasoning_id = self._reasoning_id or _new_id()
        self._reasoning_open = True
        return [ReasoningStartEvent(id=self._reasoning_id)]

    def _close_reasoning(self) -> List[StreamEvent]:
        if not self._reasoning_open:
            return []
        self._reasoning_open = False
        return [ReasoningEndEvent(id=self._reasoning_id)]

    def _close_spans(self) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        if self._text_open:
            self._text_open = False
            events.append(TextEndEvent(id=self._text_id))
        events.extend(self._close_reasoning())
        return events


class LlamaCppLanguageModel(GenericLanguageModel):
    """
    Chat model backed by a local llama.cpp session.

    The session executes function calls itself, while callers of this model expect to
    run tools on their own and resume with the results. Tool handlers therefore only
    record the call and cancel the generation; the call is reported as a ``tool-call``
    followed by ``finish`` with ``tool-calls``. The next request carries the tool
    result in its prompt, which is installed into the session history before
    generation continues.

    Args:
        model_id: Model identifier reported to callers.
        provider: The provider owning the shared session.
    """

    def __init__(self, model_id: str, provider: "LlamaCppProvider"):
        super().__init__(model_id=model_id, provider=provider.provider_id)
        self._provider = provider

    async def do_stream(self, options: CallOptions) -> StreamResult:
        session = await self._provider.get_session()
        prompt_text = self._prepare_session(session, options.prompt)
        return StreamResult(stream=self._stream(session, prompt_text, options))

    async def do_generate(self, options: CallOptions) -> GenerateResult:
        session = await self._provider.get_session()
        prompt_text = self._prepare_session(session, options.prompt)

        token = CancellationToken()
        pending_calls: List[PendingToolCall] = []
        functions = convert_tools(
            options.tools,
            token,
            lambda name, params: pending_calls.append(PendingToolCall(tool_name=name, params=params)),
        )

        result: Optional[PromptResult] = None
        try:
            result = await asyncio.to_thread(
                session.prompt_with_meta, prompt_text, **self._prompt_kwargs(options, token, functions)
            )
        except Exception as exc:
            if not self._is_tool_call_cancellation(exc, token):
                logger.error(f"Generation failed: {exc}", exc_info=True)
                raise GenerationError(f"Generation failed: {exc}") from exc
            logger.debug(f"Ignoring error after tool call ({type(exc).__name__}: {exc}).")

        if pending_calls:
            logger.debug(f"Generation ended with {len(pending_calls)} tool call(s).")
            return GenerateResult(
                content=[
                    ToolCallContent(tool_call_id=call.tool_call_id, tool_name=call.tool_name, input=call.params)
                    for call in pending_calls
                ],
                finish_reason="tool-calls",
            )

        logger.debug(f"Generation finished (stop_reason={result.stop_reason}).")
        content: List[Any] = []
        reasoning = "".join(item.text for item in result.response if isinstance(item, ThoughtSegment))
        if reasoning:
            content.append(ReasoningContent(text=reasoning))
        content.append(TextContent(text=result.response_text))
        return GenerateResult(content=content, finish_reason="stop")

    async def _stream(
        self, session: LlamaChatSession, prompt_text: str, options: CallOptions
    ) -> AsyncIterator[StreamEvent]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[Tuple[str, Any]] = asyncio.Queue()
        token = CancellationToken()
        builder = _EventBuilder()

        def post(kind: str, payload: Any = None) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, (kind, payload))

        functions = convert_tools(options.tools, token, lambda name, params: post("tool-call", (name, params)))
        kwargs = self._prompt_kwargs(
            options,
            token,
            functions,
            on_text_chunk=lambda text: post("text", text),
            on_response_chunk=lambda chunk: post("segment", chunk),
        )

        def run() -> None:
            try:
                result = session.prompt_with_meta(prompt_text, **kwargs)
            except Exception as exc:
                post("error", exc)
            else:
                post("done", result)

        builder.start()
        worker = asyncio.ensure_future(asyncio.to_thread(run))
        try:
            while not builder.closed:
                kind, payload = await queue.get()

                if kind == "text":
                    events = builder.text(payload)
                elif kind == "segment":
                    events = builder.segment(payload)
                elif kind == "tool-call":
                    events = builder.tool_call(*payload)
                elif kind == "done":
                    events = builder.finish()
                else:
                    builder.fail()
                    logger.error(f"Generation failed: {payload}", exc_info=payload)
                    raise GenerationError(f"Generation failed: {payload}") from payload

                for event in events:
                    yield event
        finally:
            if not worker.done():
                # Either a tool call already cancelled the token, or the consumer stopped reading
                token.cancel(STREAM_CLOSED_REASON)
            await worker
            if token.reason == TOOL_CALL_CANCEL_REASON:
                logger.debug("Generation stopped after a tool call.")

    @staticmethod
    def _prepare_session(session: LlamaChatSession, prompt: Sequence[BaseMessage]) -> str:
        """Install the conversation into the session and return the text to prompt with.

        A single message is sent as the prompt on top of the current history. Longer
        conversations, or ones carrying tool results, replace the history; a final user
        message is held out of it and becomes the prompt, otherwise generation
        continues from the history with an empty prompt.
        """
        if len(prompt) <= 1 and not has_tool_results(prompt):
            return extract_prompt_text(prompt)

        last = prompt[-1]
        if isinstance(last, UserMessage):
            session.set_chat_history(convert_to_chat_history(prompt[:-1]))
            return message_text(last)

        session.set_chat_history(convert_to_chat_history(prompt))
        return ""

    @staticmethod
    def _prompt_kwargs(
        options: CallOptions,
        token: CancellationToken,
        functions: Dict[str, ChatSessionFunction],
        **callbacks: Any,
    ) -> Dict[str, Any]:
        return {
            "temperature": options.temperature,
            "top_p": options.top_p,
            "max_tokens": options.max_output_tokens,
            "custom_stop_triggers": options.stop_sequences,
            "cancellation_token": token,
            "stop_on_cancellation": True,
            "functions": functions,
            **callbacks,
        }

    @staticmethod
    def _is_tool_call_cancellation(exc: Exception, token: CancellationToken) -> bool:
        """Whether a generation error is the expected end of a run a tool handler cancelled."""
        if isinstance(exc, GenerationCancelledError):
            return exc.reason == TOOL_CALL_CANCEL_REASON
        return token.reason == TOOL_CALL_CANCEL_REASON
