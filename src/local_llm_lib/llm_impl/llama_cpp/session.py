"""Stateful chat session over a loaded ``llama_cpp.Llama`` model.

The session owns the chat history and runs function calls synchronously inside its
generation loop: when the model calls a function, the registered handler runs and its
result is fed back to the model before generation continues. Generation stops early
when the request's cancellation token fires.
"""

import copy
import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel

from local_llm_lib.llm_core import CancellationToken, get_logger
from .native import ChatHistoryItem, FunctionCallSegment, ModelTurn, ResponseItem, SystemTurn, ThoughtSegment, UserTurn
from .tool_syntax import ToolCallSyntax, decode_arguments, detect_tool_call_syntax

logger = get_logger(__name__)

THOUGHT_OPEN_TAG = "<think>"
THOUGHT_CLOSE_TAG = "</think>"

StopReason = Literal["stop", "length", "abort"]


@dataclass
class SegmentChunk:
    """A piece of a labeled output segment, reported through ``on_response_chunk``.

    ``segment_start_time`` is set on the chunk that opens a segment and
    ``segment_end_time`` on the chunk that closes it.
    """

    segment_type: Literal["thought"]
    text: str = ""
    segment_start_time: Optional[float] = None
    segment_end_time: Optional[float] = None
    type: Literal["segment"] = "segment"


@dataclass
class ChatSessionFunction:
    """A function the model may call during generation.

    Attributes:
        description: Shown to the model.
        params: JSON schema of the parameters.
        handler: Called synchronously with the parsed parameters; its return value is
            given back to the model as the function result.
    """

    description: str
    params: Dict[str, Any]
    handler: Callable[[Any], Any]


@dataclass
class PromptResult:
    """Outcome of ``LlamaChatSession.prompt_with_meta``."""

    response: List[ResponseItem] = field(default_factory=list)
    response_text: str = ""
    stop_reason: StopReason = "stop"


class _TagSplitter:
    """Splits streamed text into plain text and tagged spans.

    Spans are given as ``kind -> (open tag, close tag)``; a span without close tag runs
    to the end of the output. Tags can arrive split over several chunks, so a trailing
    partial tag is held back until the next chunk decides it. Tags are not recognized
    inside another span.
    """

    def __init__(self, spans: Dict[str, Tuple[str, Optional[str]]]):
        self._spans = spans
        self._buffer = ""
        self.current: Optional[str] = None

    def feed(self, text: str) -> List[Tuple[str, str]]:
        """Returns ``(kind, text)`` pairs; kind is "text", a span kind, or a span kind suffixed -start/-end."""
        self._buffer += text
        events: List[Tuple[str, str]] = []
        while self._buffer:
            if self.current is None:
                opening = self._find_opening()
                if opening is not None:
                    index, kind, tag = opening
                    if index:
                        events.append(("text", self._buffer[:index]))
                    self._buffer = self._buffer[index + len(tag):]
                    self.current = kind
                    events.append((f"{kind}-start", ""))
                    continue
                kind = "text"
                held = max((self._partial_tag_length(open_tag) for open_tag, _ in self._spans.values()), default=0)
            else:
                kind = self.current
                close_tag = self._spans[kind][1]
                index = self._buffer.find(close_tag) if close_tag else -1
                if index >= 0:
                    if index:
                        events.append((kind, self._buffer[:index]))
                    self._buffer = self._buffer[index + len(close_tag):]
                    self.current = None
                    events.append((f"{kind}-end", ""))
                    continue
                held = self._partial_tag_length(close_tag) if close_tag else 0

            ready = self._buffer[: len(self._buffer) - held]
            if ready:
                events.append((kind, ready))
            self._buffer = self._buffer[len(ready):]
            break
        return events

    def flush(self) -> List[Tuple[str, str]]:
        events: List[Tuple[str, str]] = []
        if self._buffer:
            events.append((self.current or "text", self._buffer))
            self._buffer = ""
        if self.current is not None:
            events.append((f"{self.current}-end", ""))
            self.current = None
        return events

    def _find_opening(self) -> Optional[Tuple[int, str, str]]:
        found = [
            (index, kind, open_tag)
            for kind, (open_tag, _) in self._spans.items()
            for index in [self._buffer.find(open_tag)]
            if index >= 0
        ]
        return min(found) if found else None

    def _partial_tag_length(self, tag: str) -> int:
        for length in range(min(len(tag) - 1, len(self._buffer)), 0, -1):
            if self._buffer.endswith(tag[:length]):
                return length
        return 0


class _TurnWriter:
    """Writes generated items into a history turn and keeps a copy of just this call's output.

    The history turn may already hold items from an earlier call when generation
    continues after function results.
    """

    def __init__(self, turn: ModelTurn):
        self.turn = turn
        self.generated = ModelTurn()

    def append_text(self, text: str) -> None:
        self.turn.append_text(text)
        self.generated.append_text(text)

    def append_thought(self, text: str) -> None:
        self.turn.append_thought(text)
        self.generated.append_thought(text)

    def append(self, item: ResponseItem) -> None:
        self.turn.response.append(item)
        self.generated.response.append(item)

    def pop(self) -> None:
        self.turn.response.pop()
        self.generated.response.pop()

    def result(self, stop_reason: StopReason) -> PromptResult:
        return PromptResult(
            response=list(self.generated.response), response_text=self.generated.text, stop_reason=stop_reason
        )


@dataclass
class _Round:
    """What one completion round produced besides the text written to the turn."""

    stop_reason: StopReason = "stop"
    call_blocks: List[str] = field(default_factory=list)
    native_calls: Dict[int, Dict[str, str]] = field(default_factory=dict)


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return str(value)


def encode_function_result(result: Any) -> str:
    """JSON text of a function result as shown to the model; pydantic models are dumped as JSON."""
    return json.dumps(result, default=_json_default)


class LlamaChatSession:
    """A single chat sequence on a loaded model.

    Function calls are read from the model's text output in the markup its chat
    template teaches (see ``tool_syntax``), and from structured ``tool_calls`` deltas
    for chat handlers that produce them.

    Args:
        llama: A loaded ``llama_cpp.Llama`` instance (model plus context). Anything with a
            compatible ``create_chat_completion`` works.
        tool_call_syntax: Function call markup. Detected from the model's chat template
            when omitted.
    """

    def __init__(self, llama: Any, tool_call_syntax: Optional[ToolCallSyntax] = None):
        self.llama = llama
        self.tool_call_syntax = tool_call_syntax or detect_tool_call_syntax(self._chat_template(llama))
        self._history: List[ChatHistoryItem] = []

    def get_chat_history(self) -> List[ChatHistoryItem]:
        return copy.deepcopy(self._history)

    def set_chat_history(self, history: Sequence[ChatHistoryItem]) -> None:
        """Replace the whole chat history."""
        self._history = copy.deepcopy(list(history))
        logger.debug(f"Chat history replaced ({len(self._history)} turns).")

    def prompt_with_meta(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        max_tokens: Optional[int] = None,
        custom_stop_triggers: Optional[List[str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
        stop_on_cancellation: bool = False,
        functions: Optional[Dict[str, ChatSessionFunction]] = None,
        on_text_chunk: Optional[Callable[[str], None]] = None,
        on_response_chunk: Optional[Callable[[SegmentChunk], None]] = None,
    ) -> PromptResult:
        """Generate a model response and append it to the history.

        An empty ``prompt`` continues from the current history (for example after the
        results of earlier function calls were attached to it).

        Args:
            prompt: The user's text, or "" to continue.
            temperature: Sampling temperature.
            top_p: Nucleus sampling threshold.
            max_tokens: Maximum tokens per completion round.
            custom_stop_triggers: Strings that stop generation.
            cancellation_token: Checked between chunks and after every function call.
            stop_on_cancellation: Return the partial response instead of raising when cancelled.
            functions: Functions the model may call, by name.
            on_text_chunk: Receives visible text as it is generated.
            on_response_chunk: Receives thought segment chunks.

        Returns:
            The response items generated by this call, their text, and why generation stopped.

        Raises:
            GenerationCancelledError: If cancelled and ``stop_on_cancellation`` is False.
        """
        if prompt:
            self._history.append(UserTurn(text=prompt))

        writer = _TurnWriter(self._current_model_turn())
        completion_kwargs = self._completion_kwargs(temperature, top_p, max_tokens, custom_stop_triggers, functions)

        while True:
            completion = self._stream_completion(
                writer, completion_kwargs, bool(functions), cancellation_token, on_text_chunk, on_response_chunk
            )
            if completion.stop_reason == "abort":
                return self._abort(writer, cancellation_token, stop_on_cancellation)

            tool_calls = self._collect_calls(completion)
            if not tool_calls:
                return writer.result(completion.stop_reason)

            for name, params in tool_calls:
                self._call_function(writer, name, params, functions or {})
                if cancellation_token is not None and cancellation_token.is_cancelled:
                    # The call was interrupted; its placeholder result must not stay in the history
                    writer.pop()
                    return self._abort(writer, cancellation_token, stop_on_cancellation)

    @staticmethod
    def _chat_template(llama: Any) -> Optional[str]:
        metadata = getattr(llama, "metadata", None)
        if isinstance(metadata, dict):
            return metadata.get("tokenizer.chat_template")
        return None

    def _current_model_turn(self) -> ModelTurn:
        # Continuing after function results extends the model turn that made the calls
        if self._history and isinstance(self._history[-1], ModelTurn):
            return self._history[-1]
        turn = ModelTurn()
        self._history.append(turn)
        return turn

    @staticmethod
    def _abort(writer: "_TurnWriter", token: Optional[CancellationToken], stop_on_cancellation: bool) -> PromptResult:
        if token is not None and not stop_on_cancellation:
            token.raise_if_cancelled()
        logger.debug(f"Generation stopped by cancellation (reason={token.reason if token else None}).")
        return writer.result("abort")

    @staticmethod
    def _completion_kwargs(
        temperature: Optional[float],
        top_p: Optional[float],
        max_tokens: Optional[int],
        stop: Optional[List[str]],
        functions: Optional[Dict[str, ChatSessionFunction]],
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"stream": True}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if top_p is not None:
            kwargs["top_p"] = top_p
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if stop:
            kwargs["stop"] = list(stop)
        if functions:
            # No tool_choice: template handlers only render the declarations, and the
            # function-calling handlers reject automatic choice while streaming
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {"name": name, "description": function.description, "parameters": function.params},
                }
                for name, function in functions.items()
            ]
        return kwargs

    def _stream_completion(
        self,
        writer: "_TurnWriter",
        completion_kwargs: Dict[str, Any],
        parse_calls: bool,
        token: Optional[CancellationToken],
        on_text_chunk: Optional[Callable[[str], None]],
        on_response_chunk: Optional[Callable[[SegmentChunk], None]],
    ) -> _Round:
        """Run one completion round, streaming text and collecting function calls."""
        spans: Dict[str, Tuple[str, Optional[str]]] = {"thought": (THOUGHT_OPEN_TAG, THOUGHT_CLOSE_TAG)}
        if parse_calls:
            spans["call"] = (self.tool_call_syntax.open_tag, self.tool_call_syntax.close_tag)
        splitter = _TagSplitter(spans)
        completion = _Round()

        stream: Iterator[Dict[str, Any]] = iter(
            self.llama.create_chat_completion(messages=self._render_messages(), **completion_kwargs)
        )
        try:
            for chunk in stream:
                if token is not None and token.is_cancelled:
                    completion.stop_reason = "abort"
                    break

                choices = chunk.get("choices") or []
                if not choices:
                    continue
                choice = choices[0]
                delta = choice.get("delta") or {}

                content = delta.get("content")
                if content:
                    self._dispatch(splitter.feed(content), writer, completion, on_text_chunk, on_response_chunk)

                for tool_call in delta.get("tool_calls") or []:
                    entry = completion.native_calls.setdefault(tool_call.get("index", 0), {"name": "", "arguments": ""})
                    function = tool_call.get("function") or {}
                    entry["name"] += function.get("name") or ""
                    entry["arguments"] += function.get("arguments") or ""

                if choice.get("finish_reason") == "length":
                    completion.stop_reason = "length"
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

        self._dispatch(splitter.flush(), writer, completion, on_text_chunk, on_response_chunk)
        return completion

    def _collect_calls(self, completion: _Round) -> List[Tuple[str, Any]]:
        calls: List[Tuple[str, Any]] = []
        for block in completion.call_blocks:
            calls.extend(self.tool_call_syntax.parse(block))
        for _, entry in sorted(completion.native_calls.items()):
            if entry["name"]:
                calls.append((entry["name"], decode_arguments(entry["name"], entry["arguments"])))
        return calls

    @staticmethod
    def _dispatch(
        events: List[Tuple[str, str]],
        writer: "_TurnWriter",
        completion: _Round,
        on_text_chunk: Optional[Callable[[str], None]],
        on_response_chunk: Optional[Callable[[SegmentChunk], None]],
    ) -> None:
        for kind, text in events:
            if kind == "text":
                writer.append_text(text)
                if on_text_chunk is not None:
                    on_text_chunk(text)
            elif kind == "call-start":
                completion.call_blocks.append("")
            elif kind == "call":
                completion.call_blocks[-1] += text
            elif kind == "thought":
                writer.append_thought(text)
                if on_response_chunk is not None:
                    on_response_chunk(SegmentChunk(segment_type="thought", text=text))
            elif kind in ("thought-start", "thought-end") and on_response_chunk is not None:
                marker = time.time()
                if kind == "thought-start":
                    on_response_chunk(SegmentChunk(segment_type="thought", segment_start_time=marker))
                else:
                    on_response_chunk(SegmentChunk(segment_type="thought", segment_end_time=marker))

    @staticmethod
    def _call_function(
        writer: "_TurnWriter", name: str, params: Any, functions: Dict[str, ChatSessionFunction]
    ) -> FunctionCallSegment:
        segment = FunctionCallSegment(name=name, params=params)
        writer.append(segment)

        function = functions.get(name)
        if function is None:
            logger.warning(f"Model called unknown function '{name}'.")
            segment.resolve({"error": f"Unknown function '{name}'."})
            return segment

        logger.debug(f"Calling function '{name}' with {params!r}")
        segment.resolve(function.handler(params))
        return segment

    def _render_messages(self) -> List[Dict[str, Any]]:
        """Render the history as chat-completion messages for the model's chat template."""
        messages: List[Dict[str, Any]] = []
        for turn_index, turn in enumerate(self._history):
            if isinstance(turn, SystemTurn):
                messages.append({"role": "system", "content": turn.text})
            elif isinstance(turn, UserTurn):
                messages.append({"role": "user", "content": turn.text})
            else:
                messages.extend(self._render_model_turn(turn, turn_index))
        return messages

    @staticmethod
    def _render_model_turn(turn: ModelTurn, turn_index: int) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        text = ""
        calls: List[Tuple[str, FunctionCallSegment]] = []

        def flush() -> None:
            nonlocal text, calls
            if not text and not calls:
                return
            message: Dict[str, Any] = {"role": "assistant", "content": text or None}
            if calls:
                # Chat templates serialize the arguments themselves, so they stay an object
                message["tool_calls"] = [
                    {
                        "id": call_id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.params or {}},
                    }
                    for call_id, call in calls
                ]
            messages.append(message)
            for call_id, call in calls:
                messages.append(
                    {"role": "tool", "tool_call_id": call_id, "content": encode_function_result(call.result)}
                )
            text, calls = "", []

        for item_index, item in enumerate(turn.response):
            if isinstance(item, FunctionCallSegment):
                # Pending calls have no result the model could see yet
                if item.resolved:
                    calls.append((f"call_{turn_index}_{item_index}", item))
            elif isinstance(item, ThoughtSegment):
                continue
            else:
                if calls:
                    flush()
                text += item
        flush()
        return messages
