"""Scripted stand-ins for ``llama_cpp.Llama`` used across the tests."""

import copy
import json
from typing import Any, Dict, Iterable, List, Optional


def content_chunk(text: str) -> Dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {"content": text}, "finish_reason": None}]}


def finish_chunk(finish_reason: str = "stop") -> Dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {}, "finish_reason": finish_reason}]}


def text_response(*pieces: str, finish_reason: str = "stop") -> List[Dict[str, Any]]:
    """A streamed completion that only produces text."""
    return [content_chunk(piece) for piece in pieces] + [finish_chunk(finish_reason)]


def split_text(text: str, size: int = 7) -> List[str]:
    return [text[start : start + size] for start in range(0, len(text), size)]


def tool_call_response(name: str, arguments: str, text_before: Iterable[str] = ()) -> List[Dict[str, Any]]:
    """A streamed completion calling one function the way template chat handlers return it.

    The call is plain text in Hermes markup, cut into small chunks so that tags and
    JSON arrive split.
    """
    markup = "<tool_call>\n" + json.dumps({"name": name, "arguments": json.loads(arguments)}) + "\n</tool_call>"
    return text_response(*text_before, *split_text(markup))


def native_tool_call_response(name: str, arguments: str) -> List[Dict[str, Any]]:
    """A streamed completion with structured ``tool_calls`` deltas, arguments split over two chunks."""
    split = len(arguments) // 2
    first = {"index": 0, "id": "call_0", "type": "function", "function": {"name": name, "arguments": arguments[:split]}}
    deltas = [
        {"tool_calls": [first]},
        {"tool_calls": [{"index": 0, "function": {"arguments": arguments[split:]}}]},
    ]
    chunks = [{"choices": [{"index": 0, "delta": delta, "finish_reason": None}]} for delta in deltas]
    return chunks + [finish_chunk("tool_calls")]


class FakeLlama:
    """Replays one scripted chunk list per ``create_chat_completion`` call and records the calls."""

    def __init__(self, *responses: List[Dict[str, Any]], chat_template: Optional[str] = None):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False
        self.metadata: Dict[str, str] = {}
        if chat_template is not None:
            self.metadata["tokenizer.chat_template"] = chat_template

    def create_chat_completion(self, messages: List[Dict[str, Any]], **kwargs: Any) -> Iterable[Dict[str, Any]]:
        self.calls.append({"messages": copy.deepcopy(messages), **kwargs})
        if not self.responses:
            raise AssertionError("FakeLlama has no scripted response left.")
        return iter(self.responses.pop(0))

    def n_ctx(self) -> int:
        return 8096

    def close(self) -> None:
        self.closed = True


class FailingLlama(FakeLlama):
    def __init__(self, error: Exception):
        super().__init__()
        self.error = error

    def create_chat_completion(self, messages: List[Dict[str, Any]], **kwargs: Any) -> Iterable[Dict[str, Any]]:
        raise self.error
