import logging

from local_llm_lib.llm_core import (
    AssistantMessage,
    BaseMessage,
    FilePart,
    ReasoningPart,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolMessage,
    ToolResultOutput,
    ToolResultPart,
    UserMessage,
)
from local_llm_lib.llm_impl.llama_cpp import (
    FunctionCallSegment,
    ModelTurn,
    SystemTurn,
    ThoughtSegment,
    UserTurn,
    convert_to_chat_history,
    extract_prompt_text,
)
from local_llm_lib.llm_impl.llama_cpp.history import has_tool_results, unwrap_tool_output


class DeveloperMessage(BaseMessage):
    role: str = "developer"
    content: str


def _tool_result(name: str, output, call_id: str = "call_1") -> ToolMessage:
    return ToolMessage(content=[ToolResultPart(tool_call_id=call_id, tool_name=name, output=output)])


def test_basic_roles() -> None:
    history = convert_to_chat_history(
        [
            SystemMessage(content="You are terse."),
            UserMessage(content=[TextPart(text="Hi "), FilePart(data="...", media_type="image/png"), TextPart(text="there")]),
            AssistantMessage(content=[ReasoningPart(text="Greet back."), TextPart(text="Hello!")]),
        ]
    )

    assert history[0] == SystemTurn(text="You are terse.")
    assert history[1] == UserTurn(text="Hi there")
    assert isinstance(history[2], ModelTurn)
    assert history[2].response == [ThoughtSegment(text="Greet back."), "Hello!"]


def test_tool_result_resolves_matching_call() -> None:
    history = convert_to_chat_history(
        [
            UserMessage(content="Weather in Berlin?"),
            AssistantMessage(
                content=[ToolCallPart(tool_call_id="call_1", tool_name="get_weather", input={"city": "Berlin"})]
            ),
            _tool_result("get_weather", ToolResultOutput(type="json", value={"temp": 21})),
        ]
    )

    # The tool message does not add a turn of its own
    assert len(history) == 2
    call = history[1].response[0]
    assert isinstance(call, FunctionCallSegment)
    assert call.params == {"city": "Berlin"}
    assert call.resolved
    assert call.result == {"temp": 21}


def test_same_name_calls_resolve_in_order() -> None:
    history = convert_to_chat_history(
        [
            AssistantMessage(
                content=[
                    ToolCallPart(tool_call_id="a", tool_name="lookup", input={"q": 1}),
                    ToolCallPart(tool_call_id="b", tool_name="lookup", input={"q": 2}),
                ]
            ),
            ToolMessage(
                content=[
                    ToolResultPart(tool_call_id="a", tool_name="lookup", output="first"),
                    ToolResultPart(tool_call_id="b", tool_name="lookup", output="second"),
                ]
            ),
        ]
    )

    first, second = history[0].response
    assert (first.result, second.result) == ("first", "second")


def test_result_goes_to_most_recent_pending_call() -> None:
    history = convert_to_chat_history(
        [
            AssistantMessage(content=[ToolCallPart(tool_call_id="old", tool_name="lookup")]),
            AssistantMessage(content=[ToolCallPart(tool_call_id="new", tool_name="lookup")]),
            _tool_result("lookup", "value"),
        ]
    )

    assert not history[0].response[0].resolved
    assert history[1].response[0].result == "value"


def test_unmatched_tool_result_is_dropped() -> None:
    history = convert_to_chat_history(
        [
            UserMessage(content="Hi"),
            _tool_result("get_weather", {"type": "json", "value": 1}),
        ]
    )

    assert history == [UserTurn(text="Hi")]


def test_unsupported_role_is_skipped_with_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="local_llm_lib"):
        history = convert_to_chat_history([DeveloperMessage(content="internal"), UserMessage(content="Hi")])

    assert history == [UserTurn(text="Hi")]
    assert "Unsupported message role: developer" in caplog.text


def test_unwrap_tool_output() -> None:
    assert unwrap_tool_output(ToolResultOutput(type="json", value=[1, 2])) == [1, 2]
    assert unwrap_tool_output({"type": "json", "value": "x"}) == "x"
    assert unwrap_tool_output("plain") == "plain"

    error_output = ToolResultOutput(type="error-text", value="boom")
    assert unwrap_tool_output(error_output) is error_output


def test_extract_prompt_text_and_tool_result_detection() -> None:
    prompt = [SystemMessage(content="sys"), UserMessage(content="What is 2+2?")]

    assert extract_prompt_text(prompt) == "What is 2+2?"
    assert extract_prompt_text([]) == ""
    assert not has_tool_results(prompt)
    assert has_tool_results(prompt + [_tool_result("calc", 4)])
