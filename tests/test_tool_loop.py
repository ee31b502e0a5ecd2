from typing import Annotated, List
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel, Field

from local_llm_lib.llm_core import (
    AssistantMessage,
    CallOptions,
    GenerateResult,
    GenericLanguageModel,
    StreamResult,
    TextContent,
    ToolCallContent,
    ToolDefinition,
    ToolExecutionLoop,
    ToolMessage,
    ToolRegistry,
    UserMessage,
)


class SampleArgs(BaseModel):
    required_value: int


class ScriptedModel(GenericLanguageModel):
    """Returns the scripted results in order and records every request."""

    def __init__(self, *results: GenerateResult):
        super().__init__(model_id="scripted", provider="test")
        self.results = list(results)
        self.requests: List[CallOptions] = []

    async def do_generate(self, options: CallOptions) -> GenerateResult:
        self.requests.append(options.model_copy(update={"prompt": list(options.prompt)}))
        return self.results.pop(0)

    async def do_stream(self, options: CallOptions) -> StreamResult:
        raise NotImplementedError


def _tool_calls(*calls: ToolCallContent) -> GenerateResult:
    return GenerateResult(content=list(calls), finish_reason="tool-calls")


def _text(text: str) -> GenerateResult:
    return GenerateResult(content=[TextContent(text=text)], finish_reason="stop")


@pytest.mark.asyncio
async def test_tool_execution_loop_runs_tools() -> None:
    registry = ToolRegistry()
    tool_func = AsyncMock(return_value="ok")
    registry.tools["sample"] = ToolDefinition(name="sample", description="sample tool", func=tool_func)

    model = ScriptedModel(
        _tool_calls(ToolCallContent(tool_call_id="call_1", tool_name="sample", input={"a": 1})),
        _text("done"),
    )
    loop = ToolExecutionLoop(registry=registry, max_function_loops=2)

    result = await loop.run(model, [UserMessage(content="Run sample")], temperature=0.1)

    tool_func.assert_called_once_with(a=1)
    assert result.content == "done"
    assert len(result.steps) == 2

    user, assistant, tool, final = result.messages
    assert isinstance(assistant, AssistantMessage)
    assert assistant.tool_calls[0].tool_call_id == "call_1"
    assert isinstance(tool, ToolMessage)
    assert tool.content[0].tool_call_id == "call_1"
    assert tool.content[0].output.type == "json"
    assert tool.content[0].output.value == {"result": "ok"}
    assert final.content[0].text == "done"

    # The second request carries the call and its result, plus the declared tools
    second_request = model.requests[1]
    assert len(second_request.prompt) == 3
    assert second_request.temperature == 0.1
    assert [tool.name for tool in second_request.tools] == ["sample"]


@pytest.mark.asyncio
async def test_sync_tools_and_json_string_arguments() -> None:
    registry = ToolRegistry()

    @registry.tool
    def add(
        a: Annotated[int, Field(description="First number")], b: Annotated[int, Field(description="Second number")]
    ) -> int:
        """Add two numbers."""
        return a + b

    model = ScriptedModel(
        _tool_calls(ToolCallContent(tool_call_id="c", tool_name="add", input='{"a": 2, "b": 3}')),
        _text("5"),
    )

    result = await ToolExecutionLoop(registry=registry).run(model, [UserMessage(content="2+3?")])

    assert result.messages[2].content[0].output.value == {"result": 5}


@pytest.mark.asyncio
async def test_unknown_tool_and_invalid_arguments_are_reported_to_the_model() -> None:
    registry = ToolRegistry()
    registry.tools["sample"] = ToolDefinition(
        name="sample", description="sample tool", func=AsyncMock(), args_model=SampleArgs
    )

    model = ScriptedModel(
        _tool_calls(
            ToolCallContent(tool_call_id="1", tool_name="missing", input={}),
            ToolCallContent(tool_call_id="2", tool_name="sample", input={"required_value": "not a number"}),
            ToolCallContent(tool_call_id="3", tool_name="sample", input="{broken"),
        ),
        _text("sorry"),
    )

    result = await ToolExecutionLoop(registry=registry).run(model, [UserMessage(content="go")])

    outputs = [part.output for part in result.messages[2].content]
    assert [output.type for output in outputs] == ["error-json"] * 3
    assert "not found in registry" in outputs[0].value["error"]
    assert "Argument validation failed" in outputs[1].value["error"]
    assert "Failed to parse arguments for tool 'sample'" in outputs[2].value["error"]
    registry.tools["sample"].func.assert_not_called()


@pytest.mark.asyncio
async def test_recoverable_tool_errors_are_returned() -> None:
    registry = ToolRegistry()
    registry.tools["fails"] = ToolDefinition(
        name="fails", description="always fails", func=AsyncMock(side_effect=FileNotFoundError("no such file"))
    )
    model = ScriptedModel(_tool_calls(ToolCallContent(tool_call_id="1", tool_name="fails")), _text("ok"))

    result = await ToolExecutionLoop(registry=registry).run(model, [UserMessage(content="go")])

    output = result.messages[2].content[0].output
    assert output.type == "error-json"
    assert output.value == {"error": "no such file"}


@pytest.mark.asyncio
async def test_loop_stops_at_max_function_loops() -> None:
    registry = ToolRegistry()
    registry.tools["sample"] = ToolDefinition(name="sample", description="sample tool", func=AsyncMock(return_value=1))
    call = ToolCallContent(tool_call_id="x", tool_name="sample", input={})
    model = ScriptedModel(_tool_calls(call), _tool_calls(call), _tool_calls(call))

    result = await ToolExecutionLoop(registry=registry, max_function_loops=2).run(model, [UserMessage(content="go")])

    assert len(result.steps) == 3
    assert registry.tools["sample"].func.await_count == 2
    assert result.content == ""
