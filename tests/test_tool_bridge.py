from local_llm_lib.llm_core import CancellationToken, FunctionTool, ProviderDefinedTool
from local_llm_lib.llm_impl.llama_cpp import TOOL_CALL_CANCEL_REASON, AbortedToolCall, convert_tools


def test_only_function_tools_with_schema_are_exposed(weather_tool) -> None:
    tools = [
        weather_tool,
        FunctionTool(name="no_schema", description="Has no schema."),
        ProviderDefinedTool(id="web.search", name="web_search"),
    ]

    functions = convert_tools(tools, CancellationToken(), lambda name, params: None)

    assert list(functions) == ["get_weather"]
    function = functions["get_weather"]
    assert function.description == "Get the current weather for a city."
    assert function.params["properties"]["city"]["type"] == "string"


def test_empty_schema_is_normalized_to_object() -> None:
    functions = convert_tools(
        [FunctionTool(name="ping", description="Ping.", input_schema={})], CancellationToken(), lambda name, params: None
    )

    params = functions["ping"].params
    assert params["type"] == "object"
    assert params["properties"] == {}


def test_handler_reports_call_and_cancels(weather_tool) -> None:
    token = CancellationToken()
    calls = []
    functions = convert_tools([weather_tool], token, lambda name, params: calls.append((name, params)))

    result = functions["get_weather"].handler({"city": "Berlin"})

    assert calls == [("get_weather", {"city": "Berlin"})]
    assert token.is_cancelled
    assert token.reason == TOOL_CALL_CANCEL_REASON
    assert result == AbortedToolCall(tool_name="get_weather", params={"city": "Berlin"})


def test_handlers_have_no_call_limit(weather_tool) -> None:
    token = CancellationToken()
    calls = []
    functions = convert_tools([weather_tool], token, lambda name, params: calls.append(params))

    functions["get_weather"].handler({"city": "A"})
    functions["get_weather"].handler({"city": "B"})

    assert calls == [{"city": "A"}, {"city": "B"}]
    assert token.reason == TOOL_CALL_CANCEL_REASON
