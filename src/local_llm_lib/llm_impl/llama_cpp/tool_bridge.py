"""Expose request tool declarations to the chat session as interrupting functions."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Sequence

from local_llm_lib.llm_core import CancellationToken, FunctionTool, SchemaValidator, Tool, get_logger
from .session import ChatSessionFunction

logger = get_logger(__name__)

TOOL_CALL_CANCEL_REASON = "tool-call-detected"


@dataclass(frozen=True)
class AbortedToolCall:
    """Placeholder result handed back to the session for an intercepted tool call.

    The session never feeds it to the model: the token is already cancelled when the
    handler returns, so generation stops right after the call.
    """

    tool_name: str
    params: Any = None


def convert_tools(
    tools: Sequence[Tool],
    cancellation_token: CancellationToken,
    on_tool_call: Callable[[str, Any], None],
) -> Dict[str, ChatSessionFunction]:
    """
    Builds the session's function table from the tools of a request.

    The tools are executed by the caller, not here. Each handler reports the call
    through ``on_tool_call``, then cancels ``cancellation_token`` so the session stops
    generating, and returns an ``AbortedToolCall``.

    Args:
        tools: The tool declarations of the request.
        cancellation_token: The request's token.
        on_tool_call: Receives ``(tool_name, params)`` for every intercepted call.

    Returns:
        Session functions by tool name. Provider-defined tools and tools without an
        input schema are left out.
    """
    functions: Dict[str, ChatSessionFunction] = {}

    for tool in tools:
        if not tool.is_function_kind:
            logger.debug(f"Skipping tool '{tool.name}': provider-defined tools are not supported.")
            continue
        if not tool.has_input_schema:
            logger.debug(f"Skipping tool '{tool.name}': no input schema.")
            continue

        functions[tool.name] = ChatSessionFunction(
            description=tool.description,
            params=SchemaValidator.normalize_input_schema(tool.input_schema),
            handler=_make_handler(tool, cancellation_token, on_tool_call),
        )

    if functions:
        logger.debug(f"Exposing {len(functions)} tool(s) to the session: {', '.join(functions)}")
    return functions


def _make_handler(
    tool: FunctionTool,
    cancellation_token: CancellationToken,
    on_tool_call: Callable[[str, Any], None],
) -> Callable[[Any], AbortedToolCall]:
    name = tool.name

    def handler(params: Any) -> AbortedToolCall:
        logger.info(f"Model called tool '{name}'. Stopping generation.")
        on_tool_call(name, params)
        cancellation_token.cancel(TOOL_CALL_CANCEL_REASON)
        return AbortedToolCall(tool_name=name, params=params)

    return handler
