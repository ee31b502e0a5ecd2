"""Translate prompt messages into the session's native chat history."""

from typing import Any, List, Optional, Sequence

from local_llm_lib.llm_core import get_logger
from local_llm_lib.llm_core.messages import (
    AssistantMessage,
    BaseMessage,
    ReasoningPart,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolMessage,
    ToolResultOutput,
    ToolResultPart,
    UserMessage,
    message_text,
)
from .native import ChatHistoryItem, FunctionCallSegment, ModelTurn, SystemTurn, ThoughtSegment, UserTurn

logger = get_logger(__name__)


def convert_to_chat_history(prompt: Sequence[BaseMessage]) -> List[ChatHistoryItem]:
    """
    Converts prompt messages to the session's chat history.

    Tool messages do not become turns of their own: each tool result is attached to the
    function call it answers, searching model turns from the most recent one backward
    and taking the first unresolved call with the same tool name. Results without a
    matching call are dropped.

    Args:
        prompt: The conversation, oldest message first.

    Returns:
        The native turns, in the same order.
    """
    history: List[ChatHistoryItem] = []

    for message in prompt:
        if isinstance(message, SystemMessage):
            history.append(SystemTurn(text=message.content))

        elif isinstance(message, UserMessage):
            history.append(UserTurn(text=message_text(message)))

        elif isinstance(message, AssistantMessage):
            history.append(_convert_assistant_message(message))

        elif isinstance(message, ToolMessage):
            for part in message.content:
                _attach_tool_result(history, part)

        else:
            logger.warning(f"Unsupported message role: {message.role}")

    return history


def _convert_assistant_message(message: AssistantMessage) -> ModelTurn:
    turn = ModelTurn()
    for part in message.content:
        if isinstance(part, TextPart):
            turn.response.append(part.text)
        elif isinstance(part, ReasoningPart):
            turn.response.append(ThoughtSegment(text=part.text))
        elif isinstance(part, ToolCallPart):
            turn.response.append(FunctionCallSegment(name=part.tool_name, params=part.input))
    return turn


def _attach_tool_result(history: List[ChatHistoryItem], part: ToolResultPart) -> None:
    function_call = _find_pending_call(history, part.tool_name)
    if function_call is None:
        logger.debug(f"Dropping result for '{part.tool_name}' ({part.tool_call_id}): no pending function call.")
        return
    function_call.resolve(unwrap_tool_output(part.output))


def _find_pending_call(history: List[ChatHistoryItem], name: str) -> Optional[FunctionCallSegment]:
    for turn in reversed(history):
        if isinstance(turn, ModelTurn):
            function_call = turn.find_pending_call(name)
            if function_call is not None:
                return function_call
    return None


def unwrap_tool_output(output: Any) -> Any:
    """Return the raw value of a typed JSON output; anything else passes through unchanged.

    Args:
        output: A ``ToolResultOutput``, its dict form, or any raw value.

    Returns:
        The value to hand to the model as the function result.
    """
    if isinstance(output, ToolResultOutput):
        return output.value if output.type == "json" else output
    if isinstance(output, dict) and output.get("type") == "json" and "value" in output:
        return output["value"]
    return output


def extract_prompt_text(prompt: Sequence[BaseMessage]) -> str:
    """Text content of the final message, or an empty string for an empty prompt."""
    if not prompt:
        return ""
    return message_text(prompt[-1])


def has_tool_results(prompt: Sequence[BaseMessage]) -> bool:
    """True if any message carries a tool result."""
    for message in prompt:
        if isinstance(message, ToolMessage):
            return True
        content = getattr(message, "content", None)
        if isinstance(content, list) and any(isinstance(part, ToolResultPart) for part in content):
            return True
    return False
