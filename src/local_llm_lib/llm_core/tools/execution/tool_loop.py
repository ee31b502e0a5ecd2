"""Caller-side tool loop: generate, execute the requested tools, resume with their results."""

from __future__ import annotations

import asyncio
import inspect
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ...base import CallOptions, GenericLanguageModel, GenerateResult
from ...exceptions import ToolExecutionError
from ...logger import get_logger
from ...messages import (
    AssistantMessage,
    BaseMessage,
    ReasoningPart,
    TextPart,
    ToolCallPart,
    ToolMessage,
    ToolResultOutput,
    ToolResultPart,
)
from ..models import ToolCallRequest, ToolCallResult
from ..registry import ToolRegistry

logger = get_logger(__name__)


@dataclass
class ToolLoopResult:
    """Outcome of ``ToolExecutionLoop.run``.

    Attributes:
        content: Final text of the last generation.
        messages: The full conversation including tool calls and results.
        steps: Every ``GenerateResult`` in order.
    """

    content: str
    messages: List[BaseMessage]
    steps: List[GenerateResult]


class ToolExecutionLoop:
    """Runs the tools a model asks for and re-invokes the model with their results.

    The model stops generating as soon as it calls a tool (``finish_reason ==
    "tool-calls"``). This loop records the call as an assistant message, executes the
    tool outside the model, appends the result as a tool message and generates again,
    until the model finishes with ``stop`` or the loop limit is reached.
    """

    # Exceptions that are considered recoverable and are returned to the model.
    # System errors (like ConnectionError, MemoryError) propagate and stop the loop.
    RECOVERABLE_ERRORS = (
        ToolExecutionError,
        FileNotFoundError,
        FileExistsError,
        PermissionError,
        IsADirectoryError,
        NotADirectoryError,
        ValueError,
        TypeError,
    )

    def __init__(
        self,
        *,
        registry: Optional[ToolRegistry],
        max_function_loops: int = 5,
        tool_timeout: float = 180.0,
        argument_error_formatter: Optional[Callable[[str, Exception], str]] = None,
    ) -> None:
        """Initialize the tool execution loop.

        Args:
            registry: Tool registry used to declare and resolve tools.
            max_function_loops: Maximum number of generate/execute rounds.
            tool_timeout: Timeout in seconds for a single tool execution.
            argument_error_formatter: Optional formatter for argument parsing errors.
        """
        self._registry = registry
        self._max_function_loops = max_function_loops
        self._tool_timeout = tool_timeout
        self._argument_error_formatter = argument_error_formatter or self._default_argument_error

    async def run(
        self,
        model: GenericLanguageModel,
        prompt: List[BaseMessage],
        **call_options: Any,
    ) -> ToolLoopResult:
        """Run the loop until the model stops without calling a tool.

        Args:
            model: The language model to drive.
            prompt: The starting conversation. It is copied, not modified.
            **call_options: Extra ``CallOptions`` fields (temperature, top_p, ...).

        Returns:
            The final text, the extended conversation and all intermediate results.
        """
        messages: List[BaseMessage] = list(prompt)
        tools = self._registry.tool_object if self._registry else []
        steps: List[GenerateResult] = []

        for loop_index in range(self._max_function_loops + 1):
            result = await model.do_generate(CallOptions(prompt=messages, tools=tools, **call_options))
            steps.append(result)

            if result.finish_reason != "tool-calls":
                logger.debug("Model finished without tool calls. Loop finished.")
                messages.append(self._assistant_message(result))
                return ToolLoopResult(content=result.text, messages=messages, steps=steps)

            if loop_index == self._max_function_loops:
                break

            logger.info(
                f"Loop {loop_index + 1}/{self._max_function_loops}: Processing {len(result.tool_calls)} tool call(s)."
            )
            messages.append(self._assistant_message(result))

            requests = [
                ToolCallRequest(name=call.tool_name, arguments=call.input, call_id=call.tool_call_id)
                for call in result.tool_calls
            ]
            tool_results = await asyncio.gather(*(self._handle_tool_call(request) for request in requests))
            messages.append(ToolMessage(content=[self._tool_result_part(tool_result) for tool_result in tool_results]))

        logger.warning(f"Max tool loops ({self._max_function_loops}) reached. Stopping execution.")
        return ToolLoopResult(content=steps[-1].text, messages=messages, steps=steps)

    @staticmethod
    def _assistant_message(result: GenerateResult) -> AssistantMessage:
        parts: List[Any] = []
        for part in result.content:
            if part.type == "text":
                parts.append(TextPart(text=part.text))
            elif part.type == "reasoning":
                parts.append(ReasoningPart(text=part.text))
            else:
                parts.append(ToolCallPart(tool_call_id=part.tool_call_id, tool_name=part.tool_name, input=part.input))
        return AssistantMessage(content=parts)

    @staticmethod
    def _tool_result_part(result: ToolCallResult) -> ToolResultPart:
        output_type = "error-json" if result.is_error else "json"
        return ToolResultPart(
            tool_call_id=result.call_id or "",
            tool_name=result.name,
            output=ToolResultOutput(type=output_type, value=result.response),
        )

    async def _handle_tool_call(self, tool_call: ToolCallRequest) -> ToolCallResult:
        """Handle a single tool call request.

        Validates the tool existence, normalizes arguments, validates them against the
        generated argument model (if present), and executes the tool.

        Args:
            tool_call: The tool call request containing name, ID, and arguments.

        Returns:
            The result of the tool execution, including any errors.
        """
        logger.debug(f"Handling tool call: {tool_call.name} (ID: {tool_call.call_id})")

        if self._registry is None or tool_call.name not in self._registry:
            msg = f"Tool '{tool_call.name}' not found in registry."
            logger.warning(msg)
            return self._error_result(tool_call, msg)

        tool_def = self._registry.get(tool_call.name)

        try:
            function_args = self._normalize_function_args(tool_call.name, tool_call.arguments)
        except ToolExecutionError as exc:
            logger.warning(f"Argument normalization failed for '{tool_call.name}': {exc}")
            return self._error_result(tool_call, str(exc))

        if tool_def.args_model:
            try:
                function_args = tool_def.args_model(**function_args).model_dump()
            except Exception as validation_error:
                msg = f"Argument validation failed: {validation_error}"
                logger.warning(f"Validation error for '{tool_call.name}': {msg}")
                return self._error_result(tool_call, msg)

        try:
            logger.info(f"Executing tool '{tool_call.name}'...")
            function_result = await self._execute_tool(tool_def.func, function_args)
            logger.info(f"Tool '{tool_call.name}' executed successfully.")
        except self.RECOVERABLE_ERRORS as exc:
            logger.warning(f"Recoverable error in '{tool_call.name}': {exc} ({type(exc).__name__})")
            return self._error_result(tool_call, str(exc))

        return ToolCallResult(name=tool_call.name, response={"result": function_result}, call_id=tool_call.call_id)

    @staticmethod
    def _error_result(tool_call: ToolCallRequest, msg: str) -> ToolCallResult:
        return ToolCallResult(name=tool_call.name, response={"error": msg}, call_id=tool_call.call_id, is_error=True)

    def _normalize_function_args(self, tool_name: str, raw_args: Any) -> Dict[str, Any]:
        """Normalize tool arguments into a dictionary.

        Handles JSON strings, dictionaries, or None values.

        Raises:
            ToolExecutionError: If arguments cannot be parsed or are invalid.
        """
        if raw_args is None or raw_args == "":
            return {}

        if isinstance(raw_args, dict):
            return raw_args

        if isinstance(raw_args, str):
            try:
                parsed = json.loads(raw_args)
            except json.JSONDecodeError as exc:
                raise ToolExecutionError(self._argument_error_formatter(tool_name, exc)) from exc

            if parsed is None:
                return {}

            if not isinstance(parsed, dict):
                error = ValueError("Function arguments must decode to a JSON object.")
                raise ToolExecutionError(self._argument_error_formatter(tool_name, error))

            return parsed

        try:
            return dict(raw_args)
        except (TypeError, ValueError) as exc:
            raise ToolExecutionError(self._argument_error_formatter(tool_name, exc)) from exc

    async def _execute_tool(self, tool_function: Any, function_args: Dict[str, Any]) -> Any:
        """Execute the tool function, handling async/sync and timeouts.

        Raises:
            ToolExecutionError: If execution times out.
        """
        try:
            if inspect.iscoroutinefunction(tool_function):
                return await asyncio.wait_for(tool_function(**function_args), timeout=self._tool_timeout)

            return await asyncio.wait_for(
                asyncio.to_thread(tool_function, **function_args),
                timeout=self._tool_timeout,
            )
        except asyncio.TimeoutError as exc:
            msg = f"Tool execution timed out after {self._tool_timeout} seconds."
            raise ToolExecutionError(msg) from exc

    @staticmethod
    def _default_argument_error(tool_name: str, error: Exception) -> str:
        return f"Failed to parse arguments for tool '{tool_name}': {error}"
