"""Registry of Python callables exposed to the model as function tools."""

import inspect
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from ..models import FunctionTool, ToolDefinition
from ..schema import build_parameters_schema
from ...exceptions import ToolNotFoundError, ToolRegistrationError, ToolValidationError
from ...logger import get_logger

logger = get_logger(__name__)


class ToolRegistry:
    """
    Tools a caller executes on the model's behalf.

    The model never runs a tool itself: it stops generating when it calls one. The
    registry provides the ``FunctionTool`` declarations sent with each request and the
    implementations ``ToolExecutionLoop`` runs before generation resumes.

    Example:
        registry = ToolRegistry()

        @registry.tool
        def get_weather(city: Annotated[str, Field(description="City name")]) -> dict:
            \"\"\"Get the current weather for a city.\"\"\"
            ...

        result = await model.do_generate(CallOptions(prompt=prompt, tools=registry.tool_object))
    """

    def __init__(self) -> None:
        self.tools: Dict[str, ToolDefinition] = {}

    def __contains__(self, name: object) -> bool:
        return name in self.tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self.tools.values())

    def __len__(self) -> int:
        return len(self.tools)

    def register(
        self,
        name_or_tool: Union[str, ToolDefinition, Callable],
        description: Optional[str] = None,
        func: Optional[Callable] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> ToolDefinition:
        """
        Register a tool.

        Accepted forms:
            * ``register(tool_definition)``
            * ``register(func, description=None)``: everything is derived from the
              function's signature and docstring.
            * ``register(name, description=..., func=..., parameters=...)``: with an
              explicit schema; without ``parameters`` the schema is derived from ``func``.

        Returns:
            The registered definition.

        Raises:
            ToolRegistrationError: If arguments are missing or the name is taken.
            ToolValidationError: If the schema cannot be derived from the function.
        """
        tool = self._to_definition(name_or_tool, description, func, parameters)

        if tool.name in self.tools:
            msg = f"Tool '{tool.name}' is already registered."
            logger.error(msg)
            raise ToolRegistrationError(msg)

        self.tools[tool.name] = tool
        logger.info(f"Registered tool '{tool.name}'.")
        return tool

    def unregister(self, tool_name: str) -> None:
        """Raises ``ToolNotFoundError`` if the tool does not exist."""
        self.get(tool_name)
        del self.tools[tool_name]
        logger.info(f"Unregistered tool '{tool_name}'.")

    def get(self, tool_name: str) -> ToolDefinition:
        try:
            return self.tools[tool_name]
        except KeyError:
            raise ToolNotFoundError(f"Tool '{tool_name}' not found in the registry.") from None

    def tool(self, func: Optional[Callable] = None, *, name: Optional[str] = None, description: Optional[str] = None):
        """Decorator registering a function as a tool; usable bare or as ``@registry.tool(name=...)``.

        The decorated function is returned unchanged.
        """

        def decorator(target: Callable) -> Callable:
            if name is None:
                self.register(target, description=description)
            else:
                self.register(name, description=description, func=target)
            return target

        return decorator(func) if func is not None else decorator

    @property
    def tool_object(self) -> List[FunctionTool]:
        """The declarations of all registered tools, ready to be passed as ``CallOptions.tools``."""
        return [tool.to_function_tool() for tool in self.tools.values()]

    @property
    def implementations(self) -> Dict[str, Callable]:
        return {name: tool.func for name, tool in self.tools.items()}

    @classmethod
    def _to_definition(
        cls,
        name_or_tool: Union[str, ToolDefinition, Callable],
        description: Optional[str],
        func: Optional[Callable],
        parameters: Optional[Dict[str, Any]],
    ) -> ToolDefinition:
        if isinstance(name_or_tool, ToolDefinition):
            return name_or_tool
        if callable(name_or_tool):
            return cls._from_function(name_or_tool, description=description)

        if func is None:
            raise ToolRegistrationError("If passing name as string, func is required.")
        if parameters is None:
            return cls._from_function(func, name=name_or_tool, description=description)
        if description is None:
            raise ToolRegistrationError("If passing name and parameters, description is required.")
        return ToolDefinition(name=name_or_tool, description=description, func=func, parameters=parameters)

    @staticmethod
    def _from_function(func: Callable, name: Optional[str] = None, description: Optional[str] = None) -> ToolDefinition:
        tool_name = name or func.__name__
        description = description or inspect.getdoc(func)
        if not description:
            msg = f"Tool '{tool_name}' missing docstring. The model needs a description of what the tool does."
            logger.error(msg)
            raise ToolValidationError(msg)

        parameters, args_model = build_parameters_schema(func, tool_name)
        return ToolDefinition(
            name=tool_name, description=description, func=func, parameters=parameters, args_model=args_model
        )
