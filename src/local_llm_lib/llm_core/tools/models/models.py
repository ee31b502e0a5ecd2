"""Tool declarations sent with a request and tool definitions held by a registry."""

from typing import Annotated, Any, Callable, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, Field


class FunctionTool(BaseModel):
    """A tool with a function-style contract that the model may call.

    Attributes:
        name: Unique name of the tool within a request.
        description: What the tool does; shown to the model.
        input_schema: JSON schema of the tool's parameters.
    """

    type: Literal["function"] = "function"
    name: str
    description: str = ""
    input_schema: Optional[Dict[str, Any]] = None

    @property
    def is_function_kind(self) -> bool:
        return True

    @property
    def has_input_schema(self) -> bool:
        return self.input_schema is not None


class ProviderDefinedTool(BaseModel):
    """A tool implemented by a specific provider. Local models cannot call these."""

    type: Literal["provider-defined"] = "provider-defined"
    id: str
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_function_kind(self) -> bool:
        return False

    @property
    def has_input_schema(self) -> bool:
        return False


Tool = Annotated[Union[FunctionTool, ProviderDefinedTool], Field(discriminator="type")]


class ToolDefinition(BaseModel):
    """
    Represents the definition of a tool that can be registered with a ToolRegistry.

    Attributes:
        name: The unique name of the tool.
        description: A brief description of what the tool does.
        func: The callable Python function that implements the tool's logic.
        parameters: A JSON schema defining the input parameters for the tool's function.
        args_model: Optional Pydantic model used for validating and coercing arguments.
    """

    name: str
    description: str
    func: Callable
    parameters: Optional[Dict[str, Any]] = None
    args_model: Optional[Type[BaseModel]] = None

    def to_function_tool(self) -> FunctionTool:
        """Build the request-level declaration for this tool."""
        return FunctionTool(
            name=self.name,
            description=self.description,
            input_schema=self.parameters if self.parameters is not None else {"type": "object", "properties": {}},
        )
