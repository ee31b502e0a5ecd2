"""Derive a tool's parameter schema and argument model from a Python signature."""

import inspect
from typing import Annotated, Any, Callable, Dict, NamedTuple, Optional, Tuple, Type, get_args, get_origin

import jsonref  # type: ignore
from pydantic import BaseModel, Field, create_model
from pydantic.fields import FieldInfo

from .schema_validator import SchemaValidator
from ...exceptions import ToolValidationError
from ...logger import get_logger

logger = get_logger(__name__)

_SKIPPED_PARAMETERS = ("self", "cls")


class ParameterSpec(NamedTuple):
    """One function parameter as a ``create_model`` field definition."""

    name: str
    annotation: Any
    field: FieldInfo


def describe_parameter(param: inspect.Parameter, tool_name: str) -> ParameterSpec:
    """
    Turns a function parameter into a field of the tool's argument model.

    Every parameter must be annotated as ``Annotated[<type>, Field(description="...")]``:
    the description is what the model sees when it decides how to fill the argument.
    A Python default makes the argument optional.

    Raises:
        ToolValidationError: For ``*args``/``**kwargs`` or a parameter without description.
    """
    if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
        msg = f"Parameter '{param.name}' in tool '{tool_name}' uses *args/**kwargs, which cannot be described to a model."
        logger.error(msg)
        raise ToolValidationError(msg)

    description = _field_description(param.annotation)
    if description is None:
        msg = (
            f"Parameter '{param.name}' in tool '{tool_name}' is missing a description.\n"
            f"Usage: {param.name}: Annotated[Type, Field(description='...')] = ..."
        )
        logger.error(msg)
        raise ToolValidationError(msg)

    default = ... if param.default is inspect.Parameter.empty else param.default
    return ParameterSpec(param.name, param.annotation, Field(default=default, description=description))


def _field_description(annotation: Any) -> Optional[str]:
    if get_origin(annotation) is not Annotated:
        return None
    for metadata in get_args(annotation)[1:]:
        if isinstance(metadata, FieldInfo) and metadata.description:
            return metadata.description
    return None


def build_parameters_schema(func: Callable, tool_name: str) -> Tuple[Dict[str, Any], Type[BaseModel]]:
    """
    Builds the JSON schema of a tool's parameters and the model that validates its arguments.

    The schema is generated by pydantic, checked for recursion, has every ``$ref``
    inlined and is sanitized so that the runtime can build a call grammar from it.

    Args:
        func: The tool implementation.
        tool_name: Used for the argument model's name and in error messages.

    Returns:
        The sanitized parameters schema and the argument model.

    Raises:
        ToolValidationError: If a parameter cannot be described or the schema is recursive.
    """
    specs = [
        describe_parameter(param, tool_name)
        for name, param in inspect.signature(func).parameters.items()
        if name not in _SKIPPED_PARAMETERS
    ]
    fields: Dict[str, Any] = {spec.name: (spec.annotation, spec.field) for spec in specs}
    args_model = create_model(f"{tool_name}Params", **fields)

    raw_schema = args_model.model_json_schema()
    SchemaValidator.assert_no_recursive_refs(raw_schema)

    # proxies=False returns plain dicts instead of JsonRef objects
    inlined = jsonref.replace_refs(raw_schema, proxies=False)
    return SchemaValidator.sanitize_schema(inlined), args_model
