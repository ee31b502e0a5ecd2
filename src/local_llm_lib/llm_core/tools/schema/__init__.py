"""Tool schema generation and validation."""

from .schema_validator import SchemaValidator
from .parameters import ParameterSpec, build_parameters_schema, describe_parameter

__all__ = ["SchemaValidator", "ParameterSpec", "build_parameters_schema", "describe_parameter"]
