"""Export the provider and tool exception hierarchies used across generation and tool execution paths."""

from .exceptions import (
    LLMProviderError,
    SessionInitializationError,
    ModelResolutionError,
    GenerationError,
    GenerationCancelledError,
    LLMToolError,
    ToolRegistrationError,
    ToolNotFoundError,
    ToolExecutionError,
    ToolValidationError,
)

__all__ = [
    "LLMProviderError",
    "SessionInitializationError",
    "ModelResolutionError",
    "GenerationError",
    "GenerationCancelledError",
    "LLMToolError",
    "ToolRegistrationError",
    "ToolNotFoundError",
    "ToolExecutionError",
    "ToolValidationError",
]
