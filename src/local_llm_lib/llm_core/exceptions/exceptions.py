"""
Custom exception classes for the local LLM library.

Two hierarchies live here: ``LLMProviderError`` covers everything that can go wrong
while loading the model and driving a generation, ``LLMToolError`` covers tool
registration, validation and execution.
"""

from typing import Optional


class LLMProviderError(Exception):
    """Base exception for all provider-related errors."""

    pass


class SessionInitializationError(LLMProviderError):
    """Raised when the runtime, model, context or chat session cannot be created."""

    pass


class ModelResolutionError(SessionInitializationError):
    """Raised when a model path or Hugging Face identifier cannot be resolved to a file."""

    pass


class GenerationError(LLMProviderError):
    """Raised when a generation call fails for a reason other than an expected cancellation."""

    pass


class GenerationCancelledError(LLMProviderError):
    """Raised by a session when generation stops because its cancellation token fired.

    When the token was cancelled because a tool was called, the stream adapter treats
    this as the normal way a turn ends and never surfaces it.

    Attributes:
        reason: The reason passed to ``CancellationToken.cancel``.
    """

    def __init__(self, message: str = "Generation was cancelled", reason: Optional[str] = None):
        self.reason = reason
        super().__init__(message)


class LLMToolError(Exception):
    """Base exception for all tool-related errors."""

    pass


class ToolRegistrationError(LLMToolError):
    """Raised when there is an error registering a tool."""

    pass


class ToolNotFoundError(LLMToolError):
    """Raised when a requested tool is not found in the registry."""

    pass


class ToolExecutionError(LLMToolError):
    """Raised when a tool fails during execution."""

    pass


class ToolValidationError(LLMToolError):
    """Raised when tool parameters or definition are invalid."""

    pass
