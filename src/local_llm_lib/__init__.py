"""Local LLM Library - Run local GGUF models as streaming chat models with tool calling."""

from .llm_core import (
    GenericLanguageModel,
    CallOptions,
    GenerateResult,
    StreamResult,
    UserMessage,
    AssistantMessage,
    SystemMessage,
    ToolMessage,
    ToolRegistry,
    ToolDefinition,
    ToolExecutionLoop,
    setup_logging,
)
from .llm_impl import LlamaCppProvider, LlamaCppProviderConfig, LlamaCppLanguageModel, create_llama_cpp_provider

__all__ = [
    "GenericLanguageModel",
    "CallOptions",
    "GenerateResult",
    "StreamResult",
    "UserMessage",
    "AssistantMessage",
    "SystemMessage",
    "ToolMessage",
    "ToolRegistry",
    "ToolDefinition",
    "ToolExecutionLoop",
    "setup_logging",
    "LlamaCppProvider",
    "LlamaCppProviderConfig",
    "LlamaCppLanguageModel",
    "create_llama_cpp_provider",
]
