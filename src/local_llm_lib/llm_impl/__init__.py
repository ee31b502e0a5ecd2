"""Collect concrete LLM provider implementations."""

from .llama_cpp import LlamaCppProvider, LlamaCppProviderConfig, LlamaCppLanguageModel, create_llama_cpp_provider

__all__ = [
    "LlamaCppProvider",
    "LlamaCppProviderConfig",
    "LlamaCppLanguageModel",
    "create_llama_cpp_provider",
]
