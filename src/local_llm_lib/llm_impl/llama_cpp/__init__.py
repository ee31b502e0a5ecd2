"""llama.cpp provider: shared chat session, stream adapter and model resolution."""

from .provider import (
    LlamaCppProvider,
    LlamaCppProviderConfig,
    ContextSizeRange,
    create_llama_cpp_provider,
)
from .language_model import LlamaCppLanguageModel, StreamState
from .session import LlamaChatSession, ChatSessionFunction, PromptResult, SegmentChunk
from .native import ChatHistoryItem, SystemTurn, UserTurn, ModelTurn, ThoughtSegment, FunctionCallSegment
from .history import convert_to_chat_history, extract_prompt_text
from .tool_bridge import convert_tools, AbortedToolCall, TOOL_CALL_CANCEL_REASON
from .resolver import resolve_model_file, HUGGING_FACE_RECOMMENDED_MODELS
from .tool_syntax import (
    ToolCallSyntax,
    HERMES_TOOL_CALLS,
    MISTRAL_TOOL_CALLS,
    KNOWN_TOOL_CALL_SYNTAXES,
    detect_tool_call_syntax,
)

__all__ = [
    "LlamaCppProvider",
    "LlamaCppProviderConfig",
    "ContextSizeRange",
    "create_llama_cpp_provider",
    "LlamaCppLanguageModel",
    "StreamState",
    "LlamaChatSession",
    "ChatSessionFunction",
    "PromptResult",
    "SegmentChunk",
    "ChatHistoryItem",
    "SystemTurn",
    "UserTurn",
    "ModelTurn",
    "ThoughtSegment",
    "FunctionCallSegment",
    "convert_to_chat_history",
    "extract_prompt_text",
    "convert_tools",
    "AbortedToolCall",
    "TOOL_CALL_CANCEL_REASON",
    "resolve_model_file",
    "HUGGING_FACE_RECOMMENDED_MODELS",
    "ToolCallSyntax",
    "HERMES_TOOL_CALLS",
    "MISTRAL_TOOL_CALLS",
    "KNOWN_TOOL_CALL_SYNTAXES",
    "detect_tool_call_syntax",
]
