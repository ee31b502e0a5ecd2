"""OpenAI-compatible HTTP server for a local llama.cpp model."""

from .app import create_app
from .config import ServerSettings
from .models import ChatCompletionRequest, ChatMessage
from .openai_handler import handle_chat_completion, handle_streaming_chat_completion

__all__ = [
    "create_app",
    "ServerSettings",
    "ChatCompletionRequest",
    "ChatMessage",
    "handle_chat_completion",
    "handle_streaming_chat_completion",
]
