"""Request bodies accepted by the OpenAI-compatible endpoints."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: str
    content: Union[str, List[Dict[str, Any]], None] = None

    @property
    def text(self) -> str:
        """The message text; for content part lists, the concatenated ``text`` parts."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return "".join(part.get("text", "") for part in self.content if part.get("type") == "text")


class ChatCompletionRequest(BaseModel):
    """Body of ``POST /v1/chat/completions``.

    ``messages`` is optional here so that a missing field is answered with the
    endpoint's own 400 error instead of a validation error.
    """

    model: Optional[str] = None
    messages: Optional[List[ChatMessage]] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop: Union[str, List[str], None] = None
    max_tokens: Optional[int] = Field(default=None, ge=1)
    stream: bool = False

    @property
    def stop_sequences(self) -> Optional[List[str]]:
        if self.stop is None:
            return None
        return [self.stop] if isinstance(self.stop, str) else list(self.stop)
