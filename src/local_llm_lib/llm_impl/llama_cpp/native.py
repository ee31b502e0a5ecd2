"""The session's own chat history representation.

A history is a list of turns. Model turns hold an ordered response made of plain text
strings, thought segments and function calls; a function call carries its result once
the caller has executed it.
"""

from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class SystemTurn(BaseModel):
    type: Literal["system"] = "system"
    text: str


class UserTurn(BaseModel):
    type: Literal["user"] = "user"
    text: str


class ThoughtSegment(BaseModel):
    """Reasoning text the model produced before (or between) its visible answer."""

    type: Literal["segment"] = "segment"
    segment_type: Literal["thought"] = "thought"
    text: str


class FunctionCallSegment(BaseModel):
    """A function call inside a model turn.

    A call is pending until ``resolve`` attaches its result; it can be resolved once.
    ``resolved`` is tracked separately so that ``None`` is a valid result.
    """

    type: Literal["functionCall"] = "functionCall"
    name: str
    params: Any = None
    result: Any = None
    resolved: bool = False

    def resolve(self, result: Any) -> None:
        """Attach the result of this call.

        Raises:
            ValueError: If the call already has a result.
        """
        if self.resolved:
            raise ValueError(f"Function call '{self.name}' already has a result.")
        self.result = result
        self.resolved = True


ResponseItem = Union[str, ThoughtSegment, FunctionCallSegment]


class ModelTurn(BaseModel):
    type: Literal["model"] = "model"
    response: List[ResponseItem] = Field(default_factory=list)

    def append_text(self, text: str) -> None:
        """Append text, merging it into a trailing plain-text item."""
        if not text:
            return
        if self.response and isinstance(self.response[-1], str):
            self.response[-1] += text
        else:
            self.response.append(text)

    def append_thought(self, text: str) -> None:
        """Append reasoning text, merging it into a trailing thought segment."""
        if not text:
            return
        last = self.response[-1] if self.response else None
        if isinstance(last, ThoughtSegment):
            last.text += text
        else:
            self.response.append(ThoughtSegment(text=text))

    def find_pending_call(self, name: str) -> Optional[FunctionCallSegment]:
        """First unresolved function call with the given name, if any."""
        for item in self.response:
            if isinstance(item, FunctionCallSegment) and item.name == name and not item.resolved:
                return item
        return None

    @property
    def text(self) -> str:
        return "".join(item for item in self.response if isinstance(item, str))


ChatHistoryItem = Union[SystemTurn, UserTurn, ModelTurn]
