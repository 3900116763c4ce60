"""Domain models for cc-stream."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Author of a message in the transcript."""

    USER = "user"
    ASSISTANT = "assistant"


class BlockKind(str, Enum):
    """Kinds of content blocks in assistant messages."""

    TEXT = "text"
    THINKING = "thinking"
    TOOL_USE = "tool_use"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TextBlock(_Frozen):
    """A run of narrative text."""

    kind: Literal["text"] = "text"
    value: str


class ThinkingBlock(_Frozen):
    """A reasoning segment, routed by its provider stream index."""

    kind: Literal["thinking"] = "thinking"
    value: str = ""
    stream_index: int
    started_at: int  # epoch ms
    is_complete: bool = False
    duration_ms: int | None = None
    tokens_used: int | None = None


class ToolUse(_Frozen):
    """A tool invocation and, once it arrives, its result."""

    id: str
    name: str
    stream_index: int | None = None
    raw_argument_text: str = ""
    parsed_arguments: Any = None
    is_input_complete: bool = False  # set by block_stop
    result: str | None = None
    is_error: bool | None = None


class ToolUseBlock(_Frozen):
    """Content block wrapping a tool invocation."""

    kind: Literal["tool_use"] = "tool_use"
    tool: ToolUse


ContentBlock = Annotated[
    Union[TextBlock, ThinkingBlock, ToolUseBlock],
    Field(discriminator="kind"),
]


class Message(_Frozen):
    """One turn's worth of content from a single author."""

    id: str
    role: MessageRole
    content: str | tuple[ContentBlock, ...]
    created_at: datetime


class Transcript(_Frozen):
    """The ordered messages forming the visible conversation."""

    messages: tuple[Message, ...] = ()

    @property
    def last(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def replace_last(self, message: Message) -> "Transcript":
        """Return a new transcript with the tail message swapped out."""
        return self.model_copy(update={"messages": self.messages[:-1] + (message,)})

    def append(self, message: Message) -> "Transcript":
        return self.model_copy(update={"messages": self.messages + (message,)})
