"""cc-stream: Reconcile streamed agent events into a chat transcript."""

from .events import StreamEvent, load_events, parse_event
from .models import (
    BlockKind,
    ContentBlock,
    Message,
    MessageRole,
    TextBlock,
    ThinkingBlock,
    ToolUse,
    ToolUseBlock,
    Transcript,
)
from .partial_json import parse_partial_json
from .reconciler import StreamReconciler, TurnInProgressError
from .renderer import render_json, render_markdown

__all__ = [
    "BlockKind",
    "ContentBlock",
    "Message",
    "MessageRole",
    "StreamEvent",
    "StreamReconciler",
    "TextBlock",
    "ThinkingBlock",
    "ToolUse",
    "ToolUseBlock",
    "Transcript",
    "TurnInProgressError",
    "load_events",
    "parse_event",
    "parse_partial_json",
    "render_json",
    "render_markdown",
]
