"""Provider stream events, as delivered to the reconciler.

Each event is a small record tagged by ``type``. Recorded sessions are
stored one event per line (JSONL) and replayed with :func:`load_events`.
"""

import json
import sys
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp_ms: int | None = None  # provider time, overrides the clock


class TextDelta(_Event):
    type: Literal["text_delta"] = "text_delta"
    chunk: str


class ThinkingStart(_Event):
    type: Literal["thinking_start"] = "thinking_start"
    index: int


class ThinkingDelta(_Event):
    type: Literal["thinking_delta"] = "thinking_delta"
    index: int
    delta: str


class BlockStop(_Event):
    """Closes the thinking or tool block at ``index`` (or ``tool_id``)."""

    type: Literal["block_stop"] = "block_stop"
    index: int
    tool_id: str | None = None
    tokens_used: int | None = None


class ToolStart(_Event):
    type: Literal["tool_start"] = "tool_start"
    id: str
    name: str
    index: int | None = None


class ToolArgumentDelta(_Event):
    type: Literal["tool_argument_delta"] = "tool_argument_delta"
    tool_id: str | None = None
    delta: str


class ToolResultStart(_Event):
    type: Literal["tool_result_start"] = "tool_result_start"
    tool_id: str
    content: str = ""
    is_error: bool = False


class ToolResultDelta(_Event):
    type: Literal["tool_result_delta"] = "tool_result_delta"
    tool_id: str
    delta: str


class ToolResultComplete(_Event):
    type: Literal["tool_result_complete"] = "tool_result_complete"
    tool_id: str
    content: str
    is_error: bool | None = None


class DebugLine(_Event):
    type: Literal["debug_line"] = "debug_line"
    text: str


class TurnComplete(_Event):
    type: Literal["turn_complete"] = "turn_complete"


class TurnStopped(_Event):
    type: Literal["turn_stopped"] = "turn_stopped"


class TurnError(_Event):
    type: Literal["turn_error"] = "turn_error"
    message: str


StreamEvent = Annotated[
    Union[
        TextDelta,
        ThinkingStart,
        ThinkingDelta,
        BlockStop,
        ToolStart,
        ToolArgumentDelta,
        ToolResultStart,
        ToolResultDelta,
        ToolResultComplete,
        DebugLine,
        TurnComplete,
        TurnStopped,
        TurnError,
    ],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_event(data: dict) -> StreamEvent:
    """Decode one event record. Raises ``ValidationError`` if malformed."""
    return _event_adapter.validate_python(data)


def event_to_dict(event: StreamEvent) -> dict:
    return event.model_dump(mode="json", exclude_none=True)


def load_events(path: Path) -> list[StreamEvent]:
    """Load a JSONL event log, skipping blank and malformed lines."""
    events = []
    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                events.append(parse_event(json.loads(line)))
            except (json.JSONDecodeError, ValidationError) as e:
                print(f"Warning: Skipping malformed event at line {line_num}: {e}", file=sys.stderr)
    return events
