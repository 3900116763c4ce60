"""Incrementally build a transcript from provider stream events.

A :class:`StreamReconciler` owns one session's transcript. It consumes one
event at a time and swaps in a new :class:`~cc_stream.models.Transcript`
after every change, so a reader holding an earlier transcript never sees
it move underneath them.

Deltas are routed by identity (thinking ``stream_index``, tool ``id``),
never by position: several thinking or tool blocks may be open at once and
their events can arrive interleaved. A closed block is never matched again,
so a late or repeated event cannot touch finalized content.
"""

import logging
import math
import time
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from .events import (
    BlockStop,
    DebugLine,
    StreamEvent,
    TextDelta,
    ThinkingDelta,
    ThinkingStart,
    ToolArgumentDelta,
    ToolResultComplete,
    ToolResultDelta,
    ToolResultStart,
    ToolStart,
    TurnComplete,
    TurnError,
    TurnStopped,
)
from .models import (
    ContentBlock,
    Message,
    MessageRole,
    TextBlock,
    ThinkingBlock,
    ToolUse,
    ToolUseBlock,
    Transcript,
)
from .partial_json import parse_json, parse_partial_json

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4

Listener = Callable[[Transcript], None]


class TurnInProgressError(RuntimeError):
    """A new turn was started while the previous one is still streaming."""


def now_ms() -> int:
    return int(time.time() * 1000)


def new_message_id() -> str:
    return uuid.uuid4().hex


def format_debug_output(lines: list[str]) -> str:
    """Wrap buffered debug lines in a fenced block for display."""
    joined = "\n".join(lines)
    return f"\n\n---\n**🛠 Debug Output:**\n```\n{joined}\n```\n"


def estimate_tokens(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Rough token count for a reasoning segment (not provider accounting)."""
    return math.ceil(len(text) / chars_per_token)


def finalize_arguments(tool: ToolUse):
    """Best final value for a tool's arguments once its input has closed.

    Exact parse first, then best-effort, then whatever was last shown.
    """
    raw = tool.raw_argument_text
    if not raw:
        return tool.parsed_arguments
    try:
        return parse_json(raw)
    except (ValueError, RecursionError):
        fallback = parse_partial_json(raw)
        return fallback if fallback is not None else tool.parsed_arguments


def epoch_ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


class StreamReconciler:
    """Session-scoped reconciler: event in, new transcript out.

    Args:
        transcript: Existing conversation to continue from.
        clock: Returns the current time in epoch milliseconds.
        id_factory: Produces ids for new messages.
        chars_per_token: Divisor for thinking token estimates.
    """

    def __init__(
        self,
        transcript: Transcript | None = None,
        *,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = new_message_id,
        chars_per_token: int = CHARS_PER_TOKEN,
    ) -> None:
        self.transcript = transcript if transcript is not None else Transcript()
        self.is_streaming = False
        self.pending_debug_lines: list[str] = []
        self._clock = clock
        self._id_factory = id_factory
        self._chars_per_token = chars_per_token
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with each new transcript. Returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- internals ---------------------------------------------------------

    def _now(self, now: int | None) -> int:
        return self._clock() if now is None else now

    def _commit(self, transcript: Transcript) -> Transcript:
        if transcript is not self.transcript:
            self.transcript = transcript
            for listener in list(self._listeners):
                listener(transcript)
        return self.transcript

    def _new_message(self, role: MessageRole, content, now: int | None = None) -> Message:
        return Message(
            id=self._id_factory(),
            role=role,
            content=content,
            created_at=epoch_ms_to_datetime(self._now(now)),
        )

    def _open_message(self) -> Message | None:
        """The tail assistant message, if a turn is streaming into it.

        A turn always opens its own message with block content, so plain
        string messages (user prompts, errors, restored history) are never
        streamed into.
        """
        last = self.transcript.last
        if (
            self.is_streaming
            and last is not None
            and last.role == MessageRole.ASSISTANT
            and not isinstance(last.content, str)
        ):
            return last
        return None

    def _append_block(self, block: ContentBlock, now: int | None = None) -> Transcript:
        message = self._open_message()
        if message is None:
            self.is_streaming = True
            self.pending_debug_lines = []
            return self._commit(
                self.transcript.append(self._new_message(MessageRole.ASSISTANT, (block,), now))
            )
        updated = message.model_copy(update={"content": message.content + (block,)})
        return self._commit(self.transcript.replace_last(updated))

    def _update_block(
        self,
        matches: Callable[[ContentBlock], bool],
        update: Callable[[ContentBlock], ContentBlock],
        event_name: str,
    ) -> Transcript:
        """Apply ``update`` to the first open-message block that ``matches``."""
        message = self._open_message()
        if message is None:
            logger.debug("Ignoring %s: no open message", event_name)
            return self.transcript

        blocks = message.content
        for i, block in enumerate(blocks):
            if matches(block):
                new_blocks = blocks[:i] + (update(block),) + blocks[i + 1 :]
                updated = message.model_copy(update={"content": new_blocks})
                return self._commit(self.transcript.replace_last(updated))

        logger.debug("Ignoring %s: no matching open block", event_name)
        return self.transcript

    def _close_thinking(
        self, block: ThinkingBlock, now: int, tokens_used: int | None = None
    ) -> ThinkingBlock:
        return block.model_copy(
            update={
                "is_complete": True,
                "duration_ms": max(0, now - block.started_at),
                "tokens_used": tokens_used,
            }
        )

    def _end_turn(self) -> Transcript:
        """Flush buffered debug lines into the open message and stop streaming."""
        message = self._open_message()
        lines, self.pending_debug_lines = self.pending_debug_lines, []
        self.is_streaming = False
        if message is None or not lines:
            return self.transcript

        debug = TextBlock(value=format_debug_output(lines))
        updated = message.model_copy(update={"content": message.content + (debug,)})
        return self._commit(self.transcript.replace_last(updated))

    # -- text --------------------------------------------------------------

    def on_text_delta(self, chunk: str, now: int | None = None) -> Transcript:
        message = self._open_message()
        if message is None:
            return self._append_block(TextBlock(value=chunk), now)

        last_block = message.content[-1] if message.content else None
        if isinstance(last_block, TextBlock):
            new_blocks = message.content[:-1] + (
                last_block.model_copy(update={"value": last_block.value + chunk}),
            )
            return self._commit(
                self.transcript.replace_last(message.model_copy(update={"content": new_blocks}))
            )
        return self._append_block(TextBlock(value=chunk), now)

    # -- thinking ----------------------------------------------------------

    def on_thinking_start(self, stream_index: int, now: int | None = None) -> Transcript:
        started_at = self._now(now)
        return self._append_block(
            ThinkingBlock(stream_index=stream_index, started_at=started_at), started_at
        )

    def on_thinking_delta(self, stream_index: int, delta: str) -> Transcript:
        return self._update_block(
            lambda b: (
                isinstance(b, ThinkingBlock)
                and b.stream_index == stream_index
                and not b.is_complete
            ),
            lambda b: b.model_copy(update={"value": b.value + delta}),
            f"thinking_delta({stream_index})",
        )

    # -- block stop --------------------------------------------------------

    def on_block_stop(
        self,
        index: int,
        tool_id: str | None = None,
        tokens_used: int | None = None,
        now: int | None = None,
    ) -> Transcript:
        """Close the thinking block at ``index``, else the matching tool block."""
        message = self._open_message()
        if message is None:
            logger.debug("Ignoring block_stop(%d): no open message", index)
            return self.transcript

        def matches_thinking(b: ContentBlock) -> bool:
            return isinstance(b, ThinkingBlock) and b.stream_index == index and not b.is_complete

        if any(matches_thinking(b) for b in message.content):
            stopped_at = self._now(now)

            def close_thinking(b: ThinkingBlock) -> ThinkingBlock:
                if tokens_used is not None:
                    return self._close_thinking(b, stopped_at, tokens_used)
                return self._close_thinking(
                    b, stopped_at, estimate_tokens(b.value, self._chars_per_token)
                )

            return self._update_block(matches_thinking, close_thinking, f"block_stop({index})")

        def matches_tool(b: ContentBlock) -> bool:
            if not isinstance(b, ToolUseBlock) or b.tool.is_input_complete:
                return False
            if tool_id:
                return b.tool.id == tool_id
            return b.tool.stream_index == index

        def close_tool(b: ToolUseBlock) -> ToolUseBlock:
            tool = b.tool.model_copy(
                update={"parsed_arguments": finalize_arguments(b.tool), "is_input_complete": True}
            )
            return b.model_copy(update={"tool": tool})

        return self._update_block(matches_tool, close_tool, f"block_stop({index})")

    # -- tools -------------------------------------------------------------

    def on_tool_use_start(
        self, tool_id: str, name: str, stream_index: int | None = None, now: int | None = None
    ) -> Transcript:
        tool = ToolUse(id=tool_id, name=name, stream_index=stream_index)
        return self._append_block(ToolUseBlock(tool=tool), now)

    def on_tool_argument_delta(self, tool_id: str | None, delta: str) -> Transcript:
        if not tool_id:
            return self.transcript

        def append_arguments(b: ToolUseBlock) -> ToolUseBlock:
            raw = b.tool.raw_argument_text + delta
            parsed = parse_partial_json(raw)
            tool = b.tool.model_copy(
                update={
                    "raw_argument_text": raw,
                    "parsed_arguments": parsed if parsed is not None else b.tool.parsed_arguments,
                }
            )
            return b.model_copy(update={"tool": tool})

        return self._update_block(
            lambda b: (
                isinstance(b, ToolUseBlock)
                and b.tool.id == tool_id
                and not b.tool.is_input_complete
            ),
            append_arguments,
            f"tool_argument_delta({tool_id})",
        )

    def _update_tool(
        self, tool_id: str, update: Callable[[ToolUse], dict], event_name: str
    ) -> Transcript:
        return self._update_block(
            lambda b: isinstance(b, ToolUseBlock) and b.tool.id == tool_id,
            lambda b: b.model_copy(update={"tool": b.tool.model_copy(update=update(b.tool))}),
            event_name,
        )

    def on_tool_result_start(
        self, tool_id: str, content: str, is_error: bool = False
    ) -> Transcript:
        return self._update_tool(
            tool_id,
            lambda tool: {"result": content, "is_error": is_error},
            f"tool_result_start({tool_id})",
        )

    def on_tool_result_delta(self, tool_id: str, delta: str) -> Transcript:
        return self._update_tool(
            tool_id,
            lambda tool: {"result": (tool.result or "") + delta},
            f"tool_result_delta({tool_id})",
        )

    def on_tool_result_complete(
        self, tool_id: str, content: str, is_error: bool | None = None
    ) -> Transcript:
        return self._update_tool(
            tool_id,
            lambda tool: {"result": content, "is_error": is_error},
            f"tool_result_complete({tool_id})",
        )

    # -- turn lifecycle ----------------------------------------------------

    def on_complete(self) -> Transcript:
        return self._end_turn()

    def on_stopped(self, now: int | None = None) -> Transcript:
        """User cancelled: force-close open thinking, then flush debug output."""
        message = self._open_message()
        if message is not None:
            stopped_at = self._now(now)
            new_blocks = tuple(
                self._close_thinking(b, stopped_at)
                if isinstance(b, ThinkingBlock) and not b.is_complete
                else b
                for b in message.content
            )
            if new_blocks != message.content:
                self._commit(
                    self.transcript.replace_last(message.model_copy(update={"content": new_blocks}))
                )
        return self._end_turn()

    def on_error(self, message: str, now: int | None = None) -> Transcript:
        self._end_turn()
        error = self._new_message(MessageRole.ASSISTANT, f"Error: {message}", now)
        return self._commit(self.transcript.append(error))

    def on_debug_line(self, line: str) -> Transcript:
        if self.is_streaming:
            self.pending_debug_lines.append(line)
        else:
            logger.debug("Discarding debug line outside of a turn")
        return self.transcript

    def add_user_message(self, text: str, now: int | None = None) -> Transcript:
        """Append the user's prompt, which begins the next turn."""
        if self.is_streaming:
            logger.warning("Rejected user message: a turn is still streaming")
            raise TurnInProgressError("cannot start a new turn while one is streaming")
        return self._commit(
            self.transcript.append(self._new_message(MessageRole.USER, text, now))
        )

    # -- dispatch ----------------------------------------------------------

    def dispatch(self, event: StreamEvent) -> Transcript:
        """Apply one decoded event and return the resulting transcript.

        An event's ``timestamp_ms``, when present, stands in for the clock.
        """
        now = getattr(event, "timestamp_ms", None)
        if isinstance(event, TextDelta):
            return self.on_text_delta(event.chunk, now=now)
        if isinstance(event, ThinkingStart):
            return self.on_thinking_start(event.index, now=now)
        if isinstance(event, ThinkingDelta):
            return self.on_thinking_delta(event.index, event.delta)
        if isinstance(event, BlockStop):
            return self.on_block_stop(
                event.index, event.tool_id, tokens_used=event.tokens_used, now=now
            )
        if isinstance(event, ToolStart):
            return self.on_tool_use_start(event.id, event.name, event.index, now=now)
        if isinstance(event, ToolArgumentDelta):
            return self.on_tool_argument_delta(event.tool_id, event.delta)
        if isinstance(event, ToolResultStart):
            return self.on_tool_result_start(event.tool_id, event.content, event.is_error)
        if isinstance(event, ToolResultDelta):
            return self.on_tool_result_delta(event.tool_id, event.delta)
        if isinstance(event, ToolResultComplete):
            return self.on_tool_result_complete(event.tool_id, event.content, event.is_error)
        if isinstance(event, DebugLine):
            return self.on_debug_line(event.text)
        if isinstance(event, TurnComplete):
            return self.on_complete()
        if isinstance(event, TurnStopped):
            return self.on_stopped(now=now)
        if isinstance(event, TurnError):
            return self.on_error(event.message, now=now)
        raise TypeError(f"Unknown event: {event!r}")

    def feed(self, events: Iterable[StreamEvent]) -> Transcript:
        """Dispatch every event in order; return the final transcript."""
        for event in events:
            self.dispatch(event)
        return self.transcript
