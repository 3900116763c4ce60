"""Tests for the events module."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from cc_stream.events import (
    BlockStop,
    ToolResultComplete,
    ToolStart,
    TurnComplete,
    event_to_dict,
    load_events,
    parse_event,
)


class TestParseEvent:
    """Tests for parse_event function."""

    def test_dispatches_on_type(self) -> None:
        """The type field selects the event model."""
        event = parse_event({"type": "tool_start", "id": "t1", "name": "Read", "index": 2})
        assert event == ToolStart(id="t1", name="Read", index=2)

    def test_optional_fields_default(self) -> None:
        """Optional fields can be omitted."""
        event = parse_event({"type": "block_stop", "index": 0})
        assert isinstance(event, BlockStop)
        assert event.tool_id is None
        assert event.tokens_used is None
        assert event.timestamp_ms is None

    def test_result_complete_error_flag_is_optional(self) -> None:
        event = parse_event({"type": "tool_result_complete", "tool_id": "t1", "content": "ok"})
        assert isinstance(event, ToolResultComplete)
        assert event.is_error is None

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_event({"type": "mystery"})

    def test_missing_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_event({"type": "thinking_delta", "index": 0})

    def test_event_to_dict_round_trips(self) -> None:
        """Serialized events decode back to the same event."""
        event = BlockStop(index=3, tool_id="t9", timestamp_ms=1234)
        assert parse_event(event_to_dict(event)) == event
        assert event_to_dict(TurnComplete()) == {"type": "turn_complete"}


class TestLoadEvents:
    """Tests for load_events function."""

    def test_empty_file(self, tmp_path: Path) -> None:
        """Empty file returns empty list."""
        f = tmp_path / "empty.jsonl"
        f.write_text("")
        assert load_events(f) == []

    def test_skips_blank_lines(self, tmp_path: Path) -> None:
        f = tmp_path / "events.jsonl"
        f.write_text('{"type": "turn_complete"}\n\n   \n{"type": "turn_stopped"}\n')
        assert [e.type for e in load_events(f)] == ["turn_complete", "turn_stopped"]

    def test_skips_malformed_lines(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        """Malformed JSON and unknown events are skipped with warning."""
        f = tmp_path / "events.jsonl"
        f.write_text(
            '{"type": "text_delta", "chunk": "hi"}\n'
            "not json\n"
            '{"type": "bogus"}\n'
            f"{json.dumps([1, 2])}\n"
            '{"type": "turn_complete"}\n'
        )
        events = load_events(f)
        assert [e.type for e in events] == ["text_delta", "turn_complete"]
        captured = capsys.readouterr()
        assert "Warning: Skipping malformed event at line 2" in captured.err
        assert "Warning: Skipping malformed event at line 3" in captured.err
        assert "Warning: Skipping malformed event at line 4" in captured.err

    def test_fixture_log(self, tool_turn_events: Path) -> None:
        events = load_events(tool_turn_events)
        assert len(events) == 12
        assert events[0].type == "text_delta"
        assert events[-1].type == "turn_complete"
