"""Tests for the CLI."""

import json
from pathlib import Path

from typer.testing import CliRunner

from cc_stream.cli import app

runner = CliRunner()


class TestReplay:
    """Tests for the replay command."""

    def test_json_output(self, tool_turn_events: Path) -> None:
        result = runner.invoke(app, ["replay", str(tool_turn_events)])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["metadata"]["tool_calls"] == 1
        assert len(data["messages"]) == 1

    def test_markdown_to_file(self, thinking_turn_events: Path, tmp_path: Path) -> None:
        out = tmp_path / "out.md"
        result = runner.invoke(
            app, ["replay", str(thinking_turn_events), "--markdown", "-o", str(out)]
        )
        assert result.exit_code == 0
        assert "Here is the summary." in out.read_text()

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing input exits with status 1."""
        result = runner.invoke(app, ["replay", str(tmp_path / "nope.jsonl")])
        assert result.exit_code == 1


class TestParse:
    """Tests for the parse command."""

    def test_partial_input(self, tmp_path: Path) -> None:
        f = tmp_path / "args.txt"
        f.write_text('{"items": [1, 2, 3')
        result = runner.invoke(app, ["parse", str(f)])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"items": [1, 2, 3]}

    def test_chunked(self, tmp_path: Path) -> None:
        """One line per cumulative chunk, ending at the full value."""
        f = tmp_path / "args.txt"
        f.write_text('{"a": "bcd"}')
        result = runner.invoke(app, ["parse", str(f), "--chunk-size", "4"])
        assert result.exit_code == 0
        lines = [json.loads(line) for line in result.stdout.splitlines()]
        assert lines == [None, {"a": "b"}, {"a": "bcd"}]


class TestRender:
    """Tests for the render command."""

    def test_render_saved_transcript(self, tool_turn_events: Path, tmp_path: Path) -> None:
        saved = tmp_path / "transcript.json"
        replayed = runner.invoke(app, ["replay", str(tool_turn_events), "-o", str(saved)])
        assert replayed.exit_code == 0

        result = runner.invoke(app, ["render", str(saved)])
        assert result.exit_code == 0
        assert "The file imports os and sys." in result.stdout
