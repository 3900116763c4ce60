"""CLI entry point for cc-stream."""

import json
from pathlib import Path

import typer

APP_HELP = """
Reconcile streamed agent events into a chat transcript.

\b
Event logs are JSONL, one event per line:
  {"type": "text_delta", "chunk": "Hello"}
  {"type": "tool_start", "id": "toolu_1", "name": "Read", "index": 1}
  {"type": "tool_argument_delta", "tool_id": "toolu_1", "delta": "{\\"file_path\\": "}
  {"type": "turn_complete"}
"""

REPLAY_HELP = """
Replay a recorded event log and print the resulting transcript.

\b
Examples:
  # Transcript as JSON
  cc-stream replay session-events.jsonl

  # Tool calls and their parsed arguments
  cc-stream replay session-events.jsonl | jq '[.messages[].content[]? | select(.kind == "tool_use") | .tool | {name, parsed_arguments}]'

  # Readable Markdown
  cc-stream replay session-events.jsonl --markdown -o session.md
"""

PARSE_HELP = """
Parse possibly incomplete JSON the way streaming tool arguments are parsed.

\b
Examples:
  # Best-effort value for a truncated argument payload
  cc-stream parse args.txt

  # Watch the value build up 16 characters at a time
  cc-stream parse args.txt --chunk-size 16
"""

app = typer.Typer(add_completion=False, help=APP_HELP)


def _require(path: Path) -> None:
    if not path.exists():
        typer.echo(f"Error: File not found: {path}", err=True)
        raise typer.Exit(1)


def _write(text: str, output: Path | None) -> None:
    if output is None:
        typer.echo(text)
    else:
        output.write_text(text)
        typer.echo(f"Written to {output}", err=True)


@app.command(help=REPLAY_HELP)
def replay(
    events_path: Path = typer.Argument(..., help="Path to JSONL event log"),
    output: Path | None = typer.Option(None, "-o", "--output", help="Output file path"),
    compact: bool = typer.Option(False, "--compact", help="No indentation (for piping)"),
    markdown: bool = typer.Option(False, "--markdown", help="Render Markdown instead of JSON"),
) -> None:
    from .events import load_events
    from .reconciler import StreamReconciler
    from .renderer import render_json, render_markdown

    _require(events_path)

    transcript = StreamReconciler().feed(load_events(events_path))

    if markdown:
        _write(render_markdown(transcript), output)
    else:
        _write(render_json(transcript, compact=compact), output)


@app.command(help=PARSE_HELP)
def parse(
    input_path: Path = typer.Argument(..., help="File containing (partial) JSON text"),
    chunk_size: int | None = typer.Option(
        None, "--chunk-size", min=1, help="Print the value after every N characters"
    ),
) -> None:
    from .partial_json import parse_partial_json

    _require(input_path)
    text = input_path.read_text()

    if chunk_size is None:
        typer.echo(json.dumps(parse_partial_json(text), ensure_ascii=False))
        return

    for end in range(chunk_size, len(text) + chunk_size, chunk_size):
        value = parse_partial_json(text[:end])
        typer.echo(json.dumps(value, ensure_ascii=False))


@app.command()
def render(
    transcript_path: Path = typer.Argument(..., help="Transcript JSON from `replay`"),
    output: Path | None = typer.Option(None, "-o", "--output", help="Output Markdown path"),
    full: bool = typer.Option(False, "--full", help="Don't truncate tool results"),
) -> None:
    """Render a saved transcript as Markdown."""
    from .renderer import dict_to_transcript, render_markdown

    _require(transcript_path)

    transcript = dict_to_transcript(json.loads(transcript_path.read_text()))
    _write(render_markdown(transcript, full=full), output)


if __name__ == "__main__":
    app()
