"""Serialization and Markdown rendering for transcripts."""

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from .models import BlockKind, Message, Transcript


def truncate(text: str, max_len: int = 300) -> str:
    """Truncate text with ellipsis."""
    text = str(text)
    if len(text) > max_len:
        return text[:max_len] + "..."
    return text


def transcript_to_dict(transcript: Transcript) -> dict:
    """Convert Transcript to plain data for the persistence layer."""
    return transcript.model_dump(mode="json")


def dict_to_transcript(data: dict) -> Transcript:
    """Rebuild a Transcript from :func:`transcript_to_dict` output."""
    return Transcript.model_validate({"messages": data.get("messages", [])})


def compute_metadata(transcript: Transcript) -> dict:
    """Compute summary counts for the transcript."""
    blocks = [
        block
        for message in transcript.messages
        if not isinstance(message.content, str)
        for block in message.content
    ]
    tools = [b.tool for b in blocks if b.kind == BlockKind.TOOL_USE]

    started = None
    if transcript.messages:
        started = transcript.messages[0].created_at.isoformat()

    return {
        "started": started,
        "total_messages": len(transcript.messages),
        "thinking_blocks": sum(1 for b in blocks if b.kind == BlockKind.THINKING),
        "tool_calls": len(tools),
        "tool_errors": sum(1 for t in tools if t.is_error),
    }


def render_json(transcript: Transcript, compact: bool = False) -> str:
    """Render transcript as JSON string."""
    data = transcript_to_dict(transcript)
    metadata = compute_metadata(transcript)

    # Put metadata first in output
    ordered = {"metadata": metadata, **data}

    return json.dumps(ordered, indent=None if compact else 2, ensure_ascii=False)


def format_arguments(value: Any) -> str:
    if value is None:
        return ""
    return json.dumps(value, indent=2, ensure_ascii=False)


def message_view(message: Message, full: bool) -> dict:
    """Flatten a message into what the Markdown template needs."""
    if isinstance(message.content, str):
        return {"role": message.role.value, "blocks": [{"kind": "text", "value": message.content}]}

    blocks = []
    for block in message.content:
        if block.kind == BlockKind.TEXT:
            blocks.append({"kind": "text", "value": block.value})
        elif block.kind == BlockKind.THINKING:
            blocks.append(
                {
                    "kind": "thinking",
                    "lines": block.value.splitlines() or [""],
                    "is_complete": block.is_complete,
                    "seconds": None if block.duration_ms is None else block.duration_ms / 1000,
                    "tokens_used": block.tokens_used,
                }
            )
        elif block.kind == BlockKind.TOOL_USE:
            tool = block.tool
            arguments = format_arguments(tool.parsed_arguments) or tool.raw_argument_text
            result = tool.result
            if result is not None and not full:
                result = truncate(result)
            blocks.append(
                {
                    "kind": "tool_use",
                    "name": tool.name,
                    "id": tool.id,
                    "arguments": arguments,
                    "is_input_complete": tool.is_input_complete,
                    "result": result,
                    "is_error": bool(tool.is_error),
                }
            )
        else:
            raise ValueError(f"Unknown block kind: {block.kind}")
    return {"role": message.role.value, "blocks": blocks}


def render_markdown(transcript: Transcript, full: bool = False) -> str:
    """Render Transcript as a Markdown document."""
    template_dir = Path(__file__).parent / "templates"
    env = Environment(loader=FileSystemLoader(template_dir), autoescape=False)
    template = env.get_template("transcript.md.j2")

    messages = [message_view(m, full) for m in transcript.messages]
    return template.render(messages=messages, metadata=compute_metadata(transcript))
