"""Best-effort parsing of JSON text that is still streaming in.

Tool arguments arrive as raw JSON fragments. To render a tool call before
its arguments finish, :func:`parse_partial_json` derives the most complete
value it can from whatever prefix has arrived so far:

1. Parse the text as-is (exact once the input is complete).
2. Close an unterminated string and any open containers, then parse.
3. Parse the longest balanced prefix, dropping trailing noise.
4. Cut at the last top-level comma, close what remains, then parse.

The first strategy that yields a value wins. Nothing here ever raises.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

WHITESPACE = " \n\r\t\f"
PAIRS = {"{": "}", "[": "]"}


@dataclass
class ScanState:
    """Structure recovered from one left-to-right pass over the text."""

    completed: str
    prefix_end: int
    structural_error: bool
    last_top_level_comma: int


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def parse_json(text: str) -> Any:
    """Strict JSON parse. Raises ``ValueError`` on anything non-standard."""
    return json.loads(text, parse_constant=_reject_constant)


def _try_parse(text: str) -> tuple[bool, Any]:
    try:
        return True, parse_json(text)
    except (ValueError, RecursionError):
        return False, None


def scan(text: str) -> ScanState:
    """Track string state and open containers across ``text``.

    Stops at the first token that cannot belong to the value: a closer with
    nothing open, a closer of the wrong kind, or anything but whitespace
    after a complete top-level value.
    """
    stack: list[str] = []
    in_string = False
    escape_next = False
    last_balanced = -1
    garbage: int | None = None
    structural_error = False
    last_comma = -1

    for i, char in enumerate(text):
        if not in_string and not stack and last_balanced != -1:
            if char in WHITESPACE:
                last_balanced = i + 1
                continue
            garbage = i
            break

        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            if not in_string and not stack:
                last_balanced = i + 1
            continue
        if in_string:
            continue

        if char == ",":
            if len(stack) == 1:
                last_comma = i
        elif char in PAIRS:
            stack.append(PAIRS[char])
        elif char in "}]":
            if not stack or stack[-1] != char:
                structural_error = True
                garbage = i
                break
            stack.pop()
            if not stack:
                last_balanced = i + 1

    completed = text + ('"' if in_string else "") + "".join(reversed(stack))
    return ScanState(
        completed=completed,
        prefix_end=garbage if garbage is not None else last_balanced,
        structural_error=structural_error,
        last_top_level_comma=last_comma,
    )


def _parse_balanced_prefix(text: str, state: ScanState) -> tuple[bool, Any]:
    if state.prefix_end <= 0:
        return False, None
    if state.structural_error and state.last_top_level_comma != -1:
        # A broken nested value: keep only the fields before it.
        return False, None

    prefix = text[: state.prefix_end].rstrip(WHITESPACE)
    if not prefix:
        return False, None

    ok, value = _try_parse(scan(prefix).completed)
    if ok:
        return ok, value
    return _try_parse(prefix)


def _parse_last_complete_field(text: str, state: ScanState) -> tuple[bool, Any]:
    if state.last_top_level_comma == -1:
        return False, None
    return _try_parse(scan(text[: state.last_top_level_comma]).completed)


def parse_partial_json(text: str) -> Any:
    """Return the best value derivable from a prefix of JSON text.

    Returns ``None`` for empty or whitespace-only input, or when nothing
    can be salvaged.

    >>> parse_partial_json('{"items": [1, 2, 3')
    {'items': [1, 2, 3]}
    """
    if not text or not text.strip():
        return None

    ok, value = _try_parse(text)
    if ok:
        return value

    state = scan(text)
    ok, value = _try_parse(state.completed)
    if ok:
        return value

    ok, value = _parse_balanced_prefix(text, state)
    if ok:
        return value

    ok, value = _parse_last_complete_field(text, state)
    if ok:
        return value

    logger.debug("No value recoverable from %d chars of partial JSON", len(text))
    return None
