"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from cc_stream.reconciler import StreamReconciler


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def reconciler(clock: FakeClock) -> StreamReconciler:
    """Reconciler with a fake clock and predictable message ids."""
    counter = iter(range(1, 10_000))
    return StreamReconciler(clock=clock, id_factory=lambda: f"msg-{next(counter)}")


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def tool_turn_events(fixtures_dir: Path) -> Path:
    """Return path to tool_turn.jsonl fixture."""
    return fixtures_dir / "tool_turn.jsonl"


@pytest.fixture
def thinking_turn_events(fixtures_dir: Path) -> Path:
    """Return path to thinking_turn.jsonl fixture."""
    return fixtures_dir / "thinking_turn.jsonl"


@pytest.fixture
def stopped_turn_events(fixtures_dir: Path) -> Path:
    """Return path to stopped_turn.jsonl fixture."""
    return fixtures_dir / "stopped_turn.jsonl"
