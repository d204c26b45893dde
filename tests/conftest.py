"""Shared fixtures for the memory tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from pbmemory.store import BoundedStore


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_770_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def root(tmp_path: Path) -> Path:
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(root: Path, clock: FakeClock) -> BoundedStore:
    return BoundedStore(root, clock=clock)
