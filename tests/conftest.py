"""Shared pytest fixtures."""

import pytest

from tiny_query import QueryClient


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_750_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    """Create a fresh FakeClock for each test."""
    return FakeClock()


@pytest.fixture
def client(clock: FakeClock) -> QueryClient:
    """Create a QueryClient driven by the fake clock."""
    return QueryClient(clock=clock)
