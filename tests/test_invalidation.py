"""Tests for prefix invalidation."""

import asyncio

import pytest

from tiny_query import LoadSuccess, QueryClient, succeed
from tiny_query.invalidation import invalidate


class Counter:
    """Load function that returns how often it has been called."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, param: object = None) -> LoadSuccess[int]:
        self.calls += 1
        return succeed(self.calls)


async def _load_all(*handles) -> None:
    for handle in handles:
        await handle.load()


class TestMatching:
    """Tests for which keys an invalidation touches."""

    async def test_prefix_matches_segments(self, client: QueryClient, clock) -> None:
        """A prefix matches itself and longer keys, not keys sharing characters."""
        todos = client.create_query(["todos"], Counter(), stale_time="1h")()
        detail = client.create_query(["todos", "1"], Counter(), stale_time="1h")()
        archive = client.create_query(["todosArchive"], Counter(), stale_time="1h")()
        await _load_all(todos, detail, archive)

        client.invalidate_queries(["todos"])

        assert todos.stale_at == clock.now - 1
        assert detail.stale_at == clock.now - 1
        assert archive.stale_at == clock.now + 3_600_000

    async def test_exact_matches_only_key(self, client: QueryClient, clock) -> None:
        """exact=True leaves longer keys alone."""
        todos = client.create_query(["todos"], Counter(), stale_time="1h")()
        detail = client.create_query(["todos", "1"], Counter(), stale_time="1h")()
        await _load_all(todos, detail)

        client.invalidate_queries(["todos"], exact=True)

        assert todos.stale_at == clock.now - 1
        assert detail.stale_at == clock.now + 3_600_000

    async def test_param_keys_match_base_prefix(self, client: QueryClient) -> None:
        """Invalidating the base key covers every parameter value."""
        load = Counter()
        query = client.create_query(["user"], load, stale_time="1h")
        first, second = query({"id": 1}), query({"id": 2})
        await _load_all(first, second)

        client.invalidate_queries(["user"])

        assert await first.load()
        assert await second.load()
        assert load.calls == 4

    def test_unknown_key_is_noop(self, client: QueryClient) -> None:
        """Invalidating a key nothing has used changes nothing."""
        client.invalidate_queries(["nothing", "here"])
        assert client.store.entries() == []

    def test_string_prefix_rejected(self, client: QueryClient) -> None:
        """A bare string is not accepted as a key prefix."""
        with pytest.raises(TypeError):
            client.invalidate_queries("todos")  # type: ignore[arg-type]

    def test_returns_active_matches(self, client: QueryClient) -> None:
        """invalidate() reports only the matching keys with consumers."""
        store = client.store
        store.entry(("a", "b"))
        store.entry(("a", "c"))
        store.entry(("ab",))
        store.register_active(("a", "c"))
        store.register_active(("ab",))

        assert invalidate(store, ["a"], now=100) == [("a", "c")]
        assert store.entry(("a", "b")).stale_at == 99
        assert store.entry(("ab",)).stale_at is None


class TestReloading:
    """Tests for what happens after entries are marked stale."""

    async def test_active_query_reloads(self, client: QueryClient) -> None:
        """An observed query reloads immediately, even with fresh data."""
        load = Counter()
        handle = client.create_query(["todos"], load, stale_time="1h")()
        handle.subscribe()
        await client.wait_idle()
        assert handle.data == 1

        client.invalidate_queries(["todos"])
        assert handle.loading is True
        await client.wait_idle()

        assert handle.data == 2
        assert load.calls == 2

    async def test_inactive_query_reloads_on_next_use(
        self, client: QueryClient
    ) -> None:
        """An unobserved query only goes stale and loads when next mounted."""
        load = Counter()
        query = client.create_query(["todos"], load, stale_time="1h")
        handle = query()
        unsubscribe = handle.subscribe()
        await client.wait_idle()
        unsubscribe()

        client.invalidate_queries(["todos"])
        await client.wait_idle()
        assert load.calls == 1
        assert handle.data == 1

        query().subscribe()
        await client.wait_idle()
        assert load.calls == 2
        assert handle.data == 2

    async def test_invalidation_keeps_data_while_reloading(
        self, client: QueryClient
    ) -> None:
        """A plain invalidation keeps showing the old data until the new load."""
        handle = client.create_query(["todos"], Counter(), stale_time="1h")()
        handle.subscribe()
        await client.wait_idle()

        client.invalidate_queries(["todos"])
        assert handle.loading is True
        assert handle.data == 1
        await client.wait_idle()
        assert handle.data == 2


class TestForce:
    """Tests for forced invalidation."""

    async def test_force_clears_fields(self, client: QueryClient) -> None:
        """Forced invalidation drops data and error on every match."""
        handle = client.create_query(["todos"], Counter(), stale_time="1h")()
        await handle.load()

        client.invalidate_queries(["todos"], force=True)

        assert handle.data is None
        assert handle.error is None
        assert handle.loading is False

    async def test_force_restarts_in_flight_load(self, client: QueryClient) -> None:
        """The newest load wins when a forced invalidation interrupts one."""
        gates = [asyncio.Event(), asyncio.Event()]
        calls = 0

        async def load() -> LoadSuccess[int]:
            nonlocal calls
            calls += 1
            index = calls - 1
            await gates[index].wait()
            return succeed(index)

        handle = client.create_query(["slow"], load)()
        handle.subscribe()
        await asyncio.sleep(0)
        assert calls == 1

        client.invalidate_queries(["slow"], force=True)
        await asyncio.sleep(0)
        assert calls == 2
        assert handle.loading is True

        gates[1].set()
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        gates[0].set()
        await client.wait_idle()

        assert handle.data == 1
        assert handle.loading is False

    async def test_superseded_result_cannot_clear_loading(
        self, client: QueryClient
    ) -> None:
        """An old load settling first leaves the newer one marked loading."""
        gates = [asyncio.Event(), asyncio.Event()]
        calls = 0

        async def load() -> LoadSuccess[int]:
            nonlocal calls
            calls += 1
            index = calls - 1
            await gates[index].wait()
            return succeed(index)

        handle = client.create_query(["slow"], load)()
        handle.subscribe()
        await asyncio.sleep(0)
        client.invalidate_queries(["slow"], force=True)
        await asyncio.sleep(0)

        gates[0].set()
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert handle.loading is True
        assert handle.data is None

        gates[1].set()
        await client.wait_idle()
        assert handle.data == 1
        assert handle.loading is False
