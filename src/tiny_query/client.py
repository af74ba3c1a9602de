"""Query client: owns the cache state and creates queries against it."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine, Iterable, Sequence
from typing import Any, ParamSpec, TypeVar

from tiny_query.coordinator import Clock, KeyLoader, LoadCoordinator
from tiny_query.duration import parse_duration
from tiny_query.invalidation import invalidate
from tiny_query.keys import KeySpec
from tiny_query.mutation import Mutation
from tiny_query.query import Query
from tiny_query.sequential import SequentialQuery
from tiny_query.store import CacheStore
from tiny_query.types import CacheKey, Duration, LoadMode

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def _wall_clock() -> int:
    return int(time.time() * 1000)


class QueryClient:
    """Cache context shared by every query created from it.

    Usage:
        client = QueryClient(default_stale_time="30s")
        todos = client.create_query(["todos"], load_todos)
        handle = todos({"done": False})
        unsubscribe = handle.subscribe()
        ...
        client.invalidate_queries(["todos"])
    """

    def __init__(
        self,
        *,
        default_stale_time: Duration = 0,
        clock: Clock | None = None,
    ) -> None:
        self._default_stale_time = parse_duration(default_stale_time)
        self._clock = clock or _wall_clock
        self._store = CacheStore()
        self._coordinator = LoadCoordinator(self._store, self._clock)
        self._background_tasks: set[asyncio.Task[Any]] = set()

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def coordinator(self) -> LoadCoordinator:
        return self._coordinator

    @property
    def default_stale_time(self) -> int:
        return self._default_stale_time

    def now(self) -> int:
        """Current time in milliseconds according to the client's clock."""
        return self._clock()

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    def create_query(
        self,
        key: KeySpec,
        load_fn: Callable[..., Awaitable[Any]],
        *,
        initial_data: Any = None,
        stale_time: Duration | None = None,
    ) -> Query[Any, Any]:
        """Define a query.

        Args:
            key: Base key segments, or a function of the parameter returning
                the whole key
            load_fn: Async function returning LoadSuccess or LoadFailure;
                called with the parameter, or with no argument when the
                handle has none
            initial_data: Reported as ``data`` until a load succeeds
            stale_time: How long loaded data stays fresh (default: client
                default)
        """
        return Query(
            self,
            key,
            load_fn,
            initial_data=initial_data,
            stale_time=parse_duration(stale_time, self._default_stale_time),
        )

    def create_sequential_query(
        self,
        key: KeySpec,
        load_fn: Callable[..., Awaitable[Any]],
        *,
        initial_data: list[Any] | None = None,
        stale_time: Duration | None = None,
    ) -> SequentialQuery[Any, Any]:
        """Define a cursor-paginated query.

        ``load_fn`` is called as ``load_fn(param, cursor=...)`` (or
        ``load_fn(cursor=...)`` without a parameter) and returns a page
        result; a None cursor marks the last page.
        """
        return SequentialQuery(
            self,
            key,
            load_fn,
            initial_data=initial_data,
            stale_time=parse_duration(stale_time, self._default_stale_time),
        )

    def create_mutation(
        self,
        mutate_fn: Callable[P, Awaitable[Any]],
        *,
        invalidates: Iterable[Sequence[str]] = (),
    ) -> Mutation[P, Any, Any]:
        """Define a mutation that invalidates key prefixes after it succeeds."""
        prefixes = [tuple(prefix) for prefix in invalidates]

        def on_success(_: Any) -> None:
            for prefix in prefixes:
                self.invalidate_queries(prefix)

        return Mutation(mutate_fn, on_success=on_success if prefixes else None)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def invalidate_queries(
        self,
        key_prefix: Sequence[str],
        *,
        force: bool = False,
        exact: bool = False,
    ) -> None:
        """Mark matching queries stale and reload the active ones right away.

        By default (exact=False), invalidating ("todos",) also invalidates
        ("todos", "id:1"). Inactive queries reload on their next access.
        Unknown keys are ignored.
        """
        reload_keys = invalidate(
            self._store, key_prefix, now=self._clock(), force=force, exact=exact
        )
        for key in reload_keys:
            loader = self._store.loader(key)
            if loader is not None:
                self.start_load(loader, "load", force=True)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        """True while any query is loading."""
        return any(entry.loading for entry in self._store.entries())

    @property
    def loading_queries(self) -> list[CacheKey]:
        """Keys with a load in flight."""
        return [entry.key for entry in self._store.entries() if entry.loading]

    @property
    def active_queries(self) -> list[CacheKey]:
        """Keys with at least one active consumer."""
        return [
            entry.key
            for entry in self._store.entries()
            if self._store.active_count(entry.key) > 0
        ]

    @property
    def cached_queries(self) -> list[CacheKey]:
        """Keys that have loaded successfully at least once."""
        return [
            entry.key
            for entry in self._store.entries()
            if entry.loaded_at is not None
        ]

    # -------------------------------------------------------------------------
    # Background loads and lifecycle
    # -------------------------------------------------------------------------

    def start_load(
        self, loader: KeyLoader, mode: LoadMode = "load", *, force: bool = False
    ) -> asyncio.Task[bool] | None:
        """Begin a load and settle it in the background.

        Raises RuntimeError before the key is marked loading when no event
        loop is running.
        """
        asyncio.get_running_loop()
        pending = loader.start(mode, force=force)
        if pending is None:
            return None
        return self.spawn(pending)

    def spawn(self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        """Run a load in the background, keeping a reference until it is done.

        Must be called from a running event loop.
        """
        task = asyncio.get_running_loop().create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            task.get_loop().call_exception_handler(
                {
                    "message": "Background query load raised",
                    "exception": exc,
                    "task": task,
                }
            )

    async def wait_idle(self) -> None:
        """Wait until every background load has settled."""
        while self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    def reset(self) -> None:
        """Drop all cached state.

        Loads still in flight finish but their results are discarded.
        """
        self._store.clear()
        logger.debug("Query client reset")


def create_client(
    *,
    default_stale_time: Duration = 0,
    clock: Clock | None = None,
) -> QueryClient:
    """Create a query client.

    Args:
        default_stale_time: Stale time for queries that set none
        clock: Millisecond clock, mainly for tests

    Returns:
        QueryClient with create_query, create_sequential_query,
        create_mutation and invalidate_queries
    """
    return QueryClient(default_stale_time=default_stale_time, clock=clock)


__all__ = ["QueryClient", "create_client"]
