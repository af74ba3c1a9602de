"""Load coordination: de-duplication, staleness gating and result commits."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from typing import Any

from tiny_query.results import ensure_result
from tiny_query.store import CacheStore
from tiny_query.types import CacheEntry, LoadFailure, LoadMode, LoadSuccess

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
Fetch = Callable[[], Awaitable[Any]]
# Maps a settled result onto the entry fields to write
Commit = Callable[
    [CacheEntry[Any, Any], LoadSuccess[Any] | LoadFailure[Any]], dict[str, Any]
]


def commit_result(
    entry: CacheEntry[Any, Any], result: LoadSuccess[Any] | LoadFailure[Any]
) -> dict[str, Any]:
    """Default commit: success replaces data, failure only sets the error."""
    if isinstance(result, LoadSuccess):
        return {"data": result.data}
    return {"error": result.error}


class LoadCoordinator:
    """Runs at most one load per key and writes its outcome to the store."""

    def __init__(self, store: CacheStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> CacheStore:
        return self._store

    def begin(
        self,
        key: Sequence[str],
        *,
        force: bool = False,
        check_stale: bool = True,
    ) -> int | None:
        """Pass the load gate and mark the key loading.

        Returns the load's generation, or None when the load is skipped
        because the key is already loading or still fresh. ``force``
        bypasses both checks.
        """
        entry = self._store.entry(key)
        if not force:
            if entry.loading:
                logger.debug("Skipping load for %s: already loading", entry.key)
                return None
            if check_stale and not entry.is_stale(self._clock()):
                logger.debug("Skipping load for %s: still fresh", entry.key)
                return None

        generation = self._store.begin_load(key)
        logger.debug("Loading %s (generation %d)", entry.key, generation)
        return generation

    async def settle(
        self,
        key: Sequence[str],
        generation: int,
        fetch: Fetch,
        *,
        stale_time: int = 0,
        commit: Commit = commit_result,
    ) -> bool:
        """Await the fetch and commit its result if no newer load superseded it.

        Exceptions raised by ``fetch`` propagate after ``loading`` is reset.
        """
        try:
            result = ensure_result(await fetch())
            if not self._store.is_current(key, generation):
                logger.debug("Discarding superseded result for %s", tuple(key))
                return False

            changes = commit(self._store.entry(key), result)
            if result.success:
                now = self._clock()
                changes.update(loaded_at=now, stale_at=now + stale_time)
            else:
                logger.debug("Load for %s failed: %r", tuple(key), result.error)
            self._store.update(key, **changes)
            return True
        finally:
            if self._store.is_current(key, generation):
                self._store.update(key, loading=False)

    async def trigger(
        self,
        key: Sequence[str],
        fetch: Fetch,
        *,
        stale_time: int = 0,
        force: bool = False,
        check_stale: bool = True,
        commit: Commit = commit_result,
    ) -> bool:
        """Load the key unless it is already loading or still fresh.

        Returns True when a load ran and its result was committed.
        """
        generation = self.begin(key, force=force, check_stale=check_stale)
        if generation is None:
            return False
        return await self.settle(
            key, generation, fetch, stale_time=stale_time, commit=commit
        )


class KeyLoader:
    """The load operation registered for one key, with its parameter bound.

    Reused by every handle, reload and invalidation targeting the key so
    they all run the same request.
    """

    def __init__(
        self,
        coordinator: LoadCoordinator,
        key: Sequence[str],
        fetcher: Callable[[LoadMode], Fetch],
        *,
        stale_time: int = 0,
        commit: Commit = commit_result,
        skip: Callable[[CacheEntry[Any, Any], LoadMode], bool] | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._key = tuple(key)
        self._fetcher = fetcher
        self._stale_time = stale_time
        self._commit = commit
        self._skip = skip

    @property
    def key(self) -> tuple[str, ...]:
        return self._key

    def start(
        self, mode: LoadMode = "load", *, force: bool = False
    ) -> Coroutine[Any, Any, bool] | None:
        """Begin a load synchronously and return the coroutine that settles it.

        Returns None when the load is skipped. The caller must await or
        schedule the returned coroutine.
        """
        if not force and self._skip is not None:
            entry = self._coordinator.store.entry(self._key)
            if self._skip(entry, mode):
                logger.debug("Skipping %s load for %s", mode, self._key)
                return None

        fetch = self._fetcher(mode)
        generation = self._coordinator.begin(
            self._key, force=force, check_stale=mode == "load"
        )
        if generation is None:
            return None

        return self._coordinator.settle(
            self._key,
            generation,
            fetch,
            stale_time=self._stale_time,
            commit=self._commit,
        )

    async def __call__(self, mode: LoadMode = "load", *, force: bool = False) -> bool:
        pending = self.start(mode, force=force)
        if pending is None:
            return False
        return await pending
