"""Keyed queries and the handles consumers observe them through."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from tiny_query.coordinator import Fetch, KeyLoader, commit_result
from tiny_query.keys import KeySpec, resolve_key
from tiny_query.types import (
    CacheEntry,
    CacheKey,
    LoadFailure,
    LoadMode,
    LoadSuccess,
    QueryState,
)

if TYPE_CHECKING:
    from tiny_query.client import QueryClient

logger = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E")

# Called with the name of the entry field that changed
HandleListener = Callable[[str], None]


class Query(Generic[T, E]):
    """A query definition; call it with a parameter to get a handle.

    Usage:
        todos = client.create_query(["todos"], load_todos, stale_time="30s")
        handle = todos({"user": 7})
        unsubscribe = handle.subscribe()
    """

    def __init__(
        self,
        client: QueryClient,
        key: KeySpec,
        load_fn: Callable[..., Awaitable[Any]],
        *,
        initial_data: T | None = None,
        stale_time: int = 0,
    ) -> None:
        self._client = client
        self._key = key
        self._load_fn = load_fn
        self._initial_data = initial_data
        self._stale_time = stale_time

    @property
    def initial_data(self) -> T | None:
        return self._initial_data

    @property
    def stale_time(self) -> int:
        return self._stale_time

    def __call__(self, param: Any = None) -> QueryHandle[T, E]:
        return QueryHandle(self, param)

    def resolve(self, param: Any) -> CacheKey:
        """Resolve the key for ``param`` and register its loader once."""
        key = resolve_key(self._key, param)
        store = self._client.store
        store.entry(key)
        if store.loader(key) is None:
            store.register_loader(key, self._make_loader(key, param))
        return key

    def _make_loader(self, key: CacheKey, param: Any) -> KeyLoader:
        return KeyLoader(
            self._client.coordinator,
            key,
            lambda mode: self._fetcher(key, param, mode),
            stale_time=self._stale_time,
            commit=self._commit,
            skip=self._skip,
        )

    def _fetcher(self, key: CacheKey, param: Any, mode: LoadMode) -> Fetch:
        async def fetch() -> Any:
            if param is None:
                return await self._load_fn()
            return await self._load_fn(param)

        return fetch

    def _commit(
        self, entry: CacheEntry[Any, Any], result: LoadSuccess[Any] | LoadFailure[Any]
    ) -> dict[str, Any]:
        return commit_result(entry, result)

    def _skip(self, entry: CacheEntry[Any, Any], mode: LoadMode) -> bool:
        return False


@dataclass
class _Subscription:
    listener: HandleListener | None
    release: Callable[[], None]


class QueryHandle(Generic[T, E]):
    """One consumer's view of a query for a parameter value.

    Field reads always reflect the shared entry of the current key.
    """

    def __init__(self, query: Query[T, E], param: Any = None) -> None:
        self._query = query
        self._client = query._client
        self._param = param
        self._key = query.resolve(param)
        self._subscriptions: list[_Subscription] = []
        self._unwatch: Callable[[], None] | None = None

    @property
    def key(self) -> CacheKey:
        return self._key

    @property
    def param(self) -> Any:
        return self._param

    @property
    def _entry(self) -> CacheEntry[Any, Any]:
        return self._client.store.entry(self._key)

    @property
    def loading(self) -> bool:
        return self._entry.loading

    @property
    def data(self) -> T | None:
        data = self._entry.data
        return self._query.initial_data if data is None else data

    @property
    def error(self) -> E | None:
        return self._entry.error

    @property
    def loaded_at(self) -> int | None:
        return self._entry.loaded_at

    @property
    def stale_at(self) -> int | None:
        return self._entry.stale_at

    def snapshot(self) -> QueryState[T, E]:
        """Capture the current field values."""
        return QueryState(
            loading=self.loading,
            data=self.data,
            error=self.error,
            loaded_at=self.loaded_at,
            stale_at=self.stale_at,
        )

    # -------------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------------

    def subscribe(self, listener: HandleListener | None = None) -> Callable[[], None]:
        """Start observing the key and load it in the background if stale.

        Every call counts as one active consumer. The returned callable
        stops observing; calling it again does nothing.
        """
        # Fail before registering when there is no loop to load on
        asyncio.get_running_loop()
        subscription = _Subscription(
            listener, self._client.store.register_active(self._key)
        )
        self._subscriptions.append(subscription)
        if self._unwatch is None:
            self._unwatch = self._client.store.watch(self._key, self._forward)
        self._spawn("load")

        def unsubscribe() -> None:
            if subscription not in self._subscriptions:
                return
            self._subscriptions.remove(subscription)
            subscription.release()
            if not self._subscriptions and self._unwatch is not None:
                self._unwatch()
                self._unwatch = None

        return unsubscribe

    def set_param(self, param: Any) -> None:
        """Switch to another parameter value, moving subscriptions to its key."""
        if self._subscriptions:
            asyncio.get_running_loop()
        self._param = param
        key = self._query.resolve(param)
        if key == self._key:
            return

        logger.debug("Handle moved from %s to %s", self._key, key)
        store = self._client.store
        for subscription in self._subscriptions:
            subscription.release()
            subscription.release = store.register_active(key)
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = store.watch(key, self._forward)
        self._key = key

        if self._subscriptions:
            self._spawn("load")

    def _forward(self, key: CacheKey, name: str) -> None:
        for subscription in list(self._subscriptions):
            if subscription.listener is not None:
                subscription.listener(name)

    def _loader(self) -> KeyLoader | None:
        # Re-registers the loader when the client was reset under this handle
        return self._client.store.loader(self._query.resolve(self._param))

    def _spawn(self, mode: LoadMode) -> None:
        loader = self._loader()
        if loader is not None:
            self._client.start_load(loader, mode)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def _run(self, mode: LoadMode) -> bool:
        loader = self._loader()
        if loader is None:
            return False
        return await loader(mode)

    async def load(self) -> bool:
        """Load unless already loading or still fresh."""
        return await self._run("load")

    async def reload(self) -> bool:
        """Load again regardless of staleness, unless already loading."""
        return await self._run("reload")
