"""Cursor-paginated queries layered on the keyed query machinery.

A sequential entry's data is the list of pages loaded so far. Three load
modes act on it:

- ``load`` (mount, invalidation): replay every cached page from the first
  one, following the cursors the source returns now, and rebuild the list
- ``more``: fetch the page after the stored cursor and append it
- ``reload``: fetch the first page only, dropping the others; skipped once
  ``has_more`` is False
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeVar

from tiny_query.coordinator import Fetch
from tiny_query.query import Query, QueryHandle
from tiny_query.results import ensure_result
from tiny_query.types import (
    CacheEntry,
    CacheKey,
    LoadFailure,
    LoadMode,
    LoadSuccess,
    PageSuccess,
    SequentialQueryState,
)

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class PagesFailure(LoadFailure[E]):
    """A replay that failed after some pages had already loaded."""

    pages: list[Any] = field(default_factory=list)
    cursor: Any = None


def _page_cursor(result: LoadSuccess[Any]) -> Any:
    return result.cursor if isinstance(result, PageSuccess) else None


class SequentialQuery(Query[list[T], E]):
    """A query whose data accumulates pages fetched by cursor.

    Usage:
        feed = client.create_sequential_query(["feed"], load_feed_page)
        handle = feed({"channel": "news"})
        handle.subscribe()
        await handle.load_more()
    """

    def __call__(self, param: Any = None) -> SequentialQueryHandle[T, E]:
        return SequentialQueryHandle(self, param)

    async def _fetch_page(
        self, param: Any, cursor: Any
    ) -> LoadSuccess[Any] | LoadFailure[Any]:
        if param is None:
            result = await self._load_fn(cursor=cursor)
        else:
            result = await self._load_fn(param, cursor=cursor)
        return ensure_result(result)

    def _fetcher(self, key: CacheKey, param: Any, mode: LoadMode) -> Fetch:
        entry = self._client.store.entry(key)
        pages = list(entry.data) if isinstance(entry.data, list) else []
        cursor = entry.cursor

        async def replay() -> LoadSuccess[Any] | LoadFailure[Any]:
            fresh: list[Any] = []
            next_cursor: Any = None
            for _ in range(max(len(pages), 1)):
                result = await self._fetch_page(param, next_cursor)
                if not isinstance(result, LoadSuccess):
                    return PagesFailure(result.error, fresh, next_cursor)
                fresh.append(result.data)
                next_cursor = _page_cursor(result)
                if next_cursor is None:
                    break
            return PageSuccess(fresh, next_cursor)

        async def more() -> LoadSuccess[Any] | LoadFailure[Any]:
            result = await self._fetch_page(param, cursor)
            if not isinstance(result, LoadSuccess):
                return result
            return PageSuccess([*pages, result.data], _page_cursor(result))

        async def first() -> LoadSuccess[Any] | LoadFailure[Any]:
            result = await self._fetch_page(param, None)
            if not isinstance(result, LoadSuccess):
                return result
            return PageSuccess([result.data], _page_cursor(result))

        if mode == "more":
            return more
        if mode == "reload":
            return first
        return replay

    def _commit(
        self, entry: CacheEntry[Any, Any], result: LoadSuccess[Any] | LoadFailure[Any]
    ) -> dict[str, Any]:
        if isinstance(result, PageSuccess):
            return {
                "data": result.data,
                "cursor": result.cursor,
                "has_more": result.cursor is not None,
            }
        if isinstance(result, PagesFailure) and result.pages:
            return {
                "error": result.error,
                "data": result.pages,
                "cursor": result.cursor,
                "has_more": result.cursor is not None,
            }
        return super()._commit(entry, result)

    def _skip(self, entry: CacheEntry[Any, Any], mode: LoadMode) -> bool:
        if mode == "more":
            return entry.has_more is not True
        return mode == "reload" and entry.has_more is False


class SequentialQueryHandle(QueryHandle[list[T], E]):
    """Handle for a sequential query, adding ``has_more`` and ``load_more``.

    ``reload()`` re-fetches the first page only, dropping the pages after it,
    and does nothing once the last page has loaded.
    """

    @property
    def has_more(self) -> bool | None:
        """Whether another page exists; None while a load is in flight."""
        entry = self._entry
        return None if entry.loading else entry.has_more

    def snapshot(self) -> SequentialQueryState[list[T], E]:
        return SequentialQueryState(
            loading=self.loading,
            data=self.data,
            error=self.error,
            loaded_at=self.loaded_at,
            stale_at=self.stale_at,
            has_more=self.has_more,
        )

    async def load_more(self) -> bool:
        """Fetch the next page, unless loading or there is no next page."""
        return await self._run("more")
