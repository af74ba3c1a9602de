"""Core types for tiny_query."""

from dataclasses import dataclass
from datetime import timedelta
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    Literal,
    NewType,
    TypeVar,
)

T = TypeVar("T")
E = TypeVar("E")
C = TypeVar("C")

# Branded key type - compile-time enforcement only
if TYPE_CHECKING:
    CacheKey = NewType("CacheKey", tuple[str, ...])
else:
    CacheKey = tuple

# "load" on mount/invalidation, "more" for the next page, "reload" on demand
LoadMode = Literal["load", "more", "reload"]


@dataclass(frozen=True, slots=True)
class LoadSuccess(Generic[T]):
    """A successful load carrying its data."""

    data: T

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class LoadFailure(Generic[E]):
    """A failed load carrying its error."""

    error: E

    @property
    def success(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class PageSuccess(LoadSuccess[T], Generic[T, C]):
    """A successful page load; a cursor of None means there is no next page."""

    cursor: C | None = None


LoadResult = LoadSuccess[T] | LoadFailure[E]


@dataclass(slots=True)
class CacheEntry(Generic[T, E]):
    """Mutable state of one resolved cache key."""

    key: CacheKey
    data: T | None = None
    error: E | None = None
    loading: bool = False
    loaded_at: int | None = None  # Unix timestamp ms
    stale_at: int | None = None  # loaded_at + stale time
    cursor: Any = None
    has_more: bool | None = None
    generation: int = 0

    def is_stale(self, now: int) -> bool:
        """Never-loaded entries are always stale."""
        if self.loaded_at is None or self.stale_at is None:
            return True
        return now >= self.stale_at


@dataclass(frozen=True, slots=True)
class QueryState(Generic[T, E]):
    """Point-in-time view of a query handle."""

    loading: bool
    data: T | None
    error: E | None
    loaded_at: int | None
    stale_at: int | None


@dataclass(frozen=True, slots=True)
class SequentialQueryState(QueryState[T, E]):
    """Point-in-time view of a sequential query handle."""

    has_more: bool | None = None


@dataclass(slots=True)
class MutationState(Generic[T, E]):
    """Live state of a mutation; updated in place on every run."""

    loading: bool = False
    error: E | None = None
    data: T | None = None


# Duration type alias
Duration = str | int | timedelta  # "30s", "5m", "2h", "1d", milliseconds or timedelta
