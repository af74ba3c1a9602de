"""Constructors for tagged load results."""

from typing import Any, TypeVar

from tiny_query.types import LoadFailure, LoadSuccess, PageSuccess

T = TypeVar("T")
E = TypeVar("E")
C = TypeVar("C")


def succeed(data: T) -> LoadSuccess[T]:
    """Wrap data in a successful load result."""
    return LoadSuccess(data)


def fail(error: E) -> LoadFailure[E]:
    """Wrap an error in a failed load result."""
    return LoadFailure(error)


def page(data: T, cursor: C | None = None) -> PageSuccess[T, C]:
    """Wrap one page of a sequential query.

    Args:
        data: The page contents
        cursor: Cursor for the next page, or None when this is the last page
    """
    return PageSuccess(data, cursor)


def ensure_result(value: Any) -> LoadSuccess[Any] | LoadFailure[Any]:
    """Check that a loader returned a tagged result."""
    if isinstance(value, (LoadSuccess, LoadFailure)):
        return value
    raise TypeError(
        f"Loader must return LoadSuccess or LoadFailure, got {type(value).__name__}"
    )


__all__ = ["ensure_result", "fail", "page", "succeed"]
