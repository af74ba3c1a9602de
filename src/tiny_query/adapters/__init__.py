"""Loader adapters for tiny_query."""

from contextlib import suppress

# Optional adapters - only available when dependencies are installed
with suppress(ImportError):
    from tiny_query.adapters.http import HttpError, HttpLoader

__all__ = [
    "HttpError",
    "HttpLoader",
]
