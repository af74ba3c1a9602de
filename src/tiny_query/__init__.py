"""tiny_query - shared, de-duplicated async query state for Python."""

from contextlib import suppress

# Client API
from tiny_query.client import QueryClient, create_client

# Duration parsing
from tiny_query.duration import parse_duration

# Key codec
from tiny_query.keys import (
    deserialize_key,
    is_key_prefix,
    key_fragment,
    resolve_key,
    serialize_key,
)
from tiny_query.mutation import Mutation, create_mutation
from tiny_query.query import Query, QueryHandle

# Load results
from tiny_query.results import fail, page, succeed
from tiny_query.sequential import SequentialQuery, SequentialQueryHandle

# Core types
from tiny_query.types import (
    CacheEntry,
    CacheKey,
    Duration,
    LoadFailure,
    LoadMode,
    LoadResult,
    LoadSuccess,
    MutationState,
    PageSuccess,
    QueryState,
    SequentialQueryState,
)

# Optional adapter imports - only available when dependencies are installed
with suppress(ImportError):
    from tiny_query.adapters import HttpError, HttpLoader

__version__ = "0.1.0"

__all__ = [
    "CacheEntry",
    "CacheKey",
    "Duration",
    "HttpError",
    "HttpLoader",
    "LoadFailure",
    "LoadMode",
    "LoadResult",
    "LoadSuccess",
    "Mutation",
    "MutationState",
    "PageSuccess",
    "Query",
    "QueryClient",
    "QueryHandle",
    "QueryState",
    "SequentialQuery",
    "SequentialQueryHandle",
    "SequentialQueryState",
    "create_client",
    "create_mutation",
    "deserialize_key",
    "fail",
    "is_key_prefix",
    "key_fragment",
    "page",
    "parse_duration",
    "resolve_key",
    "serialize_key",
    "succeed",
]
