"""Prefix-based invalidation of cached queries."""

import logging
from collections.abc import Sequence

from tiny_query.keys import key_matches
from tiny_query.store import CacheStore
from tiny_query.types import CacheKey

logger = logging.getLogger(__name__)


def invalidate(
    store: CacheStore,
    key_prefix: Sequence[str],
    *,
    now: int,
    force: bool = False,
    exact: bool = False,
) -> list[CacheKey]:
    """Mark matching entries stale and return the ones that must reload now.

    By default (exact=False), every key that starts with ``key_prefix``
    segment by segment matches: ("todos",) matches ("todos", "id:1") but
    not ("todosArchive",). With exact=True only the key itself matches.

    With force=True the matching entries also drop their data, error,
    loading flag and cursor right away.

    Returns the matching keys that have at least one active consumer;
    the caller starts a forced load for each of them.
    """
    if isinstance(key_prefix, str):
        raise TypeError("key_prefix must be a sequence of segments, not a string")
    prefix = tuple(key_prefix)
    reload_keys: list[CacheKey] = []

    for entry in store.entries():
        if not key_matches(prefix, entry.key, exact=exact):
            continue

        changes: dict[str, object] = {"stale_at": now - 1}
        if force:
            changes.update(
                loading=False, data=None, error=None, cursor=None, has_more=None
            )
        store.update(entry.key, **changes)

        if store.active_count(entry.key) > 0:
            reload_keys.append(entry.key)

    logger.debug(
        "Invalidated %s (exact=%s, force=%s); %d active to reload",
        prefix,
        exact,
        force,
        len(reload_keys),
    )
    return reload_keys
