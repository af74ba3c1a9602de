"""In-memory query state: entries, active counts, loaders and listeners."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from tiny_query.keys import serialize_key
from tiny_query.types import CacheEntry, CacheKey

if TYPE_CHECKING:
    from tiny_query.coordinator import KeyLoader

logger = logging.getLogger(__name__)

# Called with the key and the name of the field that changed
Listener = Callable[[CacheKey, str], None]


class CacheStore:
    """Process-wide query state addressed by flattened cache key.

    All methods are synchronous; callers rely on the event loop never
    interleaving two of them.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry[Any, Any]] = {}
        self._active: dict[str, int] = {}
        self._loaders: dict[str, KeyLoader] = {}
        self._listeners: dict[str, list[Listener]] = {}
        # Shared across entries and never reset, so generations stay unique
        self._generations = itertools.count(1)

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def entry(self, key: Sequence[str]) -> CacheEntry[Any, Any]:
        """Get the entry for a key, creating it on first access."""
        address = serialize_key(key)
        entry = self._entries.get(address)
        if entry is None:
            entry = CacheEntry(key=CacheKey(tuple(key)))
            self._entries[address] = entry
        return entry

    def get(self, key: Sequence[str]) -> CacheEntry[Any, Any] | None:
        """Get the entry for a key without creating it."""
        return self._entries.get(serialize_key(key))

    def entries(self) -> list[CacheEntry[Any, Any]]:
        """All entries in creation order."""
        return list(self._entries.values())

    def update(self, key: Sequence[str], **fields: Any) -> None:
        """Write entry fields and notify listeners of each field that changed."""
        entry = self.entry(key)
        changed = []
        for name, value in fields.items():
            if getattr(entry, name) is value:
                continue
            setattr(entry, name, value)
            changed.append(name)

        for name in changed:
            self._notify(entry.key, name)

    def begin_load(self, key: Sequence[str]) -> int:
        """Clear the error, mark the key loading and return the new generation."""
        entry = self.entry(key)
        entry.generation = next(self._generations)
        self.update(key, error=None, loading=True)
        return entry.generation

    def is_current(self, key: Sequence[str], generation: int) -> bool:
        """Check that no newer load has started for the key since ``generation``."""
        entry = self.get(key)
        return entry is not None and entry.generation == generation

    # -------------------------------------------------------------------------
    # Active counts
    # -------------------------------------------------------------------------

    def register_active(self, key: Sequence[str]) -> Callable[[], None]:
        """Count one more consumer of the key; the returned callable releases it."""
        address = serialize_key(key)
        self._active[address] = self._active.get(address, 0) + 1
        logger.debug("Active count for %s is %d", address, self._active[address])
        released = False

        def release() -> None:
            nonlocal released
            if released:
                return
            released = True
            self.release_active(key)

        return release

    def release_active(self, key: Sequence[str]) -> None:
        """Count one fewer consumer of the key, never going below zero."""
        address = serialize_key(key)
        self._active[address] = max(self._active.get(address, 0) - 1, 0)
        logger.debug("Active count for %s is %d", address, self._active[address])

    def active_count(self, key: Sequence[str]) -> int:
        """Number of consumers currently observing the key."""
        return self._active.get(serialize_key(key), 0)

    # -------------------------------------------------------------------------
    # Loaders
    # -------------------------------------------------------------------------

    def register_loader(self, key: Sequence[str], loader: KeyLoader) -> KeyLoader:
        """Store the loader for a key unless one is already registered."""
        return self._loaders.setdefault(serialize_key(key), loader)

    def loader(self, key: Sequence[str]) -> KeyLoader | None:
        """The loader registered for a key, if any."""
        return self._loaders.get(serialize_key(key))

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def watch(self, key: Sequence[str], listener: Listener) -> Callable[[], None]:
        """Call ``listener`` whenever a field of the key's entry changes."""
        listeners = self._listeners.setdefault(serialize_key(key), [])
        listeners.append(listener)

        def unwatch() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unwatch

    def _notify(self, key: CacheKey, name: str) -> None:
        for listener in list(self._listeners.get(serialize_key(key), ())):
            listener(key, name)

    def clear(self) -> None:
        """Drop all state."""
        self._entries.clear()
        self._active.clear()
        self._loaders.clear()
        self._listeners.clear()
