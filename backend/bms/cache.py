# Overview: Cache abstraction injected into the app factory, plus an in-process TTL implementation.

"""
Application cache.

DESIGN:
- Callers depend on the Cache interface only (get/set/delete/clear).
- create_app(cache=...) accepts any implementation; the default is
  InMemoryTTLCache, which lives for the life of the process.
- A distributed cache can be dropped in by subclassing Cache.

EXPIRY:
- Entries expire lazily: a read of an expired key removes it and misses.
- Once the table holds more than max_entries, writes sweep every expired
  entry in one pass. Live entries are never evicted.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from flask import current_app


class Cache(ABC):
    """Minimal key/value cache contract."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class InMemoryTTLCache(Cache):
    """
    Dict-backed cache with a per-entry deadline.

    clock must be monotonic; tests inject a fake one.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be > 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = (value, self._clock() + ttl)
        if len(self._entries) > self.max_entries:
            self.sweep()

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for k in doomed:
            del self._entries[k]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Drop all expired entries; returns how many were removed."""
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def stats(self) -> dict:
        now = self._clock()
        expired = sum(1 for _, expires_at in self._entries.values() if now >= expires_at)
        return {
            "total": len(self._entries),
            "active": len(self._entries) - expired,
            "expired": expired,
        }

    def __len__(self) -> int:
        return len(self._entries)


def get_cache() -> Cache:
    """Return the cache bound to the current app."""
    return current_app.extensions["bms_cache"]
