"""
CacheService -- process-wide, TTL-bounded lookup cache.

Responsibility:
    Holds slow-changing reference lookups (artist existence, storage
    metadata) for a bounded time so that repeated pipeline runs do not
    re-query the store for every request.

Architecture position:
    Kernel > Services.  The ONLY process-wide mutable state in the pipeline.
    Constructed once per process and injected; never an ambient global.

Invariants enforced:
    - An entry is served only while younger than its TTL.
    - At most ``max_entries`` entries are held; expired entries are purged
      on every write, so an idle key does not outlive its TTL in memory.
    - ``get_or_refresh`` calls the loader at most once per key at a time;
      concurrent callers for the same key wait for that load.
    - Loader exceptions propagate and nothing is cached.
    - ``None`` results are not cached unless ``cache_none=True``.

Usage:
    cache = CacheService(default_ttl=300, max_entries=1024)
    artist = cache.get_or_refresh(("artist", artist_id), lambda: store.get_artist(artist_id))
    cache.on_invalidate(lambda key: print("dropped", key))
    cache.invalidate(("artist", artist_id))
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Any

from cachetools import TLRUCache

from royalty_kernel.logging_config import get_logger

logger = get_logger("services.cache")

InvalidationHook = Callable[[Hashable | None], None]


@dataclass(frozen=True)
class _Entry:
    value: Any
    ttl: float


@dataclass
class _Flight:
    """Single-flight slot for one key; dropped when the last waiter leaves."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    waiters: int = 0


def _expires_at(key: Hashable, entry: _Entry, now: float) -> float:
    return now + entry.ttl


def _check_ttl(name: str, ttl: float) -> None:
    if ttl <= 0:
        raise ValueError(f"{name} must be positive, got {ttl}")


class CacheService:
    """
    Thread-safe TTL cache with explicit invalidation hooks.

    Backed by ``cachetools.TLRUCache`` so each entry carries its own TTL.
    cachetools caches are not thread-safe; every access goes through
    ``self._lock``.

    Contract:
        ``invalidate(key)`` and ``clear()`` notify every registered hook
        (with the key, or None for a full clear) after the entry is gone.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        max_entries: int = 1024,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        _check_ttl("default_ttl", default_ttl)
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self._default_ttl = default_ttl
        self._entries: TLRUCache = TLRUCache(maxsize=max_entries, ttu=_expires_at, timer=monotonic)
        self._lock = threading.Lock()
        self._flights: dict[Hashable, _Flight] = {}
        self._hooks: list[InvalidationHook] = []
        self.hits = 0
        self.misses = 0

    def _resolve_ttl(self, ttl: float | None) -> float:
        if ttl is None:
            return self._default_ttl
        _check_ttl("ttl", ttl)
        return ttl

    def _fresh(self, key: Hashable) -> _Entry | None:
        return self._entries.get(key)

    def get(self, key: Hashable) -> Any | None:
        """Cached value for `key`, or None if absent or expired."""
        with self._lock:
            entry = self._fresh(key)
            return entry.value if entry is not None else None

    def put(self, key: Hashable, value: Any, ttl: float | None = None) -> None:
        entry = _Entry(value=value, ttl=self._resolve_ttl(ttl))
        with self._lock:
            self._entries[key] = entry

    def get_or_refresh(
        self,
        key: Hashable,
        loader: Callable[[], Any],
        ttl: float | None = None,
        cache_none: bool = False,
    ) -> Any:
        """
        Return the cached value for `key`, loading it on miss or expiry.

        Raises:
            ValueError: `ttl` given and not positive.
            Whatever `loader` raises; the cache is left unchanged.
        """
        ttl = self._resolve_ttl(ttl)
        with self._lock:
            entry = self._fresh(key)
            if entry is not None:
                self.hits += 1
                return entry.value
            flight = self._flights.setdefault(key, _Flight())
            flight.waiters += 1

        try:
            with flight.lock:
                # Another caller may have loaded it while we waited.
                with self._lock:
                    entry = self._fresh(key)
                    if entry is not None:
                        self.hits += 1
                        return entry.value
                    self.misses += 1

                value = loader()
                if value is not None or cache_none:
                    self.put(key, value, ttl)
                logger.debug(
                    "cache_refreshed",
                    extra={"cache_key": repr(key), "cached": value is not None or cache_none},
                )
                return value
        finally:
            with self._lock:
                flight.waiters -= 1
                if flight.waiters == 0 and self._flights.get(key) is flight:
                    del self._flights[key]

    @property
    def pending_loads(self) -> int:
        """Keys with a load in progress or callers waiting on one."""
        with self._lock:
            return len(self._flights)

    def on_invalidate(self, hook: InvalidationHook) -> None:
        """Register a hook called after each invalidation or clear."""
        with self._lock:
            self._hooks.append(hook)

    def invalidate(self, key: Hashable) -> bool:
        """Drop `key`. Returns True if a live entry was present."""
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            hooks = list(self._hooks)
        for hook in hooks:
            hook(key)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            hooks = list(self._hooks)
        for hook in hooks:
            hook(None)

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)
