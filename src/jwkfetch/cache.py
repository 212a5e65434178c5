"""Key set cache tier.

A ``KeySetCache`` maps a string key (a JWKS URL, a discovery URL or an
issuer) to a resolved joserfc ``KeySet``. Three instances make up the
resolution cascade owned by :class:`jwkfetch.service.KeySetCacheService`.

A key can be present with no value: ``declare()`` registers known keys up
front (and a failed refresh leaves its key in that state) so the bulk
refresh still visits them. ``get()`` treats such a slot as a miss.

Population is coalesced per key: concurrent misses on the same key share a
single call to the populate function. The per-key lock only lives while some
caller holds or waits for it, so unknown keys leave nothing behind.
"""

from __future__ import annotations

import asyncio
import threading
from contextlib import asynccontextmanager
from functools import partial
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

from joserfc import jwk

from jwkfetch.observability import get_logger, get_metrics

logger = get_logger(__name__)

PopulateFn = Callable[[str], Awaitable[jwk.KeySet]]


class TierPopulateFn(Protocol):
    """Computes a tier's value from the next tier down.

    With ``refresh=True`` the lower tiers must be bypassed too, so a forced
    repopulation reaches the network instead of a stale lower entry.
    """

    def __call__(self, cache_key: str, *, refresh: bool = False) -> Awaitable[jwk.KeySet]: ...


class _PopulateSlot:
    """Per-key populate lock plus the number of callers holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class KeySetCache:
    """Thread-safe in-memory map from cache key to KeySet.

    Attributes:
        name: Tier name used in logs and metric labels.

    Example:
        >>> cache = KeySetCache("jwks_url")
        >>> key_set = await cache.get_or_populate(url, fetcher.fetch)
        >>> cache.get(url) is key_set
        True
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: dict[str, Optional[jwk.KeySet]] = {}
        self._lock = threading.Lock()
        self._populate_locks: dict[str, _PopulateSlot] = {}

    def get(self, cache_key: str) -> Optional[jwk.KeySet]:
        """Return the cached KeySet, or None for an empty or unknown key."""
        with self._lock:
            return self._entries.get(cache_key)

    def set(self, cache_key: str, key_set: jwk.KeySet) -> None:
        with self._lock:
            self._entries[cache_key] = key_set

    def declare(self, cache_key: str) -> None:
        """Register ``cache_key`` with no value unless it is already present."""
        with self._lock:
            self._entries.setdefault(cache_key, None)

    def reset(self, cache_key: str) -> None:
        """Drop the value for ``cache_key`` but keep the key known."""
        with self._lock:
            self._entries[cache_key] = None

    def invalidate(self, cache_key: str) -> None:
        """Remove ``cache_key`` entirely."""
        with self._lock:
            self._entries.pop(cache_key, None)

    def keys(self) -> list[str]:
        """Snapshot of every known key, populated or not."""
        with self._lock:
            return list(self._entries)

    def __contains__(self, cache_key: object) -> bool:
        with self._lock:
            return cache_key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._populate_locks.clear()

    @asynccontextmanager
    async def _populating(self, cache_key: str) -> AsyncIterator[None]:
        with self._lock:
            slot = self._populate_locks.get(cache_key)
            if slot is None:
                slot = self._populate_locks[cache_key] = _PopulateSlot()
            slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            with self._lock:
                slot.users -= 1
                if slot.users == 0 and self._populate_locks.get(cache_key) is slot:
                    del self._populate_locks[cache_key]

    async def get_or_populate(self, cache_key: str, populate: PopulateFn) -> jwk.KeySet:
        """Return the cached KeySet, populating it on a miss.

        Only one populate call per key runs at a time; callers that miss
        while it is in flight wait for it and reuse its result. A populate
        failure propagates and leaves the cache untouched.
        """
        metrics = get_metrics()
        labels = {"tier": self.name}
        cached = self.get(cache_key)
        if cached is not None:
            metrics.increment_counter("jwkfetch_cache_hits_total", labels)
            return cached

        async with self._populating(cache_key):
            cached = self.get(cache_key)
            if cached is not None:
                metrics.increment_counter("jwkfetch_cache_hits_total", labels)
                return cached
            metrics.increment_counter("jwkfetch_cache_misses_total", labels)
            logger.debug("jwkfetch.cache.miss", tier=self.name, cache_key=cache_key)
            key_set = await populate(cache_key)
            self.set(cache_key, key_set)
            return key_set

    async def refresh(self, cache_key: str, populate: PopulateFn) -> jwk.KeySet:
        """Recompute ``cache_key`` as on a cold miss.

        The old value is dropped first; on failure the key stays known with
        no value and the error propagates.
        """
        async with self._populating(cache_key):
            self.reset(cache_key)
            key_set = await populate(cache_key)
            self.set(cache_key, key_set)
            return key_set


async def cascade(
    cache: KeySetCache,
    cache_key: str,
    populate: TierPopulateFn,
    *,
    refresh: bool = False,
) -> jwk.KeySet:
    """Get-or-populate one tier of the resolution cascade.

    With ``refresh`` the entry is removed first and ``populate`` is asked to
    refresh the tiers below it as well.
    """
    if refresh:
        cache.invalidate(cache_key)
        get_metrics().increment_counter("jwkfetch_cache_invalidations_total", {"tier": cache.name})
        logger.info("jwkfetch.cache.invalidated", tier=cache.name, cache_key=cache_key)
    return await cache.get_or_populate(cache_key, partial(populate, refresh=refresh))
