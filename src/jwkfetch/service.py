"""Key set cache service: the three-tier resolution cascade.

The service owns three ``KeySetCache`` tiers keyed by JWKS URL, discovery
URL and issuer. Each tier's populate function computes its value from the
tier below:

    issuer --(registry or derived discovery URL)--> discovery URL
    discovery URL --(discovery document jwks_uri)--> JWKS URL
    JWKS URL --(HTTP GET)--> KeySet

so a resolution at any depth back-fills every tier it passes through.
``init()`` declares statically known keys, warms them and arms the periodic
``refresh_caches()`` job.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from functools import partial
from typing import Iterable, Optional

import httpx
from joserfc import jwk

from jwkfetch.cache import KeySetCache, TierPopulateFn, cascade
from jwkfetch.config import FetchConfig
from jwkfetch.discovery import DiscoveryResolver, get_discovery_url
from jwkfetch.errors import JWKFetchError, SchedulingError
from jwkfetch.fetcher import KeySetFetcher
from jwkfetch.models.constants import TIER_DISCOVERY_URL, TIER_ISSUER, TIER_JWKS_URL
from jwkfetch.models.entities import ProviderEntry
from jwkfetch.observability import get_logger, get_metrics
from jwkfetch.registry import ProviderRegistry
from jwkfetch.scheduler import AsyncioScheduler, Scheduler

logger = get_logger(__name__)


@dataclass
class RefreshReport:
    """Outcome of one bulk refresh pass.

    Attributes:
        refreshed: Number of entries recomputed successfully
        failed: Tier name -> cache keys left empty after exhausting retries
    """

    refreshed: int = 0
    failed: dict[str, list[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class KeySetCacheService:
    """Owns the cache tiers and the functions that populate them.

    Example:
        >>> service = KeySetCacheService()
        >>> await service.init([ProviderEntry(issuer="https://idp", jwks_url="https://idp/keys")])
        >>> key_set = await service.key_set_for_issuer("https://idp")
    """

    def __init__(
        self,
        *,
        config: Optional[FetchConfig] = None,
        registry: Optional[ProviderRegistry] = None,
        fetcher: Optional[KeySetFetcher] = None,
        discovery: Optional[DiscoveryResolver] = None,
        scheduler: Optional[Scheduler] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Timeouts, refresh interval and refresh backoff.
            registry: Static issuer associations; init() replaces it.
            fetcher: JWKS fetcher; built from ``transport`` and ``config`` if omitted.
            discovery: Discovery resolver; built like ``fetcher`` if omitted.
            scheduler: Runs the periodic refresh; an AsyncioScheduler if omitted.
            transport: Optional httpx transport for testing.
        """
        self.config = config or FetchConfig()
        self.registry = registry or ProviderRegistry()
        self.fetcher = fetcher or KeySetFetcher(
            transport=transport, timeout=self.config.http_timeout
        )
        self.discovery = discovery or DiscoveryResolver(
            transport=transport, timeout=self.config.http_timeout
        )
        self.scheduler: Scheduler = scheduler or AsyncioScheduler()
        self.jwks_cache = KeySetCache(TIER_JWKS_URL)
        self.discovery_cache = KeySetCache(TIER_DISCOVERY_URL)
        self.issuer_cache = KeySetCache(TIER_ISSUER)
        self._initialized = False

    # Populate functions, one per tier

    async def populate_jwks_url(self, jwks_url: str, *, refresh: bool = False) -> jwk.KeySet:
        return await self.fetcher.fetch(jwks_url)

    async def populate_discovery_url(
        self, discovery_url: str, *, refresh: bool = False
    ) -> jwk.KeySet:
        jwks_url = await self.discovery.get_jwks_url(discovery_url)
        return await self.key_set_for_jwks_url(jwks_url, refresh=refresh)

    async def populate_issuer(self, issuer: str, *, refresh: bool = False) -> jwk.KeySet:
        entry = self.registry.lookup(issuer)
        if entry is not None and entry.jwks_url:
            return await self.key_set_for_jwks_url(entry.jwks_url, refresh=refresh)
        if entry is not None and entry.discovery_url:
            return await self.key_set_for_discovery_url(entry.discovery_url, refresh=refresh)
        return await self.key_set_for_discovery_url(get_discovery_url(issuer), refresh=refresh)

    # Tier lookups

    async def key_set_for_jwks_url(self, jwks_url: str, *, refresh: bool = False) -> jwk.KeySet:
        return await cascade(self.jwks_cache, jwks_url, self.populate_jwks_url, refresh=refresh)

    async def key_set_for_discovery_url(
        self, discovery_url: str, *, refresh: bool = False
    ) -> jwk.KeySet:
        return await cascade(
            self.discovery_cache, discovery_url, self.populate_discovery_url, refresh=refresh
        )

    async def key_set_for_issuer(self, issuer: str, *, refresh: bool = False) -> jwk.KeySet:
        return await cascade(self.issuer_cache, issuer, self.populate_issuer, refresh=refresh)

    def tiers(self) -> list[tuple[KeySetCache, TierPopulateFn]]:
        """Tiers from the bottom of the cascade up, with their populate functions."""
        return [
            (self.jwks_cache, self.populate_jwks_url),
            (self.discovery_cache, self.populate_discovery_url),
            (self.issuer_cache, self.populate_issuer),
        ]

    def clear(self) -> None:
        """Forget every cached entry in every tier."""
        for cache, _ in self.tiers():
            cache.clear()

    # Bulk refresh and initialization

    async def refresh_caches(self) -> RefreshReport:
        """Recompute every known entry of every tier.

        Tiers are refreshed bottom-up so that upper tiers pick up the key sets
        just fetched for the tiers below instead of fetching them again. An
        entry that keeps failing after ``config.refresh_policy`` retries is
        left empty (still known, so the next pass retries it); failures never
        propagate.
        """
        report = RefreshReport()
        metrics = get_metrics()
        for cache, populate in self.tiers():
            labels = {"tier": cache.name}
            for cache_key in cache.keys():
                if await self._refresh_entry(cache, cache_key, populate):
                    report.refreshed += 1
                    metrics.increment_counter("jwkfetch_refresh_total", labels)
                else:
                    report.failed.setdefault(cache.name, []).append(cache_key)
                    metrics.increment_counter("jwkfetch_refresh_failures_total", labels)
        logger.info(
            "jwkfetch.refresh.completed",
            refreshed=report.refreshed,
            failed=sum(len(keys) for keys in report.failed.values()),
        )
        return report

    async def _refresh_entry(
        self, cache: KeySetCache, cache_key: str, populate: TierPopulateFn
    ) -> bool:
        policy = self.config.refresh_policy
        for attempt in range(policy.max_retries + 1):
            try:
                await cache.refresh(cache_key, partial(populate, refresh=False))
                return True
            except JWKFetchError as exc:
                logger.warning(
                    "jwkfetch.refresh.failed",
                    tier=cache.name,
                    cache_key=cache_key,
                    attempt=attempt + 1,
                    code=exc.code,
                    error=exc.message,
                )
                if attempt < policy.max_retries:
                    await asyncio.sleep(policy.backoff(attempt))
        return False

    async def init(self, providers: Iterable[ProviderEntry] = ()) -> RefreshReport:
        """Register static providers, warm their entries and arm the periodic refresh.

        Fetch failures while warming are tolerated (see refresh_caches()).

        Returns:
            The report of the initial refresh pass.

        Raises:
            SchedulingError: If called twice, or if the refresh job cannot be armed.
        """
        if self._initialized:
            raise SchedulingError("init() was already called for this service")

        self.registry = ProviderRegistry(providers)
        for entry in self.registry:
            if entry.issuer:
                self.issuer_cache.declare(entry.issuer)
            if entry.discovery_url:
                self.discovery_cache.declare(entry.discovery_url)
            if entry.jwks_url:
                self.jwks_cache.declare(entry.jwks_url)

        report = await self.refresh_caches()

        try:
            self.scheduler.every(self.config.refresh_interval, self.refresh_caches)
        except (RuntimeError, ValueError) as exc:
            raise SchedulingError(str(exc)) from exc
        self._initialized = True
        logger.info(
            "jwkfetch.init.completed",
            providers=len(self.registry),
            refresh_interval=self.config.refresh_interval,
        )
        return report

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def aclose(self) -> None:
        """Stop the periodic refresh."""
        await self.scheduler.aclose()


_default_service: Optional[KeySetCacheService] = None


def get_default_service() -> KeySetCacheService:
    """Return the process-wide service, creating it from the environment on first use."""
    global _default_service
    if _default_service is None:
        _default_service = KeySetCacheService(config=FetchConfig.from_env())
    return _default_service


def set_default_service(service: KeySetCacheService) -> None:
    """Replace the process-wide service (e.g. to inject a transport or scheduler)."""
    global _default_service
    _default_service = service


async def reset_default_service() -> None:
    """Stop and drop the process-wide service (for test isolation)."""
    global _default_service
    service, _default_service = _default_service, None
    if service is not None:
        await service.aclose()


async def init(providers: Iterable[ProviderEntry] = ()) -> RefreshReport:
    """``init()`` on the process-wide service; call at most once at startup."""
    return await get_default_service().init(providers)


async def refresh_caches() -> RefreshReport:
    """``refresh_caches()`` on the process-wide service."""
    return await get_default_service().refresh_caches()
