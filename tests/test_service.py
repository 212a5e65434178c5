"""Tests for KeySetCacheService: cascade, init and bulk refresh."""

import asyncio

import httpx
import pytest

from jwkfetch import service as service_module
from jwkfetch.config import FetchConfig
from jwkfetch.errors import DiscoveryFetchError, SchedulingError
from jwkfetch.models import ProviderEntry
from jwkfetch.observability import get_metrics
from jwkfetch.service import KeySetCacheService, get_default_service, set_default_service
from tests.factories import (
    DISCOVERY_URL,
    ISSUER,
    JWKS_URL,
    SAMPLE_KID,
    FakeScheduler,
    RecordingTransport,
    ServiceFactory,
    discovery_document,
    jwks_document,
)


class TestCascade:
    """Tests for tier lookups back-filling the tiers below."""

    async def test_issuer_lookup_fills_every_tier(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp)

        key_set = await service.key_set_for_issuer(ISSUER)

        assert [key.kid for key in key_set.keys] == [SAMPLE_KID]
        assert service.issuer_cache.get(ISSUER) is key_set
        assert service.discovery_cache.get(DISCOVERY_URL) is key_set
        assert service.jwks_cache.get(JWKS_URL) is key_set
        assert idp.count(DISCOVERY_URL) == 1
        assert idp.count(JWKS_URL) == 1

    async def test_warm_tiers_are_reused(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp)
        await service.key_set_for_jwks_url(JWKS_URL)

        await service.key_set_for_discovery_url(DISCOVERY_URL)
        await service.key_set_for_issuer(ISSUER)

        assert idp.count(JWKS_URL) == 1
        assert idp.count(DISCOVERY_URL) == 1

    async def test_forced_refresh_reaches_the_network(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp)
        await service.key_set_for_issuer(ISSUER)

        await service.key_set_for_issuer(ISSUER, refresh=True)

        assert idp.count(DISCOVERY_URL) == 2
        assert idp.count(JWKS_URL) == 2

    async def test_registry_jwks_url_skips_discovery(
        self, make_service: ServiceFactory
    ) -> None:
        idp = RecordingTransport(routes={"https://static.example.com/keys": jwks_document()})
        service = make_service(idp)
        await service.init(
            [ProviderEntry(issuer=ISSUER, jwks_url="https://static.example.com/keys")]
        )

        await service.key_set_for_issuer(ISSUER)

        assert idp.count(DISCOVERY_URL) == 0
        assert idp.count("https://static.example.com/keys") == 1

    async def test_registry_discovery_url_is_used(self, make_service: ServiceFactory) -> None:
        custom = "https://idp.example.com/custom/openid-configuration"
        idp = RecordingTransport(
            routes={custom: discovery_document(), JWKS_URL: jwks_document()}
        )
        service = make_service(idp)
        await service.init([ProviderEntry(issuer=ISSUER, discovery_url=custom)])

        assert service.discovery_cache.get(custom) is not None
        assert idp.count(DISCOVERY_URL) == 0

    async def test_concurrent_cold_misses_fetch_once(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp)

        results = await asyncio.gather(*(service.key_set_for_issuer(ISSUER) for _ in range(10)))

        assert idp.count(DISCOVERY_URL) == 1
        assert idp.count(JWKS_URL) == 1
        assert all(result is results[0] for result in results)

    async def test_clear_empties_every_tier(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp)
        await service.key_set_for_issuer(ISSUER)

        service.clear()

        assert all(len(cache) == 0 for cache, _ in service.tiers())


class TestInit:
    """Tests for init()."""

    async def test_init_declares_warms_and_arms_refresh(
        self, idp: RecordingTransport, make_service: ServiceFactory, scheduler: FakeScheduler
    ) -> None:
        service = make_service(idp)

        report = await service.init([ProviderEntry(issuer=ISSUER, jwks_url=JWKS_URL)])

        assert report.ok
        assert report.refreshed == 2
        assert service.initialized
        assert service.jwks_cache.get(JWKS_URL) is not None
        assert service.issuer_cache.get(ISSUER) is not None
        assert idp.count(JWKS_URL) == 1
        assert idp.count(DISCOVERY_URL) == 0
        assert len(scheduler.jobs) == 1
        interval, job = scheduler.jobs[0]
        assert interval == service.config.refresh_interval
        assert job == service.refresh_caches

    async def test_second_init_raises(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp)
        await service.init()

        with pytest.raises(SchedulingError):
            await service.init()

    async def test_scheduler_failure_raises_scheduling_error(
        self, idp: RecordingTransport, make_service: ServiceFactory, scheduler: FakeScheduler
    ) -> None:
        scheduler.error = RuntimeError("no running event loop")
        service = make_service(idp)

        with pytest.raises(SchedulingError, match="no running event loop"):
            await service.init([ProviderEntry(issuer=ISSUER, jwks_url=JWKS_URL)])
        assert not service.initialized

    async def test_init_tolerates_unreachable_provider(
        self, make_service: ServiceFactory
    ) -> None:
        service = make_service(RecordingTransport(), max_retries=0)

        report = await service.init([ProviderEntry(issuer=ISSUER, jwks_url=JWKS_URL)])

        assert not report.ok
        assert report.failed == {"jwks_url": [JWKS_URL], "issuer": [ISSUER]}
        assert service.initialized

    async def test_init_reports_malformed_jwks_url(self, make_service: ServiceFactory) -> None:
        bad_url = "https://idp.example.com:abc/keys"
        service = make_service(RecordingTransport(), max_retries=0)

        report = await service.init([ProviderEntry(issuer=ISSUER, jwks_url=bad_url)])

        assert report.failed == {"jwks_url": [bad_url], "issuer": [ISSUER]}
        assert service.initialized

    async def test_init_with_default_asyncio_scheduler(self, idp: RecordingTransport) -> None:
        service = KeySetCacheService(
            config=FetchConfig(refresh_interval=3600), transport=idp.transport
        )
        try:
            await service.init([ProviderEntry(issuer=ISSUER, jwks_url=JWKS_URL)])
            assert service.scheduler.running  # type: ignore[attr-defined]
        finally:
            await service.aclose()


class TestRefreshCaches:
    """Tests for refresh_caches()."""

    async def test_refresh_recomputes_every_entry_once_per_tier(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp)
        await service.key_set_for_issuer(ISSUER)

        report = await service.refresh_caches()

        assert report.ok
        assert report.refreshed == 3
        # Upper tiers reuse the key set just fetched for the JWKS tier
        assert idp.count(JWKS_URL) == 2
        assert idp.count(DISCOVERY_URL) == 2
        assert get_metrics().get_counter("jwkfetch_refresh_total", {"tier": "jwks_url"}) == 1

    async def test_refresh_picks_up_rotated_keys(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp)
        await service.key_set_for_jwks_url(JWKS_URL)
        idp.routes[JWKS_URL] = {"keys": []}

        await service.refresh_caches()

        key_set = service.jwks_cache.get(JWKS_URL)
        assert key_set is not None
        assert list(key_set.keys) == []

    async def test_failed_entry_is_retried_then_left_empty(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp, max_retries=2)
        await service.key_set_for_jwks_url(JWKS_URL)
        idp.routes[JWKS_URL] = lambda: httpx.Response(500)

        report = await service.refresh_caches()

        assert report.failed == {"jwks_url": [JWKS_URL]}
        assert idp.count(JWKS_URL) == 1 + 3
        assert JWKS_URL in service.jwks_cache
        assert service.jwks_cache.get(JWKS_URL) is None
        assert (
            get_metrics().get_counter("jwkfetch_refresh_failures_total", {"tier": "jwks_url"})
            == 1
        )

    async def test_transient_failure_recovers_within_pass(
        self, make_service: ServiceFactory
    ) -> None:
        attempts = 0

        def flaky() -> object:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                return httpx.Response(503)
            return jwks_document()

        idp = RecordingTransport(routes={JWKS_URL: flaky})
        service = make_service(idp)
        service.jwks_cache.declare(JWKS_URL)

        report = await service.refresh_caches()

        assert report.ok
        assert attempts == 2
        assert service.jwks_cache.get(JWKS_URL) is not None

    async def test_empty_slot_is_retried_on_next_pass(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp, max_retries=0)
        service.discovery_cache.declare(DISCOVERY_URL)
        good_discovery = idp.routes.pop(DISCOVERY_URL)

        first = await service.refresh_caches()
        idp.routes[DISCOVERY_URL] = good_discovery
        second = await service.refresh_caches()

        assert first.failed == {"discovery_url": [DISCOVERY_URL]}
        assert second.ok
        assert service.discovery_cache.get(DISCOVERY_URL) is not None

    async def test_failed_refresh_does_not_block_on_demand_resolution(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        service = make_service(idp, max_retries=0)
        service.discovery_cache.declare(DISCOVERY_URL)
        good_discovery = idp.routes.pop(DISCOVERY_URL)
        await service.refresh_caches()

        with pytest.raises(DiscoveryFetchError):
            await service.key_set_for_discovery_url(DISCOVERY_URL)
        idp.routes[DISCOVERY_URL] = good_discovery

        assert await service.key_set_for_discovery_url(DISCOVERY_URL) is not None


class TestDefaultService:
    """Tests for the process-wide service helpers."""

    def test_default_service_is_created_lazily_and_reused(self) -> None:
        first = get_default_service()
        assert get_default_service() is first

    def test_default_service_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JWKFETCH_REFRESH_INTERVAL", "60")

        assert get_default_service().config.refresh_interval == 60.0

    def test_set_default_service(
        self, idp: RecordingTransport, make_service: ServiceFactory
    ) -> None:
        custom = make_service(idp)
        set_default_service(custom)

        assert get_default_service() is custom

    async def test_module_level_init_and_refresh(
        self, idp: RecordingTransport, make_service: ServiceFactory, scheduler: FakeScheduler
    ) -> None:
        set_default_service(make_service(idp))

        report = await service_module.init([ProviderEntry(jwks_url=JWKS_URL)])
        again = await service_module.refresh_caches()

        assert report.refreshed == 1
        assert again.refreshed == 1
        assert len(scheduler.jobs) == 1

    async def test_reset_default_service_closes_it(
        self, idp: RecordingTransport, make_service: ServiceFactory, scheduler: FakeScheduler
    ) -> None:
        set_default_service(make_service(idp))

        await service_module.reset_default_service()

        assert scheduler.closed
        assert service_module._default_service is None
