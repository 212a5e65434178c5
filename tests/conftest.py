"""Shared pytest fixtures for jwkfetch tests."""

from __future__ import annotations

import pytest

from jwkfetch import service as service_module
from jwkfetch.config import FetchConfig, RefreshPolicy
from jwkfetch.observability import reset_metrics
from jwkfetch.service import KeySetCacheService
from tests.factories import (
    DISCOVERY_URL,
    JWKS_URL,
    FakeScheduler,
    RecordingTransport,
    ServiceFactory,
    discovery_document,
    jwks_document,
)


@pytest.fixture(autouse=True)
def _isolate_state(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fresh metrics and no process-wide service for every test."""
    reset_metrics()
    monkeypatch.setattr(service_module, "_default_service", None)


@pytest.fixture
def idp() -> RecordingTransport:
    """An identity provider serving a discovery document and the sample JWKS."""
    return RecordingTransport(
        routes={
            DISCOVERY_URL: discovery_document(),
            JWKS_URL: jwks_document(),
        }
    )


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def make_service(scheduler: FakeScheduler) -> ServiceFactory:
    """Build a service over a recording transport with instant refresh retries."""

    def factory(transport: RecordingTransport, max_retries: int = 2) -> KeySetCacheService:
        config = FetchConfig(
            refresh_policy=RefreshPolicy(max_retries=max_retries, base_delay=0, jitter=False)
        )
        return KeySetCacheService(config=config, scheduler=scheduler, transport=transport.transport)

    return factory
