"""Runtime configuration for jwkfetch.

Defaults live in :mod:`jwkfetch.models.constants`; ``FetchConfig.from_env()``
lets deployments override them without code changes.

Environment Variables:
    JWKFETCH_HTTP_TIMEOUT: Per-request HTTP timeout in seconds
    JWKFETCH_REFRESH_INTERVAL: Seconds between bulk cache refreshes
    JWKFETCH_REFRESH_MAX_RETRIES: Attempts per key beyond the first during a refresh
"""

from __future__ import annotations

import json
import os
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TypeVar

from pydantic import TypeAdapter

from jwkfetch.models.constants import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_REFRESH_BASE_DELAY,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_REFRESH_MAX_DELAY,
    DEFAULT_REFRESH_MAX_RETRIES,
)
from jwkfetch.models.entities import ProviderEntry

ENV_HTTP_TIMEOUT = "JWKFETCH_HTTP_TIMEOUT"
ENV_REFRESH_INTERVAL = "JWKFETCH_REFRESH_INTERVAL"
ENV_REFRESH_MAX_RETRIES = "JWKFETCH_REFRESH_MAX_RETRIES"

T = TypeVar("T", int, float)

_providers_adapter = TypeAdapter(list[ProviderEntry])


@dataclass
class RefreshPolicy:
    """Backoff applied to a key that fails during a bulk refresh.

    Attributes:
        max_retries: Extra attempts per key within one refresh pass (0 disables retries)
        base_delay: Base delay in seconds for exponential backoff
        max_delay: Upper bound for a single backoff delay
        jitter: Whether to add up to 10% random jitter to each delay
    """

    max_retries: int = DEFAULT_REFRESH_MAX_RETRIES
    base_delay: float = DEFAULT_REFRESH_BASE_DELAY
    max_delay: float = DEFAULT_REFRESH_MAX_DELAY
    jitter: bool = True

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (zero-based).

        delay = min(base_delay * 2 ** attempt, max_delay) + jitter
        """
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay += random.uniform(0, delay * 0.1)  # nosec B311
        return float(delay)


@dataclass
class FetchConfig:
    """Settings shared by the fetcher, discovery resolver and refresh job.

    Attributes:
        http_timeout: Timeout in seconds applied to every HTTP GET
        refresh_interval: Seconds between scheduled bulk refreshes
        refresh_policy: Per-key retry/backoff during a bulk refresh
    """

    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    refresh_policy: RefreshPolicy = field(default_factory=RefreshPolicy)

    def __post_init__(self) -> None:
        if self.http_timeout <= 0:
            raise ValueError("http_timeout must be positive")
        if self.refresh_interval <= 0:
            raise ValueError("refresh_interval must be positive")
        if self.refresh_policy.max_retries < 0:
            raise ValueError("refresh_policy.max_retries must not be negative")

    @classmethod
    def from_env(cls) -> FetchConfig:
        """Build a config from JWKFETCH_* environment variables over the defaults."""
        return cls(
            http_timeout=_env_number(ENV_HTTP_TIMEOUT, float, DEFAULT_HTTP_TIMEOUT),
            refresh_interval=_env_number(ENV_REFRESH_INTERVAL, float, DEFAULT_REFRESH_INTERVAL),
            refresh_policy=RefreshPolicy(
                max_retries=_env_number(ENV_REFRESH_MAX_RETRIES, int, DEFAULT_REFRESH_MAX_RETRIES)
            ),
        )


def _env_number(name: str, cast: Callable[[str], T], default: T) -> T:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def load_providers(path: Path | str) -> list[ProviderEntry]:
    """Load provider entries from a JSON file.

    The file holds a list of ``{"issuer", "discovery_url", "jwks_url"}``
    objects (``discoveryURL`` / ``jwksURL`` are accepted as aliases).

    Raises:
        ValueError: If the file is not valid JSON.
        pydantic.ValidationError: If an entry is malformed or sets both URLs.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in providers file {path}: {exc}") from exc
    return _providers_adapter.validate_python(data)
