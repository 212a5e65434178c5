"""Observability module for jwkfetch.

Structured logging (structlog) and in-process metrics for cache and HTTP
activity.

Example:
    >>> from jwkfetch.observability import get_logger, get_metrics
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("jwkfetch.cache.miss", tier="jwks_url", cache_key="https://idp/jwks")
    >>>
    >>> get_metrics().get_counter("jwkfetch_http_requests_total", {"kind": "jwks"})
"""

from jwkfetch.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from jwkfetch.observability.metrics import (
    MetricsCollector,
    get_metrics,
    reset_metrics,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_metrics",
    "reset_metrics",
    "MetricsCollector",
]
