"""Plain JSON GET shared by discovery and JWKS fetching."""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from jwkfetch.models.constants import DEFAULT_HTTP_TIMEOUT
from jwkfetch.observability import get_logger, get_metrics

logger = get_logger(__name__)


async def get_json(
    url: str,
    *,
    kind: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> Any:
    """GET ``url`` and decode the JSON body.

    Args:
        url: Absolute URL to fetch.
        kind: Label for logs and metrics ("discovery" or "jwks").
        transport: Optional httpx transport for testing.
        timeout: Timeout in seconds for the whole request.

    Raises:
        httpx.HTTPError: On network errors, timeouts or non-2xx status.
        httpx.InvalidURL: If ``url`` cannot be parsed.
        ValueError: If the body is not valid JSON.
    """
    kwargs: dict[str, Any] = {"timeout": httpx.Timeout(timeout)}
    if transport is not None:
        kwargs["transport"] = transport

    metrics = get_metrics()
    labels = {"kind": kind}
    metrics.increment_counter("jwkfetch_http_requests_total", labels)
    started = time.perf_counter()
    try:
        async with httpx.AsyncClient(**kwargs) as client:
            resp = await client.get(url, headers={"Accept": "application/json"})
            resp.raise_for_status()
            return resp.json()
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        metrics.increment_counter("jwkfetch_http_errors_total", labels)
        logger.warning("jwkfetch.http.failed", kind=kind, url=url, error=str(exc))
        raise
    finally:
        metrics.observe_histogram(
            "jwkfetch_http_duration_seconds", time.perf_counter() - started, labels
        )
