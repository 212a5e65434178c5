"""JWKS document fetching.

One HTTP GET against a JWKS endpoint, decoded into a joserfc ``KeySet``.
No caching happens here; see :mod:`jwkfetch.cache`.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from joserfc import jwk
from joserfc.errors import JoseError

from jwkfetch.errors import FetchError
from jwkfetch.httpclient import get_json
from jwkfetch.models.constants import DEFAULT_HTTP_TIMEOUT
from jwkfetch.observability import get_logger

logger = get_logger(__name__)


def parse_key_set(data: Any) -> jwk.KeySet:
    """Build a KeySet from a decoded JWKS document.

    Raises:
        ValueError: If ``data`` is not a ``{"keys": [...]}`` object or a key is invalid.
    """
    if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
        raise ValueError("JWKS document must be an object with a 'keys' list")
    if not data["keys"]:
        # import_key_set refuses an empty list; a provider mid-rotation may publish one
        return jwk.KeySet([])
    try:
        return jwk.KeySet.import_key_set(data)
    except (JoseError, KeyError, TypeError) as exc:
        raise ValueError(f"invalid key in JWKS document: {exc}") from exc


async def fetch_key_set(
    jwks_url: str,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> jwk.KeySet:
    """Fetch a JWKS document and return it as a KeySet.

    Args:
        jwks_url: URL of the JWKS endpoint.
        transport: Optional httpx transport for testing.
        timeout: Per-request timeout in seconds.

    Raises:
        FetchError: If the URL is malformed or the endpoint is unreachable,
            answers non-2xx or returns something other than a JWK set.
    """
    try:
        data = await get_json(jwks_url, kind="jwks", transport=transport, timeout=timeout)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(jwks_url, str(exc) or type(exc).__name__) from exc
    except ValueError as exc:
        raise FetchError(jwks_url, f"response is not JSON ({exc})") from exc

    try:
        key_set = parse_key_set(data)
    except ValueError as exc:
        raise FetchError(jwks_url, str(exc)) from exc

    logger.info("jwkfetch.jwks.fetched", url=jwks_url, key_count=len(key_set.keys))
    return key_set


class KeySetFetcher:
    """Fetches JWKS documents with a fixed transport and timeout.

    Example:
        >>> fetcher = KeySetFetcher(timeout=5.0)
        >>> key_set = await fetcher.fetch("https://idp.example.com/jwks")
    """

    def __init__(
        self,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self._transport = transport
        self._timeout = timeout

    async def fetch(self, jwks_url: str) -> jwk.KeySet:
        """Fetch ``jwks_url``; see :func:`fetch_key_set`."""
        return await fetch_key_set(jwks_url, transport=self._transport, timeout=self._timeout)
