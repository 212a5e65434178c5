"""OpenID Connect discovery for jwkfetch.

Derives an issuer's discovery document URL
(``{issuer}/.well-known/openid-configuration``) and reads the ``jwks_uri``
it advertises.
"""

from __future__ import annotations

from typing import Optional

import httpx
from authlib.oidc.discovery import get_well_known_url

from jwkfetch.errors import DiscoveryFetchError, InvalidURLError, MalformedDiscoveryDocumentError
from jwkfetch.httpclient import get_json
from jwkfetch.models.constants import DEFAULT_HTTP_TIMEOUT, DEFAULT_SCHEME
from jwkfetch.models.entities import DiscoveryDocument
from jwkfetch.observability import get_logger

logger = get_logger(__name__)

_ALLOWED_SCHEMES = frozenset({"http", "https"})


def get_discovery_url(issuer: str) -> str:
    """Return the discovery document URL for ``issuer``.

    Trailing slashes on the issuer are stripped before
    ``/.well-known/openid-configuration`` is appended, so ``https://host//``
    and ``https://host`` map to the same URL. Issuers without a scheme
    default to https.

    Example:
        >>> get_discovery_url("accounts.google.com/")
        'https://accounts.google.com/.well-known/openid-configuration'

    Raises:
        InvalidURLError: If the issuer cannot be parsed as an http(s) URL with a host.
    """
    value = issuer.strip()
    if not value:
        raise InvalidURLError(issuer, "issuer is empty")
    if "://" not in value:
        value = f"{DEFAULT_SCHEME}://{value}"

    url = get_well_known_url(value, external=True)
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise InvalidURLError(issuer, str(exc)) from exc
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise InvalidURLError(issuer, f"unsupported scheme {parsed.scheme!r}")
    if not parsed.host:
        raise InvalidURLError(issuer, "no host")
    return url


class DiscoveryResolver:
    """Reads JWKS URLs from OpenID discovery documents.

    Example:
        >>> resolver = DiscoveryResolver()
        >>> url = get_discovery_url("https://accounts.google.com")
        >>> jwks_url = await resolver.get_jwks_url(url)
    """

    def __init__(
        self,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self._transport = transport
        self._timeout = timeout

    async def discover(self, discovery_url: str) -> DiscoveryDocument:
        """Fetch and validate the discovery document at ``discovery_url``.

        Raises:
            DiscoveryFetchError: On a malformed URL, transport failure, non-2xx
                status or a non-JSON body.
            MalformedDiscoveryDocumentError: If ``jwks_uri`` is absent or not a string.
        """
        try:
            data = await get_json(
                discovery_url, kind="discovery", transport=self._transport, timeout=self._timeout
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DiscoveryFetchError(discovery_url, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise DiscoveryFetchError(discovery_url, f"response is not JSON ({exc})") from exc

        if not isinstance(data, dict):
            raise MalformedDiscoveryDocumentError(discovery_url, "document is not a JSON object")
        jwks_uri = data.get("jwks_uri")
        if not jwks_uri or not isinstance(jwks_uri, str):
            raise MalformedDiscoveryDocumentError(discovery_url, "missing string 'jwks_uri'")
        issuer = data.get("issuer")

        document = DiscoveryDocument(
            jwks_uri=jwks_uri,
            issuer=issuer if isinstance(issuer, str) else None,
        )
        logger.info("jwkfetch.discovery.resolved", url=discovery_url, jwks_uri=jwks_uri)
        return document

    async def get_jwks_url(self, discovery_url: str) -> str:
        """Return the ``jwks_uri`` advertised at ``discovery_url``."""
        document = await self.discover(discovery_url)
        return document.jwks_uri
