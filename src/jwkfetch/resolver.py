"""Token-to-key resolution.

Three entry points pick the cache tier to resolve through:

- ``IssuerClaimResolver``: the token's ``iss`` claim (registry, then discovery)
- ``DiscoveryURLResolver``: a fixed discovery document URL
- ``JWKSURLResolver``: a fixed JWKS URL

All share ``KeyResolver.retrieve_key``: a key id missing from a cached key
set is treated as a possibly stale cache. The entry is dropped, the key set
is refetched through every tier below, and the lookup is retried once.
"""

from __future__ import annotations

from typing import Optional

from jwkfetch.cache import KeySetCache, TierPopulateFn, cascade
from jwkfetch.errors import KeyNotFoundError
from jwkfetch.keys import VerificationKey, select_key
from jwkfetch.observability import get_logger
from jwkfetch.service import KeySetCacheService, get_default_service
from jwkfetch.tokens import TokenLike, get_issuer, get_key_id

logger = get_logger(__name__)


class KeyResolver:
    """Base class for the token-to-key entry points.

    Subclasses implement ``resolve()``; instances are also callable so they
    can be used directly as a key function.
    """

    def __init__(self, service: Optional[KeySetCacheService] = None) -> None:
        self.service = service or get_default_service()

    async def resolve(self, token: TokenLike) -> VerificationKey:
        raise NotImplementedError

    async def __call__(self, token: TokenLike) -> VerificationKey:
        return await self.resolve(token)

    async def retrieve_key(
        self,
        token: TokenLike,
        cache_key: str,
        cache: KeySetCache,
        populate: TierPopulateFn,
    ) -> VerificationKey:
        """Return the key matching the token's ``kid`` from the key set at ``cache_key``.

        Raises:
            MissingKeyIDError: If the token has no ``kid`` (before any network call).
            KeyNotFoundError: If the ``kid`` is still absent after one refetch.
            AmbiguousKeyError: If several keys share the ``kid`` (never retried).
            DiscoveryFetchError, MalformedDiscoveryDocumentError, FetchError,
                InvalidURLError: When the key set cannot be obtained.
        """
        kid = get_key_id(token)

        key_set = await cascade(cache, cache_key, populate)
        key = select_key(key_set, kid)
        if key is not None:
            return key

        logger.info("jwkfetch.key.stale_cache", tier=cache.name, cache_key=cache_key, kid=kid)
        key_set = await cascade(cache, cache_key, populate, refresh=True)
        key = select_key(key_set, kid)
        if key is not None:
            return key

        logger.warning("jwkfetch.key.not_found", tier=cache.name, cache_key=cache_key, kid=kid)
        raise KeyNotFoundError(
            kid, cache_key, {"tier": cache.name, "key_count": len(key_set.keys)}
        )


class IssuerClaimResolver(KeyResolver):
    """Resolves keys through the token's ``iss`` claim."""

    async def resolve(self, token: TokenLike) -> VerificationKey:
        """Resolve the key for ``token``.

        Raises:
            MissingKeyIDError: If the token has no ``kid``.
            MissingIssuerClaimError: If the token has no string ``iss`` claim.
        """
        get_key_id(token)
        issuer = get_issuer(token)
        return await self.retrieve_key(
            token, issuer, self.service.issuer_cache, self.service.populate_issuer
        )


class DiscoveryURLResolver(KeyResolver):
    """Resolves keys through a fixed discovery document URL."""

    def __init__(
        self, discovery_url: str, service: Optional[KeySetCacheService] = None
    ) -> None:
        super().__init__(service)
        self.discovery_url = discovery_url

    async def resolve(self, token: TokenLike) -> VerificationKey:
        return await self.retrieve_key(
            token,
            self.discovery_url,
            self.service.discovery_cache,
            self.service.populate_discovery_url,
        )


class JWKSURLResolver(KeyResolver):
    """Resolves keys from a fixed JWKS URL."""

    def __init__(self, jwks_url: str, service: Optional[KeySetCacheService] = None) -> None:
        super().__init__(service)
        self.jwks_url = jwks_url

    async def resolve(self, token: TokenLike) -> VerificationKey:
        return await self.retrieve_key(
            token, self.jwks_url, self.service.jwks_cache, self.service.populate_jwks_url
        )


def from_issuer_claim(service: Optional[KeySetCacheService] = None) -> IssuerClaimResolver:
    """Key resolver keyed by the token's ``iss`` claim."""
    return IssuerClaimResolver(service)


def from_discovery_url(
    discovery_url: str, service: Optional[KeySetCacheService] = None
) -> DiscoveryURLResolver:
    """Key resolver bound to one discovery document URL."""
    return DiscoveryURLResolver(discovery_url, service)


def from_jwks_url(jwks_url: str, service: Optional[KeySetCacheService] = None) -> JWKSURLResolver:
    """Key resolver bound to one JWKS URL."""
    return JWKSURLResolver(jwks_url, service)
