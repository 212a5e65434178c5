"""jwkfetch: resolve token verification keys from JWKS endpoints.

Given a token, jwkfetch returns the single key matching its ``kid``,
discovering the issuer's JWKS endpoint through OpenID discovery only when
needed and caching key sets by issuer, discovery URL and JWKS URL.

Public exports:
    init: Register static providers and arm the periodic refresh (default service)
    refresh_caches: Recompute every cached entry (default service)
    from_issuer_claim / from_discovery_url / from_jwks_url: Resolver factories
    KeySetCacheService: Owner of the cache tiers (inject for isolation)
    ProviderEntry: Static issuer -> discovery/JWKS URL association
    VerificationKey: A resolved key
"""

from jwkfetch.config import FetchConfig, RefreshPolicy, load_providers
from jwkfetch.errors import (
    AmbiguousKeyError,
    DiscoveryFetchError,
    FetchError,
    InvalidURLError,
    JWKFetchError,
    KeyNotFoundError,
    MalformedDiscoveryDocumentError,
    MissingIssuerClaimError,
    MissingKeyIDError,
    SchedulingError,
)
from jwkfetch.keys import VerificationKey
from jwkfetch.models.entities import ProviderEntry
from jwkfetch.resolver import (
    DiscoveryURLResolver,
    IssuerClaimResolver,
    JWKSURLResolver,
    KeyResolver,
    from_discovery_url,
    from_issuer_claim,
    from_jwks_url,
)
from jwkfetch.service import (
    KeySetCacheService,
    RefreshReport,
    get_default_service,
    init,
    refresh_caches,
    reset_default_service,
    set_default_service,
)
from jwkfetch.tokens import UnverifiedToken

__version__ = "0.3.0"

__all__ = [
    "AmbiguousKeyError",
    "DiscoveryFetchError",
    "DiscoveryURLResolver",
    "FetchConfig",
    "FetchError",
    "InvalidURLError",
    "IssuerClaimResolver",
    "JWKFetchError",
    "JWKSURLResolver",
    "KeyNotFoundError",
    "KeyResolver",
    "KeySetCacheService",
    "MalformedDiscoveryDocumentError",
    "MissingIssuerClaimError",
    "MissingKeyIDError",
    "ProviderEntry",
    "RefreshPolicy",
    "RefreshReport",
    "SchedulingError",
    "UnverifiedToken",
    "VerificationKey",
    "__version__",
    "from_discovery_url",
    "from_issuer_claim",
    "from_jwks_url",
    "get_default_service",
    "init",
    "load_providers",
    "refresh_caches",
    "reset_default_service",
    "set_default_service",
]
