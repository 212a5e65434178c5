"""Provider and discovery entities for jwkfetch."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator

from jwkfetch.models.base import JWKFetchBaseModel


class ProviderEntry(JWKFetchBaseModel):
    """Static association between an issuer and where its keys live.

    At most one of ``discovery_url`` / ``jwks_url`` may be set. Leaving both
    unset is legal and means "use live discovery for this issuer"; such an
    entry still declares the issuer up front so init() warms it.

    Attributes:
        issuer: Issuer identifier (the token ``iss`` claim); lookup key.
        discovery_url: URL of the issuer's discovery document.
        jwks_url: URL of the issuer's JWKS document.
    """

    issuer: Optional[str] = Field(default=None, description="Issuer identifier")
    discovery_url: Optional[str] = Field(
        default=None,
        alias="discoveryURL",
        description="OpenID discovery document URL",
    )
    jwks_url: Optional[str] = Field(
        default=None,
        alias="jwksURL",
        description="JWKS document URL",
    )

    @model_validator(mode="after")
    def _at_most_one_url(self) -> "ProviderEntry":
        if self.discovery_url and self.jwks_url:
            raise ValueError("set either discovery_url or jwks_url, not both")
        return self


class DiscoveryDocument(JWKFetchBaseModel):
    """Subset of an OpenID Provider Metadata document.

    Attributes:
        jwks_uri: JWKS endpoint URL (the only field resolution needs).
        issuer: Issuer advertised by the provider, when present.
    """

    jwks_uri: str = Field(..., description="JWKS endpoint URL")
    issuer: Optional[str] = Field(default=None, description="Provider issuer identifier")
