"""jwkfetch Error Taxonomy.

This module defines the error hierarchy for key resolution, providing
structured error handling with specific error codes and context
information. Callers can tell a discovery failure from a JWKS fetch
failure from a key lookup failure by the exception class or by ``code``.
"""
from __future__ import annotations

from typing import Any


class JWKFetchError(Exception):
    """Base exception for all jwkfetch errors.

    Attributes:
        code: Error code following the jwkfetch:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class MissingKeyIDError(JWKFetchError):
    """Raised when a token header carries no string ``kid``.

    No network call is made before this error is raised.
    """

    def __init__(
        self, reason: str = "token header has no 'kid'", details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(
            code="jwkfetch:token/missing_kid",
            message=f"Missing key id: {reason}",
            details=details or {},
        )
        self.reason = reason


class MissingIssuerClaimError(JWKFetchError):
    """Raised when a token has no string ``iss`` claim."""

    def __init__(
        self, reason: str = "token has no 'iss' claim", details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(
            code="jwkfetch:token/missing_iss",
            message=f"Missing issuer claim: {reason}",
            details=details or {},
        )
        self.reason = reason


class InvalidURLError(JWKFetchError):
    """Raised when an issuer cannot be turned into a discovery URL."""

    def __init__(self, value: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="jwkfetch:discovery/invalid_url",
            message=f"Invalid URL {value!r}: {reason}",
            details={"value": value, **(details or {})},
        )
        self.value = value
        self.reason = reason


class DiscoveryFetchError(JWKFetchError):
    """Raised when the discovery document cannot be fetched or decoded.

    Attributes:
        url: The discovery document URL
    """

    def __init__(self, url: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="jwkfetch:discovery/fetch_failed",
            message=f"Failed to fetch discovery document from {url}: {reason}",
            details={"url": url, **(details or {})},
        )
        self.url = url
        self.reason = reason


class MalformedDiscoveryDocumentError(JWKFetchError):
    """Raised when a discovery document lacks a string ``jwks_uri``."""

    def __init__(self, url: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="jwkfetch:discovery/malformed_document",
            message=f"Malformed discovery document at {url}: {reason}",
            details={"url": url, **(details or {})},
        )
        self.url = url
        self.reason = reason


class FetchError(JWKFetchError):
    """Raised when a JWKS endpoint is unreachable or its body is not a key set.

    Attributes:
        url: The JWKS URL
    """

    def __init__(self, url: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="jwkfetch:jwks/fetch_failed",
            message=f"Failed to fetch JWKS from {url}: {reason}",
            details={"url": url, **(details or {})},
        )
        self.url = url
        self.reason = reason


class KeyNotFoundError(JWKFetchError):
    """Raised when a key id is absent even after the key set was refetched."""

    def __init__(self, kid: str, cache_key: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="jwkfetch:key/not_found",
            message=f"Key {kid!r} not found in key set for {cache_key}",
            details={"kid": kid, "cache_key": cache_key, **(details or {})},
        )
        self.kid = kid
        self.cache_key = cache_key


class AmbiguousKeyError(JWKFetchError):
    """Raised when more than one key in a key set shares the requested key id.

    Attributes:
        kid: The requested key id
        count: Number of matching keys
    """

    def __init__(self, kid: str, count: int, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="jwkfetch:key/ambiguous",
            message=f"{count} keys share key id {kid!r}",
            details={"kid": kid, "count": count, **(details or {})},
        )
        self.kid = kid
        self.count = count


class SchedulingError(JWKFetchError):
    """Raised when the periodic refresh job cannot be armed."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="jwkfetch:refresh/scheduling_failed",
            message=f"Cannot schedule cache refresh: {reason}",
            details=details or {},
        )
        self.reason = reason
