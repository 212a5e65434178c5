"""Unverified access to a token's header and claims.

Only the pieces needed to pick a key are read: the header ``kid`` and the
``iss`` claim. Signatures are not checked here; that is the job of the JWT
library the resolved key is handed to.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Union

from jwkfetch.errors import MissingIssuerClaimError, MissingKeyIDError


@dataclass(frozen=True)
class UnverifiedToken:
    """A token split into its (unverified) header and claims."""

    header: dict[str, Any] = field(default_factory=dict)
    claims: dict[str, Any] = field(default_factory=dict)


TokenLike = Union[str, bytes, UnverifiedToken]


def _b64url_decode(segment: str) -> bytes:
    pad = 4 - len(segment) % 4
    if pad != 4:
        segment += "=" * pad
    return base64.urlsafe_b64decode(segment)


def _decode_segment(token: str, index: int) -> dict[str, Any]:
    parts = token.strip().split(".")
    if len(parts) != 3:
        raise ValueError("expected a compact JWS with three dot-separated parts")
    value = json.loads(_b64url_decode(parts[index]).decode("utf-8"))
    if not isinstance(value, dict):
        raise ValueError("token segment is not a JSON object")
    return value


def _as_text(token: str | bytes) -> str:
    return token.decode("ascii") if isinstance(token, bytes) else token


def get_unverified_header(token: TokenLike) -> dict[str, Any]:
    """Return the token's protected header without verifying anything."""
    if isinstance(token, UnverifiedToken):
        return token.header
    return _decode_segment(_as_text(token), 0)


def get_unverified_claims(token: TokenLike) -> dict[str, Any]:
    """Return the token's claims without verifying anything."""
    if isinstance(token, UnverifiedToken):
        return token.claims
    return _decode_segment(_as_text(token), 1)


def get_key_id(token: TokenLike) -> str:
    """Return the header ``kid``.

    Raises:
        MissingKeyIDError: If the header is unreadable or ``kid`` is not a non-empty string.
    """
    try:
        header = get_unverified_header(token)
    except (ValueError, UnicodeError) as exc:
        raise MissingKeyIDError(f"token header is unreadable ({exc})") from exc
    kid = header.get("kid")
    if not isinstance(kid, str) or not kid:
        raise MissingKeyIDError()
    return kid


def get_issuer(token: TokenLike) -> str:
    """Return the ``iss`` claim.

    Raises:
        MissingIssuerClaimError: If claims are unreadable or ``iss`` is not a non-empty string.
    """
    try:
        claims = get_unverified_claims(token)
    except (ValueError, UnicodeError) as exc:
        raise MissingIssuerClaimError(f"token claims are unreadable ({exc})") from exc
    iss = claims.get("iss")
    if not isinstance(iss, str) or not iss:
        raise MissingIssuerClaimError()
    return iss
