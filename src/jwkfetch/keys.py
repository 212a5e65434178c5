"""Key lookup and materialization.

A key set is a joserfc ``KeySet``; this module finds the entry for a key id
and turns it into a ``VerificationKey`` carrying the usable public key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from cryptography.hazmat.primitives.serialization import load_pem_public_key
from joserfc import jwk

from jwkfetch.errors import AmbiguousKeyError


@dataclass(frozen=True)
class VerificationKey:
    """A key resolved for a token, immutable once built.

    Attributes:
        kid: Key id the key was published under.
        kty: JWK key type (RSA, EC, OKP, oct).
        use: Intended use ("sig", "enc") when published.
        alg: Algorithm hint when published.
        jwk: The joserfc key object (pass it to joserfc for verification).
        public_key: Materialized key: a cryptography public key object, or
            the raw secret bytes for symmetric ``oct`` keys.
    """

    kid: str
    kty: str
    use: Optional[str]
    alg: Optional[str]
    jwk: Any
    public_key: Any

    def as_dict(self) -> dict[str, Any]:
        """Return the public JWK parameters."""
        if isinstance(self.jwk, jwk.OctKey):
            return self.jwk.as_dict()
        return self.jwk.as_dict(private=False)


def find_keys(key_set: jwk.KeySet, kid: str) -> list[Any]:
    """Return every key in ``key_set`` published under ``kid``."""
    return [key for key in key_set.keys if key.kid == kid]


def materialize(key: Any) -> VerificationKey:
    """Convert a joserfc key into a ``VerificationKey``."""
    params = key.as_dict()
    if isinstance(key, jwk.OctKey):
        public_key: Any = key.raw_value
    else:
        public_key = load_pem_public_key(key.as_pem(private=False))
    return VerificationKey(
        kid=params.get("kid", ""),
        kty=params.get("kty", ""),
        use=params.get("use"),
        alg=params.get("alg"),
        jwk=key,
        public_key=public_key,
    )


def select_key(key_set: jwk.KeySet, kid: str) -> Optional[VerificationKey]:
    """Return the single key for ``kid``, or None when the set has none.

    Raises:
        AmbiguousKeyError: If more than one key carries ``kid``.
    """
    matches = find_keys(key_set, kid)
    if not matches:
        return None
    if len(matches) > 1:
        raise AmbiguousKeyError(kid, len(matches))
    return materialize(matches[0])
