"""Tests for key lookup and materialization."""

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from joserfc import jwk

from jwkfetch.errors import AmbiguousKeyError
from jwkfetch.keys import find_keys, materialize, select_key
from tests.factories import SAMPLE_JWK, SAMPLE_KID, SAMPLE_N, decode_b64url_int, jwks_document


def _key_set(*keys: dict) -> jwk.KeySet:
    return jwk.KeySet.import_key_set(jwks_document(*keys))


def test_select_key_materializes_rsa_public_key() -> None:
    """The sample key is returned as a cryptography RSA public key."""
    key = select_key(_key_set(), SAMPLE_KID)

    assert key is not None
    assert key.kid == SAMPLE_KID
    assert key.kty == "RSA"
    assert key.alg == "RS256"
    assert key.use == "sig"
    assert isinstance(key.public_key, rsa.RSAPublicKey)
    numbers = key.public_key.public_numbers()
    assert numbers.e == 65537
    assert numbers.n == decode_b64url_int(SAMPLE_N)


def test_select_key_returns_none_when_absent() -> None:
    assert select_key(_key_set(), "unknown") is None


def test_select_key_raises_on_duplicate_kid() -> None:
    other = jwk.RSAKey.generate_key(2048, private=True).as_dict(private=False)
    other["kid"] = SAMPLE_KID

    with pytest.raises(AmbiguousKeyError) as exc_info:
        select_key(_key_set(SAMPLE_JWK, other), SAMPLE_KID)
    assert exc_info.value.count == 2


def test_find_keys_filters_by_kid() -> None:
    other = jwk.RSAKey.generate_key(2048, private=True).as_dict(private=False)
    other["kid"] = "other"

    key_set = _key_set(SAMPLE_JWK, other)

    assert len(find_keys(key_set, "other")) == 1
    assert find_keys(key_set, "missing") == []


def test_materialize_ec_key() -> None:
    key = jwk.ECKey.generate_key("P-256", {"kid": "ec-1"}, private=True)
    public = jwk.ECKey.import_key(key.as_dict(private=False))

    result = materialize(public)

    assert result.kid == "ec-1"
    assert result.kty == "EC"
    assert isinstance(result.public_key, ec.EllipticCurvePublicKey)


def test_materialize_oct_key_returns_raw_secret() -> None:
    key = jwk.OctKey.import_key(b"super-secret-value", {"kid": "hmac-1"})

    result = materialize(key)

    assert result.kty == "oct"
    assert result.public_key == b"super-secret-value"


def test_as_dict_excludes_private_parameters() -> None:
    private = jwk.RSAKey.generate_key(2048, {"kid": "priv"}, private=True)

    result = materialize(private)

    data = result.as_dict()
    assert data["kid"] == "priv"
    assert "d" not in data
    assert "p" not in data
