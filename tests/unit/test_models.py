"""Unit tests for provider identity, JWK models and key snapshots."""

import time

import pytest
from pydantic import ValidationError

from cognito_jwt_verifier.models import (
    EMPTY_SNAPSHOT,
    JWK,
    JWKS,
    CacheState,
    KeySnapshot,
    ProviderIdentity,
    SigningKey,
    TokenUse,
)


class TestProviderIdentity:
    """Tests for ProviderIdentity."""

    def test_derived_urls(self) -> None:
        identity = ProviderIdentity(region="eu-west-1", pool_id="eu-west-1_ABC123")

        assert identity.issuer == "https://cognito-idp.eu-west-1.amazonaws.com/eu-west-1_ABC123"
        assert identity.jwks_url == (
            "https://cognito-idp.eu-west-1.amazonaws.com/eu-west-1_ABC123/.well-known/jwks.json"
        )

    def test_is_frozen(self) -> None:
        identity = ProviderIdentity(region="eu-west-1", pool_id="eu-west-1_ABC123")

        with pytest.raises(ValidationError):
            identity.region = "us-east-1"  # type: ignore[misc]

    @pytest.mark.parametrize(
        ("region", "pool_id"),
        [
            ("", "eu-west-1_ABC123"),
            ("eu-west-1", ""),
            ("eu west 1", "eu-west-1_ABC123"),
            ("eu-west-1/evil", "eu-west-1_ABC123"),
            ("eu-west-1", "pool/../other"),
            ("eu-west-1", "pool?x=1"),
            ("eu-west-1\n", "eu-west-1_ABC123"),
            ("eu-west-1", "eu-west-1_ABC123\n"),
        ],
    )
    def test_rejects_malformed_values(self, region: str, pool_id: str) -> None:
        with pytest.raises(ValidationError):
            ProviderIdentity(region=region, pool_id=pool_id)

    def test_unknown_but_well_formed_region_is_accepted(self) -> None:
        # Existence is only discovered when fetching.
        identity = ProviderIdentity(region="xx-nowhere-9", pool_id="xx-nowhere-9_Nope")

        assert identity.region == "xx-nowhere-9"


class TestTokenUse:
    """Tests for TokenUse."""

    def test_client_claim(self) -> None:
        assert TokenUse.ID.client_claim == "aud"
        assert TokenUse.ACCESS.client_claim == "client_id"

    def test_values(self) -> None:
        assert TokenUse("id") is TokenUse.ID
        assert TokenUse("access") is TokenUse.ACCESS


class TestJWKS:
    """Tests for the JWKS model."""

    def test_signing_keys_exclude_encryption_keys(self) -> None:
        jwks = JWKS(keys=[
            JWK(kty="RSA", kid="a", use="sig", n="n", e="AQAB"),
            JWK(kty="RSA", kid="b", use="enc", n="n", e="AQAB"),
            JWK(kty="RSA", kid="c", n="n", e="AQAB"),
        ])

        assert [k.kid for k in jwks.get_signing_keys()] == ["a", "c"]

    def test_extra_fields_allowed(self) -> None:
        jwk = JWK(kty="RSA", kid="a", n="n", e="AQAB", x5t="thumb")

        assert jwk.model_dump(exclude_none=True)["x5t"] == "thumb"


class TestKeySnapshot:
    """Tests for KeySnapshot."""

    def _key(self, kid: str) -> SigningKey:
        return SigningKey(
            kid=kid,
            algorithm="RS256",
            jwk=JWK(kty="RSA", kid=kid, n="n", e="AQAB"),
            key=object(),
        )

    def test_empty_snapshot(self) -> None:
        assert EMPTY_SNAPSHOT.state is CacheState.EMPTY
        assert EMPTY_SNAPSHOT.fetched_at is None
        assert EMPTY_SNAPSHOT.age() is None
        assert EMPTY_SNAPSHOT.key_ids == frozenset()

    def test_populated_snapshot(self) -> None:
        before = time.time()
        snapshot = KeySnapshot.from_keys([self._key("a"), self._key("b")])

        assert snapshot.state is CacheState.POPULATED
        assert snapshot.fetched_at is not None and snapshot.fetched_at >= before
        assert snapshot.key_ids == frozenset({"a", "b"})
        assert snapshot.get("a") is not None
        assert snapshot.get("c") is None

    def test_empty_key_set_is_still_populated(self) -> None:
        snapshot = KeySnapshot.from_keys([])

        assert snapshot.state is CacheState.POPULATED
        assert snapshot.key_ids == frozenset()

    def test_keys_are_read_only(self) -> None:
        snapshot = KeySnapshot.from_keys([self._key("a")])

        with pytest.raises(TypeError):
            snapshot.keys["b"] = self._key("b")  # type: ignore[index]

    def test_explicit_fetch_time(self) -> None:
        snapshot = KeySnapshot.from_keys([], fetched_at=100.0)

        assert snapshot.fetched_at == 100.0
        assert snapshot.age() is not None and snapshot.age() > 0
