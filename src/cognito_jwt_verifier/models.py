"""Pydantic models and cache records for Cognito JWT verification.

Uses Pydantic v2 with frozen models for immutability. Cache records are
frozen dataclasses because they hold live cryptography key objects.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

_REGION_PATTERN = re.compile(r"[a-z0-9-]+")
_POOL_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


class TokenUse(StrEnum):
    """Value of the Cognito ``token_use`` claim."""

    ID = "id"
    ACCESS = "access"

    @property
    def client_claim(self) -> str:
        """Claim that carries the app client id for this token type."""
        return "aud" if self is TokenUse.ID else "client_id"


class CacheState(StrEnum):
    """Key cache lifecycle state."""

    EMPTY = "empty"
    POPULATED = "populated"


class ProviderIdentity(BaseModel):
    """A Cognito user pool, addressed by region and pool id."""

    model_config = ConfigDict(frozen=True)

    region: str = Field(..., min_length=1)
    pool_id: str = Field(..., min_length=1)

    @field_validator("region")
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Reject characters that cannot appear in a region name."""
        if not _REGION_PATTERN.fullmatch(v):
            msg = f"Region contains disallowed characters: {v!r}"
            raise ValueError(msg)
        return v

    @field_validator("pool_id")
    @classmethod
    def validate_pool_id(cls, v: str) -> str:
        """Reject characters that cannot appear in a user pool id."""
        if not _POOL_ID_PATTERN.fullmatch(v):
            msg = f"User pool id contains disallowed characters: {v!r}"
            raise ValueError(msg)
        return v

    @property
    def issuer(self) -> str:
        """Expected ``iss`` claim of tokens issued by this pool."""
        return f"https://cognito-idp.{self.region}.amazonaws.com/{self.pool_id}"

    @property
    def jwks_url(self) -> str:
        """Location of the pool's public signing keys."""
        return f"{self.issuer}/.well-known/jwks.json"


class JWK(BaseModel):
    """JSON Web Key representation."""

    model_config = ConfigDict(frozen=True, extra="allow")

    kty: str = Field(..., description="Key type")
    kid: str | None = Field(default=None, description="Key ID")
    use: str | None = Field(default=None, description="Key use")
    alg: str | None = Field(default=None, description="Algorithm")

    # RSA keys
    n: str | None = None
    e: str | None = None

    # EC keys
    crv: str | None = None
    x: str | None = None
    y: str | None = None


class JWKS(BaseModel):
    """JSON Web Key Set."""

    model_config = ConfigDict(frozen=True)

    keys: list[JWK]

    def get_signing_keys(self) -> list[JWK]:
        """Get all keys suitable for signature verification."""
        return [k for k in self.keys if k.use in (None, "sig")]


@dataclass(frozen=True)
class SigningKey:
    """A public key resolved from the key set, ready for verification."""

    kid: str
    algorithm: str
    jwk: JWK
    key: Any = field(repr=False, compare=False)


@dataclass(frozen=True)
class KeySnapshot:
    """Immutable view of the key set from a single fetch.

    A snapshot is never modified; refreshing builds a new one and swaps
    the reference held by the key store.
    """

    keys: Mapping[str, SigningKey] = field(default_factory=lambda: MappingProxyType({}))
    fetched_at: float | None = None

    @classmethod
    def from_keys(
        cls,
        keys: list[SigningKey],
        *,
        fetched_at: float | None = None,
    ) -> KeySnapshot:
        """Build a populated snapshot stamped with the fetch time."""
        by_kid = {key.kid: key for key in keys}
        return cls(
            keys=MappingProxyType(by_kid),
            fetched_at=time.time() if fetched_at is None else fetched_at,
        )

    @property
    def state(self) -> CacheState:
        """EMPTY until the first successful fetch."""
        return CacheState.EMPTY if self.fetched_at is None else CacheState.POPULATED

    @property
    def key_ids(self) -> frozenset[str]:
        """Key ids resolvable from this snapshot."""
        return frozenset(self.keys)

    def get(self, kid: str) -> SigningKey | None:
        """Look up a key by id."""
        return self.keys.get(kid)

    def age(self) -> float | None:
        """Seconds since this snapshot was fetched."""
        if self.fetched_at is None:
            return None
        return time.time() - self.fetched_at


EMPTY_SNAPSHOT = KeySnapshot()
