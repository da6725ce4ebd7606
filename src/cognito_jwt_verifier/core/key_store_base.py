"""Base key store with shared snapshot and refresh logic.

Provides everything the sync and async key stores have in common:
provider identity, the current key snapshot, fetch policy decisions and
JWKS document parsing. Only the network fetch itself differs between
the two implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import jwt
from pydantic import ValidationError

from ..config import KeyStoreConfig
from ..errors import CacheMissError, FetchError, InvalidIdentityError
from ..models import (
    EMPTY_SNAPSHOT,
    JWK,
    JWKS,
    CacheState,
    KeySnapshot,
    ProviderIdentity,
    SigningKey,
)
from ..telemetry import get_logger
from .errors import ErrorFactory
from .token_validator import VerificationEngine

if TYPE_CHECKING:
    from ..verifier import Verifier

_EC_CURVE_ALGORITHMS = {"P-256": "ES256", "P-384": "ES384", "P-521": "ES512"}


def build_identity(region: str, pool_id: str) -> ProviderIdentity:
    """Validate region and pool id.

    Raises:
        InvalidIdentityError: If either value is malformed.
    """
    try:
        return ProviderIdentity(region=region, pool_id=pool_id)
    except ValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else None
        raise InvalidIdentityError(f"Invalid provider identity: {first['msg']}", field=field) from e


def _key_algorithm(jwk: JWK) -> str | None:
    if jwk.alg:
        return jwk.alg
    if jwk.kty == "RSA":
        return "RS256"
    if jwk.kty == "EC" and jwk.crv:
        return _EC_CURVE_ALGORITHMS.get(jwk.crv)
    return None


class KeyStoreBase:
    """Key store state shared by sync and async implementations.

    The current key set is a single :class:`KeySnapshot` reference.
    Readers load it once and query it without locking; a refresh builds a
    complete replacement and assigns it in one step, so a reader sees
    either the old set or the new one, never a mix.

    Attributes:
        identity: The Cognito user pool this store serves.
        config: Fetch and cache tuning.
    """

    def __init__(
        self,
        region: str,
        pool_id: str,
        *,
        config: KeyStoreConfig | None = None,
    ) -> None:
        """Initialize key store base. Performs no network I/O.

        Args:
            region: AWS region of the user pool, e.g. ``eu-west-1``.
            pool_id: User pool id, e.g. ``eu-west-1_ABC123``.
            config: Fetch and cache tuning.

        Raises:
            InvalidIdentityError: If region or pool id is malformed.
        """
        self.identity = build_identity(region, pool_id)
        self.config = config or KeyStoreConfig()
        self._snapshot: KeySnapshot = EMPTY_SNAPSHOT
        self._engine = VerificationEngine(
            issuer=self.identity.issuer,
            algorithms=self.config.algorithms,
        )
        self._logger = get_logger().bind(jwks_url=self.identity.jwks_url)

    @property
    def region(self) -> str:
        return self.identity.region

    @property
    def pool_id(self) -> str:
        return self.identity.pool_id

    @property
    def issuer(self) -> str:
        """Expected ``iss`` claim."""
        return self.identity.issuer

    @property
    def jwks_url(self) -> str:
        """JWKS endpoint of the user pool."""
        return self.identity.jwks_url

    @property
    def snapshot(self) -> KeySnapshot:
        """Current key set."""
        return self._snapshot

    @property
    def state(self) -> CacheState:
        return self._snapshot.state

    @property
    def fetched_at(self) -> float | None:
        """Unix time of the last successful fetch."""
        return self._snapshot.fetched_at

    @property
    def key_ids(self) -> frozenset[str]:
        """Key ids currently resolvable without a fetch."""
        return self._snapshot.key_ids

    def lookup(self, kid: str) -> SigningKey | None:
        """Get a cached key by id. Never performs I/O."""
        return self._snapshot.get(kid)

    def resolve_cached(self, kid: str) -> SigningKey:
        """Get a cached key by id.

        Raises:
            CacheMissError: If the key is not cached.
        """
        snapshot = self._snapshot
        key = snapshot.get(kid)
        if key is None:
            raise CacheMissError(kid, fetched_at=snapshot.fetched_at)
        return key

    def invalidate(self) -> None:
        """Drop all cached keys; the next permitted lookup refetches."""
        self._snapshot = EMPTY_SNAPSHOT

    def is_stale(self) -> bool:
        """Check if the snapshot is older than ``max_key_age``.

        An empty cache is not stale; it is simply empty.
        """
        max_age = self.config.max_key_age
        age = self._snapshot.age()
        return max_age is not None and age is not None and age > max_age

    def refetch_allowed(self) -> bool:
        """Check if a lazy refetch for an unknown kid may go to the network.

        Returns True if the cache is empty or the last fetch is older than
        ``min_fetch_interval``.
        """
        age = self._snapshot.age()
        if age is None:
            return True
        return age >= self.config.min_fetch_interval

    def parse_jwks_response(self, response: httpx.Response) -> KeySnapshot:
        """Turn a JWKS HTTP response into a new snapshot.

        The document is accepted or rejected as a whole.

        Raises:
            FetchError: On a non-200 status, a non-JSON body, a document
                without a ``keys`` array or unusable key material.
        """
        if response.status_code != 200:
            raise ErrorFactory.from_http_response(response, url=self.jwks_url)

        try:
            document = response.json()
        except ValueError as e:
            raise ErrorFactory.from_exception(e, url=self.jwks_url) from e

        if not isinstance(document, dict) or not isinstance(document.get("keys"), list):
            raise FetchError("JWKS document has no 'keys' array", url=self.jwks_url)

        try:
            jwks = JWKS(keys=document["keys"])
        except ValidationError as e:
            raise ErrorFactory.from_exception(e, url=self.jwks_url) from e

        return KeySnapshot.from_keys(self._build_signing_keys(jwks))

    def _build_signing_keys(self, jwks: JWKS) -> list[SigningKey]:
        keys: list[SigningKey] = []
        for jwk in jwks.get_signing_keys():
            algorithm = _key_algorithm(jwk)
            if not jwk.kid or algorithm not in self.config.algorithms:
                self._logger.debug("jwks_key_skipped", kid=jwk.kid, alg=algorithm)
                continue
            try:
                pyjwk = jwt.PyJWK(jwk.model_dump(exclude_none=True), algorithm)
            except (jwt.exceptions.PyJWTError, ValueError, KeyError) as e:
                raise FetchError(
                    f"Unusable key material for kid {jwk.kid!r}: {e}",
                    url=self.jwks_url,
                    cause=e,
                ) from e
            keys.append(
                SigningKey(kid=jwk.kid, algorithm=algorithm, jwk=jwk, key=pyjwk.key)
            )
        return keys

    def _publish(self, snapshot: KeySnapshot) -> None:
        self._snapshot = snapshot
        self._logger.debug("jwks_refreshed", key_count=len(snapshot.keys))

    def _verify_cached(self, token: str, verifier: Verifier) -> dict[str, Any]:
        header = self._engine.parse(token)
        key = self.resolve_cached(header.kid)
        return self._engine.complete(token, header, key, verifier)

    def _span_attributes(self, verifier: Verifier, *, allow_fetch: bool) -> dict[str, Any]:
        return {
            "cognito.pool_id": self.pool_id,
            "token.use": verifier.token_use.value,
            "jwks.allow_fetch": allow_fetch,
        }

