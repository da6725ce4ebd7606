"""Cognito user pool key stores.

Thread-safe and async-safe JWKS caches that verify tokens against the
cached keys. One store per user pool is meant to be shared process-wide.
"""

from __future__ import annotations

import asyncio
import os
import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Self

import httpx

from .config import KeyStoreConfig
from .core.errors import ErrorFactory
from .core.key_store_base import KeyStoreBase
from .errors import FetchError, InvalidConfigError, UnknownKeyIdError
from .http import create_async_http_client, create_http_client
from .telemetry import trace_operation
from .verifier import VerifierBuilder, new_access_token_verifier, new_id_token_verifier

if TYPE_CHECKING:
    from .models import KeySnapshot, SigningKey
    from .verifier import Verifier


def _identity_from_env(prefix: str) -> tuple[str, str]:
    region = os.environ.get(f"{prefix}REGION")
    if not region:
        msg = f"{prefix}REGION environment variable is required"
        raise InvalidConfigError(msg, field="region")

    pool_id = os.environ.get(f"{prefix}USER_POOL_ID")
    if not pool_id:
        msg = f"{prefix}USER_POOL_ID environment variable is required"
        raise InvalidConfigError(msg, field="pool_id")

    return region, pool_id


class _InFlightFetch:
    """Outcome slot shared by every caller coalesced onto one fetch."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.snapshot: KeySnapshot | None = None
        self.error: Exception | None = None

    def result(self) -> KeySnapshot:
        self.done.wait()
        if self.error is not None:
            raise self.error
        if self.snapshot is None:
            raise FetchError("Key set fetch was abandoned")
        return self.snapshot


class _VerifierFactoryMixin:
    def new_id_token_verifier(self, client_ids: Sequence[str]) -> VerifierBuilder:
        """Builder for ID tokens. The built verifier is not tied to this store."""
        return new_id_token_verifier(client_ids)

    def new_access_token_verifier(self, client_ids: Sequence[str]) -> VerifierBuilder:
        """Builder for access tokens. The built verifier is not tied to this store."""
        return new_access_token_verifier(client_ids)


class KeyStore(_VerifierFactoryMixin, KeyStoreBase):
    """Thread-safe key store for one Cognito user pool.

    Lookups never block each other. Concurrent fetches are coalesced: the
    first caller performs the request and every caller that arrives while
    it is in flight receives the same key set or the same error.
    """

    def __init__(
        self,
        region: str,
        pool_id: str,
        *,
        config: KeyStoreConfig | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize key store. Performs no network I/O.

        Args:
            region: AWS region of the user pool.
            pool_id: User pool id.
            config: Fetch and cache tuning.
            http_client: Client to fetch with; the store closes only
                clients it created itself.

        Raises:
            InvalidIdentityError: If region or pool id is malformed.
        """
        super().__init__(region, pool_id, config=config)
        self._owns_http = http_client is None
        self._http = http_client or create_http_client(self.config)
        self._flight_lock = threading.Lock()
        self._inflight: _InFlightFetch | None = None

    @classmethod
    def from_env(cls, prefix: str = "COGNITO_", **kwargs: Any) -> Self:
        """Create key store from ``<prefix>REGION`` and ``<prefix>USER_POOL_ID``.

        Tuning is read with :meth:`KeyStoreConfig.from_env`.
        """
        region, pool_id = _identity_from_env(prefix)
        kwargs.setdefault("config", KeyStoreConfig.from_env(prefix))
        return cls(region, pool_id, **kwargs)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._owns_http:
            self._http.close()

    def prefetch(self) -> None:
        """Fetch the key set and replace the cache.

        Raises:
            FetchError: If the key set cannot be fetched or parsed. The
                previous key set stays in place.
        """
        self._fetch_coalesced()

    def resolve_key(self, kid: str, allow_fetch: bool) -> SigningKey:
        """Get the signing key for ``kid``.

        Args:
            kid: Key id from the token header.
            allow_fetch: Whether a miss may trigger a network fetch.

        Raises:
            CacheMissError: If the key is not cached and allow_fetch is False.
            UnknownKeyIdError: If the key is absent after a permitted fetch.
            FetchError: If the permitted fetch fails.
        """
        if not allow_fetch:
            return self.resolve_cached(kid)

        fetched = False
        if self.is_stale():
            self._fetch_coalesced()
            fetched = True

        key = self.lookup(kid)
        if key is not None:
            return key

        if fetched or not self.refetch_allowed():
            raise UnknownKeyIdError(kid)

        self._fetch_coalesced()
        key = self.lookup(kid)
        if key is None:
            raise UnknownKeyIdError(kid)
        return key

    def verify(self, token: str, verifier: Verifier) -> dict[str, Any]:
        """Verify a token, fetching the key set if the key is not cached.

        Returns:
            The decoded claims.

        Raises:
            MalformedTokenError, SignatureInvalidError, ClaimValidationError,
            UnknownKeyIdError, FetchError.
        """
        with trace_operation(
            "verify_token",
            attributes=self._span_attributes(verifier, allow_fetch=True),
        ):
            header = self._engine.parse(token)
            key = self.resolve_key(header.kid, allow_fetch=True)
            return self._engine.complete(token, header, key, verifier)

    def try_verify(self, token: str, verifier: Verifier) -> dict[str, Any]:
        """Verify a token using only cached keys. Never performs I/O.

        Raises:
            CacheMissError: If the token's key is not cached.
            MalformedTokenError, SignatureInvalidError, ClaimValidationError.
        """
        with trace_operation(
            "verify_token",
            attributes=self._span_attributes(verifier, allow_fetch=False),
        ):
            return self._verify_cached(token, verifier)

    def _fetch_coalesced(self) -> KeySnapshot:
        with self._flight_lock:
            flight = self._inflight
            leader = flight is None
            if leader:
                flight = self._inflight = _InFlightFetch()

        if not leader:
            self._logger.debug("jwks_fetch_coalesced")
            return flight.result()

        try:
            flight.snapshot = self._fetch()
            return flight.snapshot
        except Exception as e:
            flight.error = e
            raise
        finally:
            with self._flight_lock:
                self._inflight = None
            flight.done.set()

    def _fetch(self) -> KeySnapshot:
        with trace_operation("jwks_fetch", attributes={"jwks.url": self.jwks_url}):
            try:
                response = self._http.get(self.jwks_url)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise ErrorFactory.from_exception(e, url=self.jwks_url) from e
            snapshot = self.parse_jwks_response(response)
        self._publish(snapshot)
        return snapshot


class AsyncKeyStore(_VerifierFactoryMixin, KeyStoreBase):
    """Async key store for one Cognito user pool.

    Concurrent fetches share one task. Waiters await it through
    :func:`asyncio.shield`, so a waiter cancelled by a timeout leaves the
    fetch running for everyone else.
    """

    def __init__(
        self,
        region: str,
        pool_id: str,
        *,
        config: KeyStoreConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize async key store. Performs no network I/O.

        Args:
            region: AWS region of the user pool.
            pool_id: User pool id.
            config: Fetch and cache tuning.
            http_client: Client to fetch with; the store closes only
                clients it created itself.

        Raises:
            InvalidIdentityError: If region or pool id is malformed.
        """
        super().__init__(region, pool_id, config=config)
        self._owns_http = http_client is None
        self._http = http_client or create_async_http_client(self.config)
        self._inflight: asyncio.Task[KeySnapshot] | None = None

    @classmethod
    def from_env(cls, prefix: str = "COGNITO_", **kwargs: Any) -> Self:
        """Create key store from ``<prefix>REGION`` and ``<prefix>USER_POOL_ID``."""
        region, pool_id = _identity_from_env(prefix)
        kwargs.setdefault("config", KeyStoreConfig.from_env(prefix))
        return cls(region, pool_id, **kwargs)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._owns_http:
            await self._http.aclose()

    async def prefetch(self) -> None:
        """Fetch the key set and replace the cache.

        Raises:
            FetchError: If the key set cannot be fetched or parsed.
        """
        await self._fetch_coalesced()

    async def resolve_key(self, kid: str, allow_fetch: bool) -> SigningKey:
        """Get the signing key for ``kid``; see :meth:`KeyStore.resolve_key`."""
        if not allow_fetch:
            return self.resolve_cached(kid)

        fetched = False
        if self.is_stale():
            await self._fetch_coalesced()
            fetched = True

        key = self.lookup(kid)
        if key is not None:
            return key

        if fetched or not self.refetch_allowed():
            raise UnknownKeyIdError(kid)

        await self._fetch_coalesced()
        key = self.lookup(kid)
        if key is None:
            raise UnknownKeyIdError(kid)
        return key

    async def verify(self, token: str, verifier: Verifier) -> dict[str, Any]:
        """Verify a token, fetching the key set if the key is not cached."""
        with trace_operation(
            "verify_token",
            attributes=self._span_attributes(verifier, allow_fetch=True),
        ):
            header = self._engine.parse(token)
            key = await self.resolve_key(header.kid, allow_fetch=True)
            return self._engine.complete(token, header, key, verifier)

    def try_verify(self, token: str, verifier: Verifier) -> dict[str, Any]:
        """Verify a token using only cached keys. Never awaits."""
        with trace_operation(
            "verify_token",
            attributes=self._span_attributes(verifier, allow_fetch=False),
        ):
            return self._verify_cached(token, verifier)

    async def _fetch_coalesced(self) -> KeySnapshot:
        task = self._inflight
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._fetch())
            task.add_done_callback(self._fetch_finished)
            self._inflight = task
        else:
            self._logger.debug("jwks_fetch_coalesced")
        return await asyncio.shield(task)

    def _fetch_finished(self, task: asyncio.Task[KeySnapshot]) -> None:
        if self._inflight is task:
            self._inflight = None
        # Mark the outcome retrieved even if every waiter was cancelled.
        if not task.cancelled():
            task.exception()

    async def _fetch(self) -> KeySnapshot:
        with trace_operation("jwks_fetch", attributes={"jwks.url": self.jwks_url}):
            try:
                response = await self._http.get(self.jwks_url)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise ErrorFactory.from_exception(e, url=self.jwks_url) from e
            snapshot = self.parse_jwks_response(response)
        self._publish(snapshot)
        return snapshot
