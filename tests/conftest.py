"""
Shared test fixtures for Cognito JWT verifier tests.

Provides signing keys, a mock JWKS endpoint and key stores wired to it.
"""

from collections.abc import Iterator

import pytest

from cognito_jwt_verifier import KeyStore, Verifier, new_id_token_verifier

from .helpers import (
    CLIENT_ID,
    POOL_ID,
    REGION,
    KeyPair,
    MockJWKSEndpoint,
    generate_rsa_key_pair,
)


@pytest.fixture(scope="session")
def rsa_key() -> KeyPair:
    """Provide the pool's current RSA signing key."""
    return generate_rsa_key_pair("pool-key-1")


@pytest.fixture(scope="session")
def second_rsa_key() -> KeyPair:
    """Provide a second RSA key, as published after a rotation."""
    return generate_rsa_key_pair("pool-key-2")


@pytest.fixture
def jwks_endpoint(rsa_key: KeyPair) -> MockJWKSEndpoint:
    """Provide a mock JWKS endpoint publishing ``rsa_key``."""
    return MockJWKSEndpoint(rsa_key)


@pytest.fixture
def key_store(jwks_endpoint: MockJWKSEndpoint) -> Iterator[KeyStore]:
    """Provide a key store that fetches from the mock endpoint."""
    http_client = jwks_endpoint.client()
    store = KeyStore(REGION, POOL_ID, http_client=http_client)
    yield store
    http_client.close()


@pytest.fixture
def id_verifier() -> Verifier:
    """Provide an ID token verifier for the test client."""
    return new_id_token_verifier([CLIENT_ID]).build()
