"""Shared helpers for key store and verification tests.

Provides RSA key generation, token signing and a mock JWKS endpoint
served through ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio
import base64
import json
import threading
import time
from dataclasses import dataclass
from typing import Any

import httpx
import jwt
from cryptography.hazmat.primitives.asymmetric import ec, rsa

REGION = "eu-west-1"
POOL_ID = "eu-west-1_ABC123"
ISSUER = f"https://cognito-idp.{REGION}.amazonaws.com/{POOL_ID}"
JWKS_URL = f"{ISSUER}/.well-known/jwks.json"
CLIENT_ID = "client-xyz"


def int_to_base64url(n: int) -> str:
    byte_length = (n.bit_length() + 7) // 8
    data = n.to_bytes(byte_length, byteorder="big")
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class KeyPair:
    """A private key and the public JWK a pool would publish for it."""

    kid: str
    private_key: Any
    jwk: dict[str, Any]
    algorithm: str = "RS256"


def generate_rsa_key_pair(kid: str = "test-rsa-key-1") -> KeyPair:
    """Generate RSA key pair and JWK."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    public_numbers = private_key.public_key().public_numbers()
    jwk_dict = {
        "kty": "RSA",
        "n": int_to_base64url(public_numbers.n),
        "e": int_to_base64url(public_numbers.e),
        "kid": kid,
        "use": "sig",
        "alg": "RS256",
    }
    return KeyPair(kid=kid, private_key=private_key, jwk=jwk_dict)


def generate_ec_key_pair(kid: str = "test-ec-key-1") -> KeyPair:
    """Generate P-256 key pair and JWK."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    public_numbers = private_key.public_key().public_numbers()

    def coord(n: int) -> str:
        return base64.urlsafe_b64encode(n.to_bytes(32, "big")).rstrip(b"=").decode("ascii")

    jwk_dict = {
        "kty": "EC",
        "crv": "P-256",
        "x": coord(public_numbers.x),
        "y": coord(public_numbers.y),
        "kid": kid,
        "use": "sig",
        "alg": "ES256",
    }
    return KeyPair(kid=kid, private_key=private_key, jwk=jwk_dict, algorithm="ES256")


def id_token_claims(**overrides: Any) -> dict[str, Any]:
    """Claims of a valid Cognito ID token for CLIENT_ID."""
    now = int(time.time())
    claims: dict[str, Any] = {
        "sub": "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee",
        "iss": ISSUER,
        "aud": CLIENT_ID,
        "token_use": "id",
        "auth_time": now,
        "iat": now,
        "exp": now + 3600,
        "email": "user@example.com",
    }
    claims.update(overrides)
    return claims


def access_token_claims(**overrides: Any) -> dict[str, Any]:
    """Claims of a valid Cognito access token for CLIENT_ID."""
    now = int(time.time())
    claims: dict[str, Any] = {
        "sub": "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee",
        "iss": ISSUER,
        "client_id": CLIENT_ID,
        "token_use": "access",
        "scope": "aws.cognito.signin.user.admin",
        "iat": now,
        "exp": now + 3600,
        "username": "user",
    }
    claims.update(overrides)
    return claims


def sign_token(
    key: KeyPair,
    claims: dict[str, Any],
    *,
    headers: dict[str, Any] | None = None,
) -> str:
    """Sign claims with the key, putting its kid in the header."""
    token_headers = {"kid": key.kid}
    token_headers.update(headers or {})
    return jwt.encode(claims, key.private_key, algorithm=key.algorithm, headers=token_headers)


def b64url_json(data: dict[str, Any]) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def replace_payload(token: str, claims: dict[str, Any]) -> str:
    """Swap the payload segment while keeping the original signature."""
    header, _, signature = token.split(".")
    return ".".join([header, b64url_json(claims), signature])


class MockJWKSEndpoint:
    """Mock Cognito JWKS endpoint that counts requests.

    Use :meth:`client` / :meth:`async_client` to get httpx clients routed
    to it. ``status``, ``body`` and ``delay`` can be changed between calls.
    """

    def __init__(self, *keys: KeyPair) -> None:
        self.keys = list(keys)
        self.status = 200
        self.body: bytes | None = None
        self.delay = 0.0
        self.error: Exception | None = None
        self._lock = threading.Lock()
        self._calls = 0

    @property
    def calls(self) -> int:
        with self._lock:
            return self._calls

    def document(self) -> dict[str, Any]:
        return {"keys": [key.jwk for key in self.keys]}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self._calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if request.url != JWKS_URL:
            return httpx.Response(404, json={"message": "not found"})
        if self.body is not None:
            return httpx.Response(self.status, content=self.body)
        return httpx.Response(self.status, json=self.document())

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))

    def async_client(self, delay: float = 0.0) -> httpx.AsyncClient:
        """Async client whose requests yield to the event loop for ``delay``."""

        async def handler(request: httpx.Request) -> httpx.Response:
            if delay:
                await asyncio.sleep(delay)
            return self(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
