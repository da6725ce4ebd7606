"""HTTP client factories for JWKS fetching."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from .config import KeyStoreConfig

USER_AGENT = "cognito-jwt-verifier/0.1.0 Python"


def _timeout(config: KeyStoreConfig) -> httpx.Timeout:
    return httpx.Timeout(
        connect=config.connect_timeout,
        read=config.http_timeout,
        write=config.http_timeout,
        pool=config.http_timeout,
    )


def create_http_client(config: KeyStoreConfig) -> httpx.Client:
    """Create configured sync HTTP client.

    Args:
        config: Key store configuration.

    Returns:
        Configured httpx.Client.
    """
    return httpx.Client(
        timeout=_timeout(config),
        headers={
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        },
        follow_redirects=False,
    )


def create_async_http_client(config: KeyStoreConfig) -> httpx.AsyncClient:
    """Create configured async HTTP client.

    Args:
        config: Key store configuration.

    Returns:
        Configured httpx.AsyncClient.
    """
    return httpx.AsyncClient(
        timeout=_timeout(config),
        headers={
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        },
        follow_redirects=False,
    )
