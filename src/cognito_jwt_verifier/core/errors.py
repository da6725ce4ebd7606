"""Centralized error factory for Cognito JWT verification.

Translates httpx and PyJWT failures into the library's error hierarchy
so the key stores and the verification engine raise consistent types.
"""

from __future__ import annotations

from typing import Any

import httpx
import jwt

from ..errors import (
    CognitoJWTError,
    FetchError,
    MalformedTokenError,
    SignatureInvalidError,
)


class ErrorFactory:
    """Centralized error creation with consistent structure."""

    @staticmethod
    def from_http_response(response: httpx.Response, *, url: str) -> FetchError:
        """Create a fetch error from a non-200 JWKS response.

        Args:
            response: HTTP response object.
            url: JWKS URL that was requested.

        Returns:
            FetchError carrying the status code.
        """
        status = response.status_code
        return FetchError(
            f"JWKS request returned HTTP {status}",
            url=url,
            status_code=status,
        )

    @staticmethod
    def from_exception(exc: Exception, *, url: str) -> FetchError:
        """Create a fetch error from an exception raised while fetching.

        Args:
            exc: Original exception.
            url: JWKS URL that was requested.

        Returns:
            FetchError wrapping the cause.
        """
        if isinstance(exc, httpx.TimeoutException):
            return FetchError(f"JWKS request timed out: {exc}", url=url, cause=exc)

        if isinstance(exc, httpx.ConnectError):
            return FetchError(f"Connection failed: {exc}", url=url, cause=exc)

        if isinstance(exc, httpx.HTTPError):
            return FetchError(f"HTTP error: {exc}", url=url, cause=exc)

        if isinstance(exc, httpx.InvalidURL):
            return FetchError(f"Invalid JWKS URL: {exc}", url=url, cause=exc)

        if isinstance(exc, ValueError):
            return FetchError(f"Invalid JWKS document: {exc}", url=url, cause=exc)

        return FetchError(f"Unexpected error fetching JWKS: {exc}", url=url, cause=exc)

    @staticmethod
    def from_jwt_exception(
        exc: jwt.exceptions.PyJWTError,
        *,
        token_metadata: dict[str, Any] | None = None,
    ) -> CognitoJWTError:
        """Create a token error from a PyJWT exception.

        Args:
            exc: PyJWT exception.
            token_metadata: Optional header metadata (kid, alg).

        Returns:
            SignatureInvalidError for signature and algorithm failures,
            MalformedTokenError for everything else.
        """
        details = {"token_metadata": token_metadata} if token_metadata else None

        if isinstance(exc, jwt.exceptions.InvalidSignatureError):
            return SignatureInvalidError(details=details)

        if isinstance(exc, jwt.exceptions.InvalidAlgorithmError):
            return SignatureInvalidError(
                f"Unexpected 'alg' algorithm specified: {exc}",
                details=details,
            )

        if isinstance(exc, jwt.exceptions.DecodeError):
            return MalformedTokenError(f"Malformed JWT: {exc}", details=details)

        return MalformedTokenError(f"Decode failure: {exc}", details=details)
