"""Error classes for Cognito JWT verification.

Structured error hierarchy with stable error codes so callers can branch
on failure kind without parsing messages.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes."""

    # Configuration errors (1xxx)
    INVALID_IDENTITY = "CFG_1001"
    INVALID_CONFIG = "CFG_1002"
    INVALID_SPEC = "CFG_1003"

    # Token errors (2xxx)
    MALFORMED_TOKEN = "TOK_2001"
    SIGNATURE_INVALID = "TOK_2002"
    CLAIM_VALIDATION_FAILED = "TOK_2003"
    TOKEN_EXPIRED = "TOK_2004"

    # Key resolution errors (3xxx)
    CACHE_MISS = "KEY_3001"
    UNKNOWN_KEY_ID = "KEY_3002"

    # Network errors (4xxx)
    FETCH_FAILED = "NET_4001"


class CognitoJWTError(Exception):
    """Base error with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if isinstance(code, str) else code.value
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class InvalidIdentityError(CognitoJWTError):
    """Region or user pool id is malformed."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_IDENTITY,
            details={"field": field} if field else None,
        )
        self.field = field


class InvalidConfigError(CognitoJWTError):
    """Invalid key store configuration."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_CONFIG,
            details={"field": field} if field else None,
        )
        self.field = field


class InvalidSpecError(CognitoJWTError):
    """Verifier builder was misused."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.INVALID_SPEC)


class MalformedTokenError(CognitoJWTError):
    """Token is not a structurally valid JWT."""

    def __init__(
        self,
        message: str = "Malformed JWT",
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.MALFORMED_TOKEN, details=details)


class SignatureInvalidError(CognitoJWTError):
    """Token signature or declared algorithm was rejected."""

    def __init__(
        self,
        message: str = "JWT signature invalid",
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.SIGNATURE_INVALID, details=details)


class ClaimValidationError(CognitoJWTError):
    """A standard claim or a caller constraint did not hold.

    ``claim`` names the first claim that failed, in evaluation order.
    """

    def __init__(
        self,
        claim: str,
        message: str | None = None,
        *,
        code: ErrorCode = ErrorCode.CLAIM_VALIDATION_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message or f"Claim validation failed: {claim}",
            code,
            details={"claim": claim, **(details or {})},
        )
        self.claim = claim

    @property
    def reason(self) -> str:
        """Name of the claim that failed."""
        return self.claim


class TokenExpiredError(ClaimValidationError):
    """Token ``exp`` is in the past."""

    def __init__(self, expired_at: int | float) -> None:
        super().__init__(
            "exp",
            f"JWT token expired at {int(expired_at)}",
            code=ErrorCode.TOKEN_EXPIRED,
            details={"expired_at": int(expired_at)},
        )
        self.expired_at = int(expired_at)


class KeyResolutionError(CognitoJWTError):
    """Signing key for a token could not be resolved."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        *,
        kid: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details={"kid": kid, **(details or {})})
        self.kid = kid


class CacheMissError(KeyResolutionError):
    """Key is not cached and fetching was not allowed.

    ``fetched_at`` is when the key set was last fetched, or None if never.
    """

    def __init__(self, kid: str, *, fetched_at: float | None = None) -> None:
        super().__init__(
            f"Signing key {kid!r} is not cached",
            ErrorCode.CACHE_MISS,
            kid=kid,
            details={"fetched_at": fetched_at},
        )
        self.fetched_at = fetched_at


class UnknownKeyIdError(KeyResolutionError):
    """Key id is absent from a freshly fetched key set."""

    def __init__(self, kid: str) -> None:
        super().__init__(
            f"Signing key {kid!r} not found in key set",
            ErrorCode.UNKNOWN_KEY_ID,
            kid=kid,
        )


class FetchError(CognitoJWTError):
    """Fetching or parsing the remote key set failed."""

    def __init__(
        self,
        message: str = "Failed to fetch key set",
        *,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if url:
            details["url"] = url
        if status_code is not None:
            details["status_code"] = status_code
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(message, ErrorCode.FETCH_FAILED, details=details)
        self.url = url
        self.status_code = status_code
        self.__cause__ = cause
