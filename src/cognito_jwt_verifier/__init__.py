"""Cognito JWT verifier."""

from .config import KeyStoreConfig, TelemetryConfig
from .errors import (
    CacheMissError,
    ClaimValidationError,
    CognitoJWTError,
    ErrorCode,
    FetchError,
    InvalidConfigError,
    InvalidIdentityError,
    InvalidSpecError,
    KeyResolutionError,
    MalformedTokenError,
    SignatureInvalidError,
    TokenExpiredError,
    UnknownKeyIdError,
)
from .key_store import AsyncKeyStore, KeyStore
from .models import CacheState, KeySnapshot, ProviderIdentity, SigningKey, TokenUse
from .telemetry import configure_telemetry
from .verifier import (
    ClaimConstraint,
    Verifier,
    VerifierBuilder,
    new_access_token_verifier,
    new_id_token_verifier,
)

__all__ = [
    "AsyncKeyStore",
    "KeyStore",
    "KeyStoreConfig",
    "TelemetryConfig",
    "configure_telemetry",
    "Verifier",
    "VerifierBuilder",
    "ClaimConstraint",
    "new_id_token_verifier",
    "new_access_token_verifier",
    "TokenUse",
    "CacheState",
    "KeySnapshot",
    "ProviderIdentity",
    "SigningKey",
    "CognitoJWTError",
    "ErrorCode",
    "InvalidIdentityError",
    "InvalidConfigError",
    "InvalidSpecError",
    "MalformedTokenError",
    "SignatureInvalidError",
    "ClaimValidationError",
    "TokenExpiredError",
    "KeyResolutionError",
    "CacheMissError",
    "UnknownKeyIdError",
    "FetchError",
]

__version__ = "0.1.0"
