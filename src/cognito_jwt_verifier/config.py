"""Configuration for Cognito key stores.

Uses Pydantic v2 for validation with sensible defaults.
"""

from __future__ import annotations

from typing import Annotated, Any, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveFloat,
    ValidationError,
    field_validator,
)

from .errors import InvalidConfigError

# Algorithms the verification engine knows how to check.
SUPPORTED_ALGORITHMS = frozenset(
    {"RS256", "RS384", "RS512", "ES256", "ES384", "ES512"}
)


class TelemetryConfig(BaseModel):
    """Structured logging and tracing configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "cognito-jwt-verifier"
    log_level: str = "INFO"


class KeyStoreConfig(BaseModel):
    """Tuning for JWKS fetching and caching."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    # HTTP settings
    http_timeout: Annotated[float, Field(gt=0, le=300)] = 10.0
    connect_timeout: Annotated[float, Field(gt=0, le=60)] = 5.0

    # Minimum seconds between lazy refetches of a populated key set (0 disables)
    min_fetch_interval: Annotated[float, Field(ge=0)] = 0.0

    # Snapshot age after which verify() refreshes first (None: never)
    max_key_age: PositiveFloat | None = None

    # Cognito signs with RS256
    algorithms: tuple[str, ...] = ("RS256",)

    @field_validator("algorithms")
    @classmethod
    def validate_algorithms(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Validate every allowed algorithm is supported."""
        if not v:
            msg = "At least one algorithm must be allowed"
            raise ValueError(msg)
        unsupported = set(v) - SUPPORTED_ALGORITHMS
        if unsupported:
            msg = f"Unsupported algorithms: {sorted(unsupported)}. Supported: {sorted(SUPPORTED_ALGORITHMS)}"
            raise ValueError(msg)
        return v

    def with_overrides(self, **kwargs: Any) -> Self:
        """Create new config with overridden values."""
        data = self.model_dump()
        data.update(kwargs)
        return self.__class__(**data)

    @classmethod
    def from_env(cls, prefix: str = "COGNITO_") -> Self:
        """Create config from environment variables.

        Reads ``HTTP_TIMEOUT``, ``CONNECT_TIMEOUT``, ``MIN_FETCH_INTERVAL``,
        ``MAX_KEY_AGE`` and ``ALGORITHMS`` (comma separated), each with the
        given prefix. Unset variables keep their defaults.

        Raises:
            InvalidConfigError: If a value cannot be parsed or validated.
        """
        import os

        env_fields = {
            "HTTP_TIMEOUT": "http_timeout",
            "CONNECT_TIMEOUT": "connect_timeout",
            "MIN_FETCH_INTERVAL": "min_fetch_interval",
            "MAX_KEY_AGE": "max_key_age",
        }

        data: dict[str, Any] = {}
        for key, field in env_fields.items():
            raw = os.environ.get(f"{prefix}{key}")
            if raw is None or raw == "":
                continue
            try:
                data[field] = float(raw)
            except ValueError as e:
                msg = f"{prefix}{key} must be a number, got {raw!r}"
                raise InvalidConfigError(msg, field=field) from e

        algorithms = os.environ.get(f"{prefix}ALGORITHMS")
        if algorithms:
            data["algorithms"] = tuple(
                alg.strip() for alg in algorithms.split(",") if alg.strip()
            )

        try:
            return cls(**data)
        except ValidationError as e:
            first = e.errors()[0]
            field = str(first["loc"][0]) if first.get("loc") else None
            raise InvalidConfigError(f"Invalid configuration: {first['msg']}", field=field) from e
