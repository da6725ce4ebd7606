"""Verifier specifications and their fluent builder.

A :class:`Verifier` is pure data: the expected token type, the accepted
app client ids and an ordered list of claim constraints. It holds no
reference to any key store and is safe to share between threads.

Example::

    verifier = (
        new_id_token_verifier(["client-xyz"])
        .string_equals("custom:role", "admin")
        .build()
    )
    claims = key_store.verify(token, verifier)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidSpecError
from .models import TokenUse


class ClaimConstraint(BaseModel):
    """A claim that must hold one of the expected string values."""

    model_config = ConfigDict(frozen=True)

    claim: str = Field(..., min_length=1)
    expected: tuple[str, ...] = Field(..., min_length=1)

    def is_satisfied_by(self, claims: Mapping[str, Any]) -> bool:
        """Check the constraint against decoded claims.

        A missing claim or a non-string value never satisfies it.
        """
        value = claims.get(self.claim)
        return isinstance(value, str) and value in self.expected


class Verifier(BaseModel):
    """Immutable, reusable verification spec produced by VerifierBuilder."""

    model_config = ConfigDict(frozen=True)

    token_use: TokenUse
    client_ids: tuple[str, ...] = Field(..., min_length=1)
    constraints: tuple[ClaimConstraint, ...] = ()
    leeway: int = Field(default=0, ge=0)

    @field_validator("client_ids")
    @classmethod
    def validate_client_ids(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Reject empty client ids."""
        if any(not client_id for client_id in v):
            msg = "Client ids must be non-empty strings"
            raise ValueError(msg)
        return v

    @property
    def client_claim(self) -> str:
        """Claim that must carry one of ``client_ids``."""
        return self.token_use.client_claim

    def accepts_client(self, value: Any) -> bool:
        """Check an ``aud`` / ``client_id`` claim value against client_ids."""
        if isinstance(value, str):
            return value in self.client_ids
        if isinstance(value, list):
            return any(isinstance(v, str) and v in self.client_ids for v in value)
        return False


def _client_id_tuple(client_ids: Iterable[str]) -> tuple[str, ...]:
    # A bare string is iterable; treating it as a list of characters is never intended.
    if isinstance(client_ids, str):
        msg = "client_ids must be a sequence of strings, not a single string"
        raise InvalidSpecError(msg)
    ids = tuple(client_ids)
    if not ids:
        msg = "At least one accepted client id is required"
        raise InvalidSpecError(msg)
    for client_id in ids:
        if not isinstance(client_id, str) or not client_id:
            msg = f"Invalid client id: {client_id!r}"
            raise InvalidSpecError(msg)
    return ids


class VerifierBuilder:
    """Fluent builder for :class:`Verifier`.

    Constraints accumulate in call order and are evaluated in that order.
    They are not de-duplicated: adding ``string_equals("a", "1")`` and
    ``string_equals("a", "2")`` produces a verifier no token can satisfy.
    """

    def __init__(self, token_use: TokenUse | str, client_ids: Sequence[str]) -> None:
        """Initialize builder.

        Args:
            token_use: Token type the verifier accepts.
            client_ids: Accepted app client ids (non-empty).

        Raises:
            InvalidSpecError: If client_ids is empty or token_use unknown.
        """
        try:
            self._token_use = TokenUse(token_use)
        except ValueError as e:
            raise InvalidSpecError(f"Unknown token_use: {token_use!r}") from e
        self._client_ids = _client_id_tuple(client_ids)
        self._constraints: list[ClaimConstraint] = []
        self._leeway = 0

    def string_equals(self, claim: str, value: str) -> Self:
        """Require ``claim`` to equal ``value``."""
        return self.string_equals_one_of(claim, [value])

    def string_equals_one_of(self, claim: str, values: Sequence[str]) -> Self:
        """Require ``claim`` to equal one of ``values``."""
        if not isinstance(claim, str) or not claim:
            msg = f"Claim name must be a non-empty string, got {claim!r}"
            raise InvalidSpecError(msg)
        if isinstance(values, str):
            msg = "values must be a sequence of strings, not a single string"
            raise InvalidSpecError(msg)
        expected = tuple(values)
        if not expected or not all(isinstance(v, str) for v in expected):
            msg = f"Expected values for {claim!r} must be a non-empty list of strings"
            raise InvalidSpecError(msg)
        self._constraints.append(ClaimConstraint(claim=claim, expected=expected))
        return self

    def leeway(self, seconds: int) -> Self:
        """Allow ``exp`` to be up to ``seconds`` in the past."""
        if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds < 0:
            msg = f"Leeway must be a non-negative integer, got {seconds!r}"
            raise InvalidSpecError(msg)
        self._leeway = seconds
        return self

    def build(self) -> Verifier:
        """Finalize into an immutable Verifier.

        Raises:
            InvalidSpecError: If the accumulated spec is invalid.
        """
        try:
            return Verifier(
                token_use=self._token_use,
                client_ids=self._client_ids,
                constraints=tuple(self._constraints),
                leeway=self._leeway,
            )
        except ValidationError as e:
            raise InvalidSpecError(f"Invalid verifier spec: {e.errors()[0]['msg']}") from e


def new_id_token_verifier(client_ids: Sequence[str]) -> VerifierBuilder:
    """Builder for Cognito ID tokens (``token_use=id``, client id in ``aud``)."""
    return VerifierBuilder(TokenUse.ID, client_ids)


def new_access_token_verifier(client_ids: Sequence[str]) -> VerifierBuilder:
    """Builder for Cognito access tokens (``token_use=access``, client id in ``client_id``)."""
    return VerifierBuilder(TokenUse.ACCESS, client_ids)
