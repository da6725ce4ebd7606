"""Centralized token verification pipeline.

Shared by the sync and async key stores. Key resolution is the only step
that differs between them, so it happens outside this module; everything
before and after it lives here.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import jwt

from ..errors import (
    ClaimValidationError,
    MalformedTokenError,
    SignatureInvalidError,
    TokenExpiredError,
)
from .errors import ErrorFactory

if TYPE_CHECKING:
    from ..models import SigningKey
    from ..verifier import Verifier

# Only signature checking is delegated to PyJWT; claims are checked below
# so failures surface in a fixed order.
_DECODE_OPTIONS: dict[str, Any] = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_aud": False,
    "verify_iss": False,
    "verify_sub": False,
    "verify_jti": False,
}


@dataclass(frozen=True)
class TokenHeader:
    """Unverified JOSE header fields needed to pick a key."""

    kid: str
    alg: str | None

    @property
    def metadata(self) -> dict[str, Any]:
        return {"kid": self.kid, "alg": self.alg}


class VerificationEngine:
    """Fail-closed verification of a token against a Verifier.

    Stages run in order and the first failure is raised:

    1. parse the header and extract ``kid``
    2. (caller) resolve the signing key
    3. check the declared algorithm, then the signature
    4. ``token_use``, ``exp``, ``aud``/``client_id``, ``iss``
    5. caller constraints, in builder order
    """

    def __init__(
        self,
        *,
        issuer: str | None,
        algorithms: Iterable[str] = ("RS256",),
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize verification engine.

        Args:
            issuer: Required ``iss`` value, or None to skip the check.
            algorithms: Allowed signing algorithms.
            clock: Source of the current Unix time.
        """
        self.issuer = issuer
        self.algorithms = frozenset(algorithms)
        self._clock = clock

    def parse(self, token: str) -> TokenHeader:
        """Decode the token header without verifying anything.

        Raises:
            MalformedTokenError: If the token is not a three-segment JWT
                or its header has no string ``kid``.
        """
        if not isinstance(token, str) or token.count(".") != 2:
            raise MalformedTokenError("Token must have three dot-separated segments")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.exceptions.PyJWTError as e:
            raise MalformedTokenError(f"Invalid token header: {e}") from e

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise MalformedTokenError("Token had no 'kid' value")

        alg = header.get("alg")
        return TokenHeader(
            kid=kid,
            alg=alg if isinstance(alg, str) else None,
        )

    def check_algorithm(self, header: TokenHeader, key: SigningKey) -> None:
        """Reject ``none`` and any algorithm other than the key's own.

        Raises:
            SignatureInvalidError: If the declared algorithm is unacceptable.
        """
        alg = header.alg
        if not alg or alg.lower() == "none":
            raise SignatureInvalidError(
                "Token declares no signing algorithm",
                details={"token_metadata": header.metadata},
            )
        if alg not in self.algorithms:
            raise SignatureInvalidError(
                f"Algorithm {alg!r} is not allowed",
                details={"token_metadata": header.metadata},
            )
        if alg != key.algorithm:
            raise SignatureInvalidError(
                f"Token algorithm {alg!r} does not match key algorithm {key.algorithm!r}",
                details={"token_metadata": header.metadata},
            )

    def verify_signature(
        self,
        token: str,
        header: TokenHeader,
        key: SigningKey,
    ) -> dict[str, Any]:
        """Verify the signature and return the decoded payload.

        Raises:
            SignatureInvalidError: If the signature does not verify.
            MalformedTokenError: If the payload cannot be decoded.
        """
        self.check_algorithm(header, key)
        try:
            return jwt.decode(
                token,
                key.key,
                algorithms=[key.algorithm],
                options=_DECODE_OPTIONS,
            )
        except jwt.exceptions.PyJWTError as e:
            raise ErrorFactory.from_jwt_exception(e, token_metadata=header.metadata) from e

    def validate_claims(self, claims: dict[str, Any], verifier: Verifier) -> None:
        """Check standard claims, then the verifier's constraints.

        Raises:
            ClaimValidationError: Naming the first claim that failed.
            TokenExpiredError: If ``exp`` has passed.
        """
        if claims.get("token_use") != verifier.token_use.value:
            raise ClaimValidationError(
                "token_use",
                f"Expected token_use {verifier.token_use.value!r}, got {claims.get('token_use')!r}",
            )

        exp = claims.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise ClaimValidationError("exp", "Missing or non-numeric 'exp' claim")
        if not math.isfinite(exp):
            raise ClaimValidationError("exp", "Non-finite 'exp' claim")
        if self._clock() >= exp + verifier.leeway:
            raise TokenExpiredError(exp)

        client_claim = verifier.client_claim
        if not verifier.accepts_client(claims.get(client_claim)):
            raise ClaimValidationError(
                client_claim,
                f"Claim {client_claim!r} does not name an accepted client",
            )

        if self.issuer is not None and claims.get("iss") != self.issuer:
            raise ClaimValidationError("iss", f"Expected issuer {self.issuer!r}")

        for constraint in verifier.constraints:
            if not constraint.is_satisfied_by(claims):
                raise ClaimValidationError(constraint.claim)

    def complete(
        self,
        token: str,
        header: TokenHeader,
        key: SigningKey,
        verifier: Verifier,
    ) -> dict[str, Any]:
        """Run the post-resolution stages and return the claims."""
        claims = self.verify_signature(token, header, key)
        self.validate_claims(claims, verifier)
        return claims
