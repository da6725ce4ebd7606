"""Core components shared by the sync and async key stores.

Centralized verification pipeline, key snapshot handling and error
translation.
"""

from __future__ import annotations

from .errors import ErrorFactory
from .key_store_base import KeyStoreBase
from .token_validator import TokenHeader, VerificationEngine

__all__ = [
    "ErrorFactory",
    "KeyStoreBase",
    "TokenHeader",
    "VerificationEngine",
]
