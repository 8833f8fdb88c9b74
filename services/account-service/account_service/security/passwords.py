"""Salted one-way password hashing."""

from __future__ import annotations

from functools import lru_cache

from passlib.context import CryptContext
from pydantic import SecretStr

from ..config import get_settings


@lru_cache(maxsize=1)
def _crypt_context() -> CryptContext:
    settings = get_settings()
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=settings.password_hash_rounds,
    )


def hash_password(password: SecretStr) -> str:
    """Return a salted bcrypt hash for the raw password."""
    return _crypt_context().hash(password.get_secret_value())


def verify_password(password: SecretStr, hashed_password: str) -> bool:
    """Return ``True`` when ``password`` matches ``hashed_password``.

    Hashes not recognised by the configured context are treated as a mismatch.
    """
    try:
        return _crypt_context().verify(password.get_secret_value(), hashed_password)
    except ValueError:
        return False


@lru_cache(maxsize=1)
def dummy_hash() -> str:
    """Return a throwaway hash at the configured cost.

    Verifying against it makes a failed account lookup cost as much as a real check.
    """
    return _crypt_context().hash("unused-account-placeholder")
