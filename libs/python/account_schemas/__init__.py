"""Shared schema exports."""

from .account import AccountProfile
from .claims import AccessTokenClaims

__all__ = [
    "AccountProfile",
    "AccessTokenClaims",
]
