"""Error taxonomy raised by the account workflows."""

from __future__ import annotations


class AccountError(Exception):
    """Base class for failures surfaced to callers of ``AccountService``."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(AccountError):
    """Malformed identifier or search term."""


class NotFound(AccountError):
    """The referenced account does not exist."""


class DuplicateCredential(AccountError):
    """Email or phone already belongs to another account."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Sorry, {field} is already in use")
        self.field = field


class Unauthorized(AccountError):
    """Credentials or bearer token were rejected."""


class UploadFailed(AccountError):
    """The external asset store did not accept an upload."""
