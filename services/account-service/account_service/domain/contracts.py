"""Domain-level request contracts and collaborator protocols shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Final, Protocol

from pydantic import SecretStr

from .account import Account


@dataclass(slots=True)
class RegistrationInput:
    """Validated inputs required to register an account."""

    first_name: str
    last_name: str
    email: str
    phone: str
    user_name: str
    password: SecretStr
    role: str = "user"


@dataclass(slots=True)
class NewAccount:
    """Fully derived account fields handed to the store for insertion."""

    first_name: str
    last_name: str
    email: str
    phone: str
    user_name: str
    password_hash: str
    role: str
    profile_picture: str | None = None


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset()


@dataclass(slots=True)
class ProfileUpdate:
    """Partial profile changes; fields left at ``UNSET`` were not supplied.

    ``None`` is a real value, used to clear ``profile_picture``.
    """

    first_name: str | _Unset = UNSET
    last_name: str | _Unset = UNSET
    email: str | _Unset = UNSET
    phone: str | _Unset = UNSET
    role: str | _Unset = UNSET
    profile_picture: str | None | _Unset = UNSET

    def changes(self) -> dict[str, Any]:
        return {
            field.name: getattr(self, field.name)
            for field in fields(self)
            if getattr(self, field.name) is not UNSET
        }


class StoreConflict(Exception):
    """Raised by an identity store when a uniqueness constraint rejects a write."""

    def __init__(self, field: str) -> None:
        super().__init__(f"unique constraint violated on {field}")
        self.field = field


class AssetStoreError(Exception):
    """Raised by an asset store when an upload cannot be completed."""


class IdentityStore(Protocol):
    """Durable keyed storage of accounts."""

    def find_by_field(self, field: str, value: str) -> Account | None: ...

    def find_by_id(self, account_id: int) -> Account | None: ...

    def find_all(self) -> list[Account]: ...

    def insert(self, account: NewAccount) -> Account: ...

    def merge_and_save(self, existing: Account, partial: dict[str, Any]) -> Account | None: ...

    def delete_by_id(self, account_id: int) -> None: ...

    def search_by_handle_substring(self, fragment: str) -> list[Account]: ...


class AssetStore(Protocol):
    """Opaque binary object storage returning public URLs."""

    def upload_stream(self, data: bytes, folder: str, content_type: str | None = None) -> str: ...
