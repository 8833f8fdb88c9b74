from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from account_service.api import routes
from account_service.domain.account import Account
from account_service.domain.contracts import AssetStoreError, NewAccount, StoreConflict
from account_service.domain.service import AccountService


class FakeRepository:
    """In-memory repository mimicking the Postgres uniqueness constraints."""

    def __init__(self) -> None:
        self._accounts: dict[int, Account] = {}
        self._next_id = 0

    def find_by_field(self, field: str, value: str) -> Account | None:
        for account in self._accounts.values():
            if getattr(account, field) == value:
                return account
        return None

    def find_by_id(self, account_id: int) -> Account | None:
        return self._accounts.get(account_id)

    def find_all(self) -> list[Account]:
        return list(self._accounts.values())

    def insert(self, account: NewAccount) -> Account:
        self._check_unique(account.email, account.phone, exclude=None)
        self._next_id += 1
        stored = Account(
            account_id=self._next_id,
            first_name=account.first_name,
            last_name=account.last_name,
            email=account.email,
            phone=account.phone,
            user_name=account.user_name,
            password_hash=account.password_hash,
            role=account.role,
            created_at=datetime.now(timezone.utc),
            profile_picture=account.profile_picture,
        )
        self._accounts[stored.account_id] = stored
        return stored

    def merge_and_save(self, existing: Account, partial: dict[str, Any]) -> Account | None:
        if existing.account_id not in self._accounts:
            return None
        merged = replace(existing, **partial)
        self._check_unique(merged.email, merged.phone, exclude=existing.account_id)
        self._accounts[existing.account_id] = merged
        return merged

    def delete_by_id(self, account_id: int) -> None:
        self._accounts.pop(account_id, None)

    def search_by_handle_substring(self, fragment: str) -> list[Account]:
        needle = fragment.lower()
        return [account for account in self._accounts.values() if needle in account.user_name.lower()]

    def _check_unique(self, email: str, phone: str, exclude: int | None) -> None:
        for account in self._accounts.values():
            if account.account_id == exclude:
                continue
            if account.email == email:
                raise StoreConflict("email")
            if account.phone == phone:
                raise StoreConflict("phone")


class FakeAssetStore:
    """Asset store recording uploads in memory."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.uploads: list[tuple[bytes, str, str | None]] = []

    def upload_stream(self, data: bytes, folder: str, content_type: str | None = None) -> str:
        if self.fail:
            raise AssetStoreError("bucket unavailable")
        self.uploads.append((data, folder, content_type))
        return f"https://cdn.example.com/{folder}/{len(self.uploads)}"


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def asset_store() -> FakeAssetStore:
    return FakeAssetStore()


@pytest.fixture
def service(repository, asset_store) -> AccountService:
    return AccountService(repository, asset_store)


@pytest.fixture
def api_client(service):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.state.account_service = service

    with TestClient(app) as client:
        yield client, service
