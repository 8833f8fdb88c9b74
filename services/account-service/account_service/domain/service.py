"""Account service orchestrating persistence, credential checks, and token issuance."""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass

import jwt
from pydantic import SecretStr, ValidationError

from account_schemas import AccessTokenClaims

from .account import Account
from .contracts import (
    AssetStore,
    AssetStoreError,
    IdentityStore,
    NewAccount,
    ProfileUpdate,
    RegistrationInput,
    StoreConflict,
)
from .errors import DuplicateCredential, InvalidInput, NotFound, Unauthorized, UploadFailed
from ..metrics import ASSET_UPLOADS, LOGINS, REGISTRATIONS
from ..security.passwords import dummy_hash, hash_password, verify_password
from ..security.tokens import decode_access_token, issue_access_token

logger = logging.getLogger(__name__)

PROFILE_PICTURE_FOLDER = "profile-pictures"
LOGIN_FAILED_MESSAGE = "Invalid email or password"
INVALID_ID_MESSAGE = "Invalid ID format"
ACCOUNT_NOT_FOUND_MESSAGE = "User not found"
DELETED_MESSAGE = "Your account has been deleted successfully"

HANDLE_SUFFIX_LENGTH = 6
_HANDLE_ALPHABET = string.ascii_letters + string.digits
# identity keys are stored as BIGINT
_MAX_ACCOUNT_ID = 2**63 - 1


@dataclass(slots=True)
class AccessToken:
    """Bearer token returned to API consumers after a successful login."""

    access_token: str
    expires_in: int


def parse_account_id(raw: object) -> int:
    """Validate an identity key and return it as a positive integer.

    Accepts ``int`` values and strings of ASCII digits; anything else raises
    ``InvalidInput`` before the store is consulted.
    """
    if isinstance(raw, bool):
        raise InvalidInput(INVALID_ID_MESSAGE)
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and raw.isascii() and raw.isdigit():
        value = int(raw)
    else:
        raise InvalidInput(INVALID_ID_MESSAGE)
    if value <= 0 or value > _MAX_ACCOUNT_ID:
        raise InvalidInput(INVALID_ID_MESSAGE)
    return value


def compose_handle(user_name: str) -> str:
    """Derive the public display handle ``@<user_name>_<suffix>``."""
    suffix = "".join(secrets.choice(_HANDLE_ALPHABET) for _ in range(HANDLE_SUFFIX_LENGTH))
    return f"@{user_name}_{suffix}"


class AccountService:
    """Account workflows backed by an identity store and an asset store."""

    def __init__(self, repository: IdentityStore, asset_store: AssetStore) -> None:
        """Store dependencies used to orchestrate persistence and uploads."""
        self._repository = repository
        self._asset_store = asset_store

    def register(self, payload: RegistrationInput) -> Account:
        """Create an account after checking that email and phone are unused.

        The pre-checks are not atomic with the insert; a concurrent registration
        that wins the race is reported by the store's uniqueness constraint and
        surfaces here as the same ``DuplicateCredential``.
        """
        if self._repository.find_by_field("email", payload.email) is not None:
            REGISTRATIONS.labels(outcome="duplicate").inc()
            raise DuplicateCredential("email")
        if self._repository.find_by_field("phone", payload.phone) is not None:
            REGISTRATIONS.labels(outcome="duplicate").inc()
            raise DuplicateCredential("phone")

        new_account = NewAccount(
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            phone=payload.phone,
            user_name=compose_handle(payload.user_name),
            password_hash=hash_password(payload.password),
            role=payload.role,
        )
        try:
            account = self._repository.insert(new_account)
        except StoreConflict as exc:
            logger.info("registration lost uniqueness race on %s", exc.field)
            REGISTRATIONS.labels(outcome="duplicate").inc()
            raise DuplicateCredential(exc.field) from exc

        REGISTRATIONS.labels(outcome="created").inc()
        logger.info("account registered: account_id=%s handle=%s", account.account_id, account.user_name)
        return account

    def login(self, email: str, password: SecretStr) -> AccessToken:
        """Verify credentials and issue a signed access token.

        Unknown emails and wrong passwords raise different exception types but
        carry the same message, so callers can answer both identically.
        """
        account = self._repository.find_by_field("email", email)
        if account is None:
            # equalise timing with the bad-password branch
            verify_password(password, dummy_hash())
            logger.info("login rejected: unknown email")
            LOGINS.labels(outcome="unknown_email").inc()
            raise NotFound(LOGIN_FAILED_MESSAGE)

        if not verify_password(password, account.password_hash):
            logger.info("login rejected: bad password for account_id=%s", account.account_id)
            LOGINS.labels(outcome="bad_password").inc()
            raise Unauthorized(LOGIN_FAILED_MESSAGE)

        token, expires_in = issue_access_token(
            subject=account.account_id,
            email=account.email,
            role=account.role,
            user_name=account.user_name,
        )
        LOGINS.labels(outcome="success").inc()
        return AccessToken(access_token=token, expires_in=expires_in)

    def verify_token(self, token: str) -> AccessTokenClaims:
        """Decode a bearer token issued by :meth:`login`."""
        try:
            return AccessTokenClaims.model_validate(decode_access_token(token))
        except (jwt.PyJWTError, ValidationError) as exc:
            logger.info("bearer token rejected: %s", exc)
            raise Unauthorized("Invalid or expired token") from exc

    def current_account(self, token: str) -> Account:
        """Resolve the account that a bearer token was issued to."""
        claims = self.verify_token(token)
        account = self._repository.find_by_id(claims.account_id)
        if account is None:
            raise NotFound(ACCOUNT_NOT_FOUND_MESSAGE)
        return account

    def upload_asset(self, data: bytes, content_type: str | None = None) -> str:
        """Upload a profile picture to the asset store and return its URL."""
        try:
            url = self._asset_store.upload_stream(data, PROFILE_PICTURE_FOLDER, content_type)
        except AssetStoreError as exc:
            ASSET_UPLOADS.labels(outcome="failed").inc()
            raise UploadFailed("Failed to upload file") from exc
        ASSET_UPLOADS.labels(outcome="stored").inc()
        return url

    def set_profile_picture(self, account_id: object, url: str) -> Account:
        """Point the account's profile picture at ``url``."""
        account = self._require_account(parse_account_id(account_id))
        return self._save(account, {"profile_picture": url})

    def get_all(self) -> list[Account]:
        return self._repository.find_all()

    def get_one(self, account_id: object) -> Account:
        return self._require_account(parse_account_id(account_id))

    def update_profile(self, account_id: object, update: ProfileUpdate) -> str:
        """Merge the supplied fields onto the account and return a confirmation."""
        key = parse_account_id(account_id)
        account = self._repository.find_by_id(key)
        if account is None:
            raise NotFound(f"User with ID #{key} not found")
        self._save(account, update.changes())
        return f"Dear {account.first_name}, your profile has been successfully updated."

    def delete(self, account_id: object) -> str:
        """Hard-delete the account."""
        account = self._require_account(parse_account_id(account_id))
        self._repository.delete_by_id(account.account_id)
        logger.info("account deleted: account_id=%s", account.account_id)
        return DELETED_MESSAGE

    def search_by_name(self, name: object) -> list[Account]:
        """Return accounts whose display handle contains ``name``, ignoring case."""
        if not isinstance(name, str) or not name:
            raise InvalidInput("Invalid name")
        return self._repository.search_by_handle_substring(name)

    def _require_account(self, account_id: int) -> Account:
        account = self._repository.find_by_id(account_id)
        if account is None:
            raise NotFound(ACCOUNT_NOT_FOUND_MESSAGE)
        return account

    def _save(self, account: Account, changes: dict) -> Account:
        try:
            saved = self._repository.merge_and_save(account, changes)
        except StoreConflict as exc:
            raise DuplicateCredential(exc.field) from exc
        if saved is None:
            raise NotFound(ACCOUNT_NOT_FOUND_MESSAGE)
        return saved
