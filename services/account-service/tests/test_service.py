from __future__ import annotations

import re
import time

import jwt
import pytest
from pydantic import SecretStr

from account_service.config import get_settings
from account_service.domain.contracts import ProfileUpdate, RegistrationInput
from account_service.domain.errors import (
    DuplicateCredential,
    InvalidInput,
    NotFound,
    Unauthorized,
    UploadFailed,
)
from account_service.domain.service import (
    AccountService,
    DELETED_MESSAGE,
    LOGIN_FAILED_MESSAGE,
    compose_handle,
    parse_account_id,
)
from account_service.security.passwords import verify_password

HANDLE_PATTERN = re.compile(r"^@jo_[A-Za-z0-9]{6}$")


def _registration(**overrides) -> RegistrationInput:
    fields = {
        "first_name": "Jo",
        "last_name": "Doe",
        "email": "jo@x.com",
        "phone": "+100",
        "user_name": "jo",
        "password": SecretStr("Secret1"),
        "role": "user",
    }
    fields.update(overrides)
    return RegistrationInput(**fields)


def test_register_derives_handle_and_hashes_password(service):
    account = service.register(_registration())

    assert account.email == "jo@x.com"
    assert HANDLE_PATTERN.match(account.user_name)
    assert account.password_hash != "Secret1"
    assert verify_password(SecretStr("Secret1"), account.password_hash)
    assert account.profile_picture is None


def test_register_assigns_distinct_keys(service):
    first = service.register(_registration())
    second = service.register(_registration(email="kim@x.com", phone="+200", user_name="kim"))

    assert first.account_id != second.account_id
    assert re.match(r"^@kim_[A-Za-z0-9]{6}$", second.user_name)


def test_register_rejects_duplicate_email(service):
    service.register(_registration())

    with pytest.raises(DuplicateCredential) as excinfo:
        service.register(_registration(phone="+999"))
    assert excinfo.value.field == "email"


def test_register_rejects_duplicate_phone(service):
    service.register(_registration())

    with pytest.raises(DuplicateCredential) as excinfo:
        service.register(_registration(email="other@x.com"))
    assert excinfo.value.field == "phone"


def test_register_reports_email_before_phone(service):
    service.register(_registration())

    with pytest.raises(DuplicateCredential) as excinfo:
        service.register(_registration())
    assert excinfo.value.field == "email"


def test_register_translates_store_conflict(repository, asset_store, monkeypatch):
    # both pre-checks pass, as when a concurrent registration commits in between
    service = AccountService(repository, asset_store)
    service.register(_registration())
    monkeypatch.setattr(repository, "find_by_field", lambda field, value: None)

    with pytest.raises(DuplicateCredential) as excinfo:
        service.register(_registration(email="other@x.com"))
    assert excinfo.value.field == "phone"
    assert len(repository.find_all()) == 1


def test_compose_handle_suffix_varies():
    handles = {compose_handle("ann") for _ in range(20)}
    assert len(handles) > 1
    assert all(re.match(r"^@ann_[A-Za-z0-9]{6}$", handle) for handle in handles)


def test_login_returns_token_with_identity_claims(service):
    account = service.register(_registration(role="admin"))

    token = service.login("jo@x.com", SecretStr("Secret1"))
    claims = service.verify_token(token.access_token)

    assert token.expires_in == get_settings().jwt_ttl_seconds
    assert claims.account_id == account.account_id
    assert claims.email == "jo@x.com"
    assert claims.role == "admin"
    assert claims.user_name == account.user_name


def test_login_failures_share_message(service):
    service.register(_registration())

    with pytest.raises(Unauthorized) as wrong_password:
        service.login("jo@x.com", SecretStr("nope"))
    with pytest.raises(NotFound) as unknown_email:
        service.login("ghost@x.com", SecretStr("Secret1"))

    assert wrong_password.value.message == LOGIN_FAILED_MESSAGE
    assert unknown_email.value.message == LOGIN_FAILED_MESSAGE


def test_verify_token_rejects_expired_token(service):
    settings = get_settings()
    now = int(time.time())
    expired = jwt.encode(
        {
            "iss": settings.jwt_issuer,
            "sub": "1",
            "email": "jo@x.com",
            "role": "user",
            "user_name": "@jo_abcdef",
            "iat": now - 120,
            "exp": now - 60,
        },
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )

    with pytest.raises(Unauthorized):
        service.verify_token(expired)


def test_verify_token_rejects_foreign_signature(service):
    forged = jwt.encode(
        {"iss": get_settings().jwt_issuer, "sub": "1", "iat": 0, "exp": int(time.time()) + 60},
        "someone-else",
        algorithm="HS256",
    )

    with pytest.raises(Unauthorized):
        service.verify_token(forged)


def test_current_account_after_delete_is_not_found(service):
    account = service.register(_registration())
    token = service.login("jo@x.com", SecretStr("Secret1"))
    service.delete(account.account_id)

    with pytest.raises(NotFound):
        service.current_account(token.access_token)


def test_update_profile_merges_only_given_fields(service):
    account = service.register(_registration())

    message = service.update_profile(str(account.account_id), ProfileUpdate(last_name="Smith"))
    updated = service.get_one(account.account_id)

    assert message == "Dear Jo, your profile has been successfully updated."
    assert updated.last_name == "Smith"
    assert updated.first_name == "Jo"
    assert updated.email == account.email
    assert updated.phone == account.phone
    assert updated.user_name == account.user_name
    assert updated.password_hash == account.password_hash

    service.update_profile(account.account_id, ProfileUpdate(last_name="Smith"))
    assert service.get_one(account.account_id) == updated


def test_update_profile_rejects_taken_email(service):
    service.register(_registration())
    other = service.register(_registration(email="kim@x.com", phone="+200", user_name="kim"))

    with pytest.raises(DuplicateCredential) as excinfo:
        service.update_profile(other.account_id, ProfileUpdate(email="jo@x.com"))
    assert excinfo.value.field == "email"


def test_update_profile_unknown_account(service):
    with pytest.raises(NotFound) as excinfo:
        service.update_profile("42", ProfileUpdate(first_name="X"))
    assert excinfo.value.message == "User with ID #42 not found"


def test_delete_then_get_one_is_not_found(service):
    account = service.register(_registration())

    assert service.delete(account.account_id) == DELETED_MESSAGE
    with pytest.raises(NotFound):
        service.get_one(account.account_id)


@pytest.mark.parametrize("raw", ["abc", "", " 1", "1.5", "-3", "0", 0, -1, 1.0, True, None, "9" * 20])
def test_parse_account_id_rejects_malformed(raw):
    with pytest.raises(InvalidInput) as excinfo:
        parse_account_id(raw)
    assert excinfo.value.message == "Invalid ID format"


@pytest.mark.parametrize("raw, expected", [("7", 7), (7, 7), ("0012", 12)])
def test_parse_account_id_accepts_positive_integers(raw, expected):
    assert parse_account_id(raw) == expected


def test_get_one_validates_before_lookup(service, repository, monkeypatch):
    def fail(account_id):
        raise AssertionError("store should not be consulted")

    monkeypatch.setattr(repository, "find_by_id", fail)
    with pytest.raises(InvalidInput):
        service.get_one("abc")


def test_search_by_name_is_case_insensitive(service):
    service.register(_registration(email="a@x.com", phone="+1", user_name="Annabel"))
    service.register(_registration(email="b@x.com", phone="+2", user_name="ANNIE"))
    service.register(_registration(email="c@x.com", phone="+3", user_name="joann"))
    service.register(_registration(email="d@x.com", phone="+4", user_name="bob"))

    matches = service.search_by_name("ann")

    assert sorted(account.email for account in matches) == ["a@x.com", "b@x.com", "c@x.com"]


@pytest.mark.parametrize("name", ["", None, 5])
def test_search_by_name_rejects_empty_or_non_string(service, name):
    with pytest.raises(InvalidInput):
        service.search_by_name(name)


def test_upload_asset_uses_profile_picture_folder(service, asset_store):
    url = service.upload_asset(b"\x89PNG", "image/png")

    assert url == "https://cdn.example.com/profile-pictures/1"
    assert asset_store.uploads == [(b"\x89PNG", "profile-pictures", "image/png")]


def test_upload_asset_failure(service, asset_store):
    asset_store.fail = True

    with pytest.raises(UploadFailed):
        service.upload_asset(b"data")


def test_set_profile_picture(service):
    account = service.register(_registration())

    updated = service.set_profile_picture(account.account_id, "https://cdn.example.com/p.png")

    assert updated.profile_picture == "https://cdn.example.com/p.png"
    assert service.get_one(account.account_id).profile_picture == "https://cdn.example.com/p.png"


def test_set_profile_picture_unknown_account(service):
    with pytest.raises(NotFound):
        service.set_profile_picture(99, "https://cdn.example.com/p.png")


def test_login_unknown_email_still_verifies_a_hash(service, monkeypatch):
    checked: list[str] = []

    def recording_verify(password, hashed_password):
        checked.append(hashed_password)
        return False

    monkeypatch.setattr("account_service.domain.service.verify_password", recording_verify)

    with pytest.raises(NotFound):
        service.login("ghost@x.com", SecretStr("Secret1"))

    assert len(checked) == 1
    assert checked[0].startswith("$2")
    assert f"${get_settings().password_hash_rounds:02d}$" in checked[0]


def test_profile_update_reports_only_supplied_fields():
    assert ProfileUpdate().changes() == {}
    assert ProfileUpdate(last_name="Smith").changes() == {"last_name": "Smith"}
    assert ProfileUpdate(profile_picture=None).changes() == {"profile_picture": None}


def test_update_profile_clears_profile_picture(service):
    account = service.register(_registration())
    service.set_profile_picture(account.account_id, "https://cdn.example.com/p.png")

    service.update_profile(account.account_id, ProfileUpdate(profile_picture=None))

    cleared = service.get_one(account.account_id)
    assert cleared.profile_picture is None
    assert cleared.first_name == "Jo"
