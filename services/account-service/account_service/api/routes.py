"""HTTP route definitions for the account service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, EmailStr, Field, SecretStr, model_validator

from account_schemas import AccountProfile

from ..domain.contracts import ProfileUpdate, RegistrationInput
from ..domain.errors import (
    AccountError,
    DuplicateCredential,
    InvalidInput,
    NotFound,
    Unauthorized,
    UploadFailed,
)
from ..domain.service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

bearer_scheme = HTTPBearer()


class RegisterRequest(BaseModel):
    """Payload accepted when registering an account."""

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    user_name: str = Field(..., min_length=1)
    password: SecretStr
    role: str = "user"


class LoginRequest(BaseModel):
    email: EmailStr
    password: SecretStr


class LoginResponse(BaseModel):
    """Token issuance response containing the bearer token and its lifetime."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UploadResponse(BaseModel):
    url: str


class ProfilePictureRequest(BaseModel):
    url: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    """Partial profile changes; omitted fields keep their stored values.

    Only ``profile_picture`` may be sent as ``null``, which clears it. Keys
    that are not updatable (``password``, ``user_name``) are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, min_length=1)
    role: str | None = None
    profile_picture: str | None = None

    @model_validator(mode="after")
    def _reject_null_required_fields(self) -> UpdateProfileRequest:
        nulled = [
            name
            for name in self.model_fields_set
            if name != "profile_picture" and getattr(self, name) is None
        ]
        if nulled:
            raise ValueError(f"fields cannot be null: {', '.join(sorted(nulled))}")
        return self


class MessageResponse(BaseModel):
    message: str


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


@router.post("/accounts", response_model=AccountProfile, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    service: AccountService = Depends(get_service),
) -> AccountProfile:
    """Register an account and return its public profile."""
    try:
        account = service.register(
            RegistrationInput(
                first_name=payload.first_name,
                last_name=payload.last_name,
                email=payload.email,
                phone=payload.phone,
                user_name=payload.user_name,
                password=payload.password,
                role=payload.role,
            )
        )
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AccountProfile.model_validate(account)


@router.post("/auth/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
) -> LoginResponse:
    """Exchange email and password for a signed access token."""
    try:
        token = service.login(payload.email, payload.password)
    except (NotFound, Unauthorized) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message) from exc
    return LoginResponse(access_token=token.access_token, expires_in=token.expires_in)


@router.get("/auth/me", response_model=AccountProfile)
def me(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    service: AccountService = Depends(get_service),
) -> AccountProfile:
    """Return the account that the presented bearer token belongs to."""
    try:
        account = service.current_account(credentials.credentials)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AccountProfile.model_validate(account)


@router.post("/uploads", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
def upload_asset(
    file: UploadFile = File(...),
    service: AccountService = Depends(get_service),
) -> UploadResponse:
    """Store an uploaded profile picture and return its public URL."""
    data = file.file.read()
    try:
        url = service.upload_asset(data, file.content_type)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return UploadResponse(url=url)


@router.put("/accounts/{account_id}/profile-picture", response_model=AccountProfile)
def set_profile_picture(
    account_id: str,
    payload: ProfilePictureRequest,
    service: AccountService = Depends(get_service),
) -> AccountProfile:
    try:
        account = service.set_profile_picture(account_id, payload.url)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AccountProfile.model_validate(account)


@router.get("/accounts", response_model=list[AccountProfile])
def list_accounts(service: AccountService = Depends(get_service)) -> list[AccountProfile]:
    return [AccountProfile.model_validate(account) for account in service.get_all()]


@router.get("/accounts/search", response_model=list[AccountProfile])
def search_accounts(
    name: str = Query(default=""),
    service: AccountService = Depends(get_service),
) -> list[AccountProfile]:
    """Case-insensitive substring search over display handles."""
    try:
        accounts = service.search_by_name(name)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return [AccountProfile.model_validate(account) for account in accounts]


@router.get("/accounts/{account_id}", response_model=AccountProfile)
def get_account(
    account_id: str,
    service: AccountService = Depends(get_service),
) -> AccountProfile:
    try:
        account = service.get_one(account_id)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AccountProfile.model_validate(account)


@router.patch("/accounts/{account_id}", response_model=MessageResponse)
def update_account(
    account_id: str,
    payload: UpdateProfileRequest,
    service: AccountService = Depends(get_service),
) -> MessageResponse:
    """Merge the supplied profile fields onto the stored account."""
    try:
        message = service.update_profile(
            account_id, ProfileUpdate(**payload.model_dump(exclude_unset=True))
        )
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return MessageResponse(message=message)


@router.delete("/accounts/{account_id}", response_model=MessageResponse)
def delete_account(
    account_id: str,
    service: AccountService = Depends(get_service),
) -> MessageResponse:
    try:
        message = service.delete(account_id)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return MessageResponse(message=message)


_STATUS_BY_ERROR: dict[type[AccountError], int] = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    Unauthorized: status.HTTP_401_UNAUTHORIZED,
    NotFound: status.HTTP_404_NOT_FOUND,
    DuplicateCredential: status.HTTP_409_CONFLICT,
    UploadFailed: status.HTTP_502_BAD_GATEWAY,
}


def _http_error_from_account_error(exc: AccountError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.warning("request failed upstream: %s", exc.message)
    return HTTPException(status_code=status_code, detail=exc.message)
