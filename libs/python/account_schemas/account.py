"""Account-related DTOs shared across services."""

from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr


class AccountProfile(BaseModel):
    """Public view of an account; the password hash is never part of it."""

    model_config = ConfigDict(from_attributes=True)

    account_id: int
    first_name: str
    last_name: str
    email: EmailStr
    phone: str
    user_name: str
    role: str
    profile_picture: str | None = None
    created_at: datetime
