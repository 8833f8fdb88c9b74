from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class Account:
    """Persisted user identity, including the stored password hash."""

    account_id: int
    first_name: str
    last_name: str
    email: str
    phone: str
    user_name: str
    password_hash: str
    role: str
    created_at: datetime
    profile_picture: str | None = None
