"""Claims carried by access tokens issued by the account service."""

from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class AccessTokenClaims(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: int = Field(..., alias="sub")
    email: str
    role: str
    user_name: str
    issuer: str = Field(..., alias="iss")
    issued_at: datetime = Field(..., alias="iat")
    expires_at: datetime = Field(..., alias="exp")
