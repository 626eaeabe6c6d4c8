from datetime import datetime
from typing import Any

from pydantic import BaseModel, field_validator

from storefront.schemas.auction import Coins


class User(BaseModel):
    id: str | None = None
    email: str = ""
    name: str = ""
    phone: str | None = None
    wallet_balance: Coins = 0
    avatar_url: str | None = None
    is_active: bool = True
    email_verified: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> str | None:
        return None if value is None else str(value)


class AuthTokens(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    phone: str | None = None


def initials(name: str) -> str:
    return "".join(part[0] for part in name.split()).upper()


class UserProfile(BaseModel):
    name: str = ""
    avatar: str = ""

    @classmethod
    def for_name(cls, name: str) -> "UserProfile":
        return cls(name=name, avatar=initials(name))
