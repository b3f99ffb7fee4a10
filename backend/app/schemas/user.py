from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from backend.app.core.security import validate_password_strength
from backend.app.models.user import RoleEnum, UserStatus


def _validate_pw(v: str) -> str:
    error = validate_password_strength(v)
    if error:
        raise ValueError(error)
    return v


def _validate_email(v: str) -> str:
    v = v.strip().lower()
    local, _, domain = v.partition("@")
    if not local or "." not in domain:
        raise ValueError("Invalid email address")
    return v


# ─── Auth ────────────────────────────────────────────────────────────────────


class Token(BaseModel):
    access_token: str
    token_type: str
    outlet_id: UUID | None = None


class RegisterRequest(BaseModel):
    merchant_name: str = Field(..., min_length=2, max_length=255)
    name: str = Field(..., min_length=2, max_length=255)
    email: str
    password: str = Field(..., max_length=128)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _validate_email(v)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        return _validate_pw(v)


class SelectOutletIn(BaseModel):
    outlet_id: UUID


class CurrentUserOut(BaseModel):
    id: UUID
    email: str
    name: str
    role: RoleEnum
    status: UserStatus
    merchant_id: UUID | None
    outlet_ids: list[UUID]
    selected_outlet_id: UUID | None = None


# ─── Users / merchants (superadmin) ──────────────────────────────────────────


class UserOut(BaseModel):
    id: UUID
    email: str
    name: str
    role: RoleEnum
    status: UserStatus
    merchant_id: UUID | None
    merchant_name: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class MerchantCreate(BaseModel):
    merchant_name: str = Field(..., min_length=2, max_length=255)
    admin_name: str = Field(..., min_length=2, max_length=255)
    email: str
    password: str = Field(..., max_length=128)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _validate_email(v)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        return _validate_pw(v)


class MerchantOut(BaseModel):
    id: UUID
    name: str
    admin: UserOut


# ─── Kasir (merchant admin) ──────────────────────────────────────────────────


class KasirCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    email: str
    password: str = Field(..., max_length=128)
    outlet_ids: list[UUID] = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _validate_email(v)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        return _validate_pw(v)


class KasirUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=255)
    outlet_ids: list[UUID] | None = Field(None, min_length=1)
    password: str | None = Field(None, max_length=128)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        return _validate_pw(v)


class KasirOut(BaseModel):
    id: UUID
    email: str
    name: str
    status: UserStatus
    outlet_ids: list[UUID]
    created_at: datetime | None = None

    class Config:
        from_attributes = True
