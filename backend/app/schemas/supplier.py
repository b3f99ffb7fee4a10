from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None


class SupplierUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=255)
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None


class SupplierOut(BaseModel):
    id: UUID
    name: str
    contact_person: str | None
    email: str | None
    phone: str | None
    address: str | None

    class Config:
        from_attributes = True
