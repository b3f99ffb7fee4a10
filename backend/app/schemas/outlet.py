from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class OutletCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    address: str = Field("", max_length=1000)


class OutletUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=255)
    address: str | None = Field(None, max_length=1000)


class OutletOut(BaseModel):
    id: UUID
    name: str
    address: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


# ─── Merchant settings ───────────────────────────────────────────────────────


class SettingsIn(BaseModel):
    tax_rate: Decimal = Decimal("0")
    discount_rate: Decimal = Decimal("0")

    @field_validator("tax_rate", "discount_rate")
    @classmethod
    def rate_in_range(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 100:
            raise ValueError("Rate must be between 0 and 100")
        return v


class SettingsOut(BaseModel):
    tax_rate: Decimal
    discount_rate: Decimal
