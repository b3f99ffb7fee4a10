from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


# ─── Product units ───────────────────────────────────────────────────────────


class ProductUnitIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    price: Decimal
    stock: int = 0
    is_base_unit: bool = False
    conversion_factor: int = 1

    @field_validator("price")
    @classmethod
    def price_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Price must be non-negative")
        return v

    @field_validator("stock")
    @classmethod
    def stock_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock must be non-negative")
        return v

    @field_validator("conversion_factor")
    @classmethod
    def factor_min_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Conversion factor must be at least 1")
        return v


def _check_units(units: list[ProductUnitIn]) -> list[ProductUnitIn]:
    if not units:
        raise ValueError("A product needs at least one unit")
    names = [u.name.strip().lower() for u in units]
    if len(set(names)) != len(names):
        raise ValueError("Unit names must be unique")
    base_units = [u for u in units if u.is_base_unit]
    if len(base_units) != 1:
        raise ValueError("Exactly one unit must be the base unit")
    # The base unit is the unit of account
    base_units[0].conversion_factor = 1
    return units


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    sku: str | None = Field(None, max_length=50)
    barcode: str | None = Field(None, max_length=100)
    supplier_id: UUID | None = None
    buy_own: bool = False
    units: list[ProductUnitIn]

    @model_validator(mode="after")
    def validate_units(self) -> "ProductCreate":
        _check_units(self.units)
        return self


class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=255)
    sku: str | None = Field(None, max_length=50)
    barcode: str | None = Field(None, max_length=100)
    supplier_id: UUID | None = None
    buy_own: bool | None = None
    units: list[ProductUnitIn] | None = None

    @model_validator(mode="after")
    def validate_units(self) -> "ProductUpdate":
        if self.units is not None:
            _check_units(self.units)
        return self


class ProductUnitOut(BaseModel):
    id: UUID
    name: str
    price: Decimal
    stock: int
    is_base_unit: bool
    conversion_factor: int

    class Config:
        from_attributes = True


class ProductOut(BaseModel):
    id: UUID
    name: str
    sku: str | None
    barcode: str | None
    supplier_id: UUID | None
    buy_own: bool
    units: list[ProductUnitOut]
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CatalogItemOut(BaseModel):
    """A product as the POS catalog shows it: its sellable unit only."""

    product_id: UUID
    name: str
    barcode: str | None
    unit_name: str
    price: Decimal
    stock: int


# ─── Stock adjustment ────────────────────────────────────────────────────────


class StockAdjustmentIn(BaseModel):
    unit_name: str | None = None
    new_stock: int
    reason: str | None = Field(None, max_length=500)

    @field_validator("new_stock")
    @classmethod
    def stock_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock cannot be negative")
        return v

    @field_validator("reason")
    @classmethod
    def reason_min_length(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if len(v) < 3:
            raise ValueError("Reason must be at least 3 characters")
        return v


class StockAdjustmentOut(BaseModel):
    id: UUID
    product_id: UUID
    unit_name: str
    previous_stock: int
    new_stock: int
    reason: str | None
    created_by: UUID
    created_at: datetime | None = None

    class Config:
        from_attributes = True
