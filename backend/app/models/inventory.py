from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.database import Base


class Product(Base):
    """Sellable product of a merchant.

    Prices and stock live on :class:`ProductUnit` because one product can be
    sold per piece and per box. The POS sells the base unit (or the first
    unit when no base unit is flagged).
    """

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(50), nullable=True)
    barcode: Mapped[str | None] = mapped_column(String(100), nullable=True)
    supplier_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True
    )
    buy_own: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    merchant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("merchants.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=func.now()
    )

    supplier: Mapped["Supplier | None"] = relationship(back_populates="products")  # noqa: F821
    units: Mapped[list[ProductUnit]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductUnit.position",
    )

    __table_args__ = (
        Index("ix_products_merchant", "merchant_id"),
        Index("ix_products_barcode", "barcode"),
    )

    @property
    def display_unit(self) -> ProductUnit | None:
        """The unit the POS catalog sells: base unit first, else the first unit."""
        if not self.units:
            return None
        for unit in self.units:
            if unit.is_base_unit:
                return unit
        return self.units[0]


class ProductUnit(Base):
    __tablename__ = "product_units"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_base_unit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    conversion_factor: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    product: Mapped[Product] = relationship(back_populates="units")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_unit_price_non_negative"),
        CheckConstraint("stock >= 0", name="ck_unit_stock_non_negative"),
        CheckConstraint("conversion_factor >= 1", name="ck_unit_conversion_factor_min"),
        UniqueConstraint("product_id", "name", name="uq_product_unit_name"),
    )


class StockAdjustment(Base):
    """Records every manual stock correction of a product unit."""

    __tablename__ = "stock_adjustments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    unit_name: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    new_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    merchant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("merchants.id"), nullable=False
    )
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    product: Mapped[Product] = relationship()

    __table_args__ = (
        CheckConstraint("new_stock >= 0", name="ck_adjustment_new_stock_non_negative"),
        Index("ix_stock_adj_product", "product_id"),
        Index("ix_stock_adj_created_at", "created_at"),
    )
