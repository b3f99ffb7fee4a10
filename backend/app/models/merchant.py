from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.database import Base


class Merchant(Base):
    """Tenant boundary: every outlet, product, user and sale belongs to one."""

    __tablename__ = "merchants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    settings: Mapped[MerchantSettings | None] = relationship(
        back_populates="merchant", uselist=False, cascade="all, delete-orphan"
    )
    outlets: Mapped[list["Outlet"]] = relationship(back_populates="merchant")  # noqa: F821


class MerchantSettings(Base):
    """PPN (tax) and discount rates applied to every checkout of a merchant."""

    __tablename__ = "merchant_settings"

    merchant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("merchants.id"), primary_key=True
    )
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=7, scale=4), nullable=False, default=Decimal("0")
    )
    discount_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=7, scale=4), nullable=False, default=Decimal("0")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    merchant: Mapped[Merchant] = relationship(back_populates="settings")

    __table_args__ = (
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="ck_settings_tax_rate_range"),
        CheckConstraint(
            "discount_rate >= 0 AND discount_rate <= 100",
            name="ck_settings_discount_rate_range",
        ),
    )
