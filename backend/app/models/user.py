from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, String, Table, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.database import Base


class RoleEnum(str, enum.Enum):
    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    KASIR = "KASIR"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    INACTIVE = "INACTIVE"


kasir_outlets = Table(
    "kasir_outlets",
    Base.metadata,
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("outlet_id", Uuid, ForeignKey("outlets.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[RoleEnum] = mapped_column(Enum(RoleEnum), nullable=False)
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE
    )
    # Superadmins are not bound to a merchant
    merchant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("merchants.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    merchant: Mapped["Merchant | None"] = relationship()  # noqa: F821
    outlets: Mapped[list["Outlet"]] = relationship(  # noqa: F821
        secondary=kasir_outlets, back_populates="kasirs"
    )

    __table_args__ = (
        Index("ix_users_merchant", "merchant_id"),
        Index("ix_users_role", "role"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @property
    def outlet_ids(self) -> list[uuid.UUID]:
        return [o.id for o in self.outlets]
