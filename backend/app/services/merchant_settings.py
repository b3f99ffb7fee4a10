from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from backend.app.core.exceptions import ValidationError
from backend.app.models.merchant import MerchantSettings
from backend.app.services.audit import log_action

_HUNDRED = Decimal("100")


def get_settings(db: Session, merchant_id: UUID) -> MerchantSettings:
    """Return the merchant's settings row, creating the 0/0 default on first use."""
    row = db.get(MerchantSettings, merchant_id)
    if row is None:
        row = MerchantSettings(
            merchant_id=merchant_id, tax_rate=Decimal("0"), discount_rate=Decimal("0")
        )
        db.add(row)
        db.flush()
    return row


def update_settings(
    db: Session,
    *,
    merchant_id: UUID,
    tax_rate: Decimal,
    discount_rate: Decimal,
    user_id: UUID,
) -> MerchantSettings:
    for label, rate in (("Tax rate", tax_rate), ("Discount rate", discount_rate)):
        if rate < 0 or rate > _HUNDRED:
            raise ValidationError(f"{label} must be between 0 and 100")

    row = get_settings(db, merchant_id)
    old = {"tax_rate": str(row.tax_rate), "discount_rate": str(row.discount_rate)}
    row.tax_rate = tax_rate
    row.discount_rate = discount_rate
    db.flush()

    log_action(
        db,
        user_id=user_id,
        action="SETTINGS_UPDATED",
        resource_type="merchant_settings",
        resource_id=str(merchant_id),
        changes={"tax_rate": str(tax_rate), "discount_rate": str(discount_rate)},
        old_values=old,
        merchant_id=merchant_id,
    )
    return row
