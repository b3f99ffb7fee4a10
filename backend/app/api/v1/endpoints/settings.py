from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.permission_deps import require_merchant_role
from backend.app.core.database import commit_or_raise, get_db
from backend.app.models.user import RoleEnum
from backend.app.schemas.outlet import SettingsIn, SettingsOut
from backend.app.services.access import SessionContext
from backend.app.services.merchant_settings import get_settings, update_settings

router = APIRouter()


@router.get("", response_model=SettingsOut)
def read_settings(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_merchant_role(RoleEnum.ADMIN, RoleEnum.KASIR)),
) -> SettingsOut:
    row = get_settings(db, session.merchant_id)
    commit_or_raise(db, "the settings")
    return SettingsOut(tax_rate=row.tax_rate, discount_rate=row.discount_rate)


@router.put("", response_model=SettingsOut)
def write_settings(
    payload: SettingsIn,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_merchant_role(RoleEnum.ADMIN)),
) -> SettingsOut:
    row = update_settings(
        db,
        merchant_id=session.merchant_id,
        tax_rate=payload.tax_rate,
        discount_rate=payload.discount_rate,
        user_id=session.user_id,
    )
    commit_or_raise(db, "the settings")
    db.refresh(row)
    return SettingsOut(tax_rate=row.tax_rate, discount_rate=row.discount_rate)
