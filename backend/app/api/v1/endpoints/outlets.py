from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from backend.app.api.permission_deps import require_merchant_role
from backend.app.core.database import commit_or_raise, get_db
from backend.app.models.outlet import Outlet
from backend.app.models.user import RoleEnum
from backend.app.schemas.outlet import OutletCreate, OutletOut, OutletUpdate
from backend.app.services.access import SessionContext
from backend.app.services.audit import log_action

router = APIRouter()

_admin = require_merchant_role(RoleEnum.ADMIN)
_any_member = require_merchant_role(RoleEnum.ADMIN, RoleEnum.KASIR)


def _get_outlet(db: Session, session: SessionContext, outlet_id: UUID) -> Outlet:
    outlet = (
        db.query(Outlet)
        .filter(Outlet.id == outlet_id, Outlet.merchant_id == session.merchant_id)
        .first()
    )
    if not outlet:
        raise HTTPException(status_code=404, detail="Outlet not found")
    return outlet


@router.get("", response_model=list[OutletOut])
def list_outlets(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_any_member),
) -> list[Outlet]:
    """Outlets of the merchant; a kasir only gets the ones assigned to them."""
    query = db.query(Outlet).filter(Outlet.merchant_id == session.merchant_id)
    if session.role == RoleEnum.KASIR:
        query = query.filter(Outlet.id.in_(session.assigned_outlet_ids))
    return query.order_by(Outlet.name).all()


@router.post("", response_model=OutletOut, status_code=status.HTTP_201_CREATED)
def create_outlet(
    payload: OutletCreate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> Outlet:
    outlet = Outlet(
        name=payload.name.strip(),
        address=payload.address.strip(),
        merchant_id=session.merchant_id,
    )
    db.add(outlet)
    db.flush()
    log_action(
        db,
        user_id=session.user_id,
        action="OUTLET_CREATED",
        resource_type="outlets",
        resource_id=str(outlet.id),
        changes={"name": outlet.name, "address": outlet.address},
        merchant_id=session.merchant_id,
    )
    commit_or_raise(db, "the outlet")
    db.refresh(outlet)
    return outlet


@router.put("/{outlet_id}", response_model=OutletOut)
def update_outlet(
    outlet_id: UUID,
    payload: OutletUpdate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> Outlet:
    outlet = _get_outlet(db, session, outlet_id)
    old = {"name": outlet.name, "address": outlet.address}
    if payload.name is not None:
        outlet.name = payload.name.strip()
    if payload.address is not None:
        outlet.address = payload.address.strip()
    log_action(
        db,
        user_id=session.user_id,
        action="OUTLET_UPDATED",
        resource_type="outlets",
        resource_id=str(outlet.id),
        changes={"name": outlet.name, "address": outlet.address},
        old_values=old,
        merchant_id=session.merchant_id,
    )
    commit_or_raise(db, "the outlet")
    db.refresh(outlet)
    return outlet


@router.delete("/{outlet_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_outlet(
    outlet_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> None:
    outlet = _get_outlet(db, session, outlet_id)
    log_action(
        db,
        user_id=session.user_id,
        action="OUTLET_DELETED",
        resource_type="outlets",
        resource_id=str(outlet.id),
        old_values={"name": outlet.name},
        merchant_id=session.merchant_id,
    )
    db.delete(outlet)
    commit_or_raise(db, "the outlet deletion")
