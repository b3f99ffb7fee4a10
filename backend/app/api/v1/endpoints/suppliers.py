from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from backend.app.api.permission_deps import require_merchant_role
from backend.app.core.database import commit_or_raise, get_db
from backend.app.models.supplier import Supplier
from backend.app.models.user import RoleEnum
from backend.app.schemas.supplier import SupplierCreate, SupplierOut, SupplierUpdate
from backend.app.services.access import SessionContext
from backend.app.services.audit import log_action

router = APIRouter()

_admin = require_merchant_role(RoleEnum.ADMIN)


def _get_supplier(db: Session, session: SessionContext, supplier_id: UUID) -> Supplier:
    supplier = (
        db.query(Supplier)
        .filter(Supplier.id == supplier_id, Supplier.merchant_id == session.merchant_id)
        .first()
    )
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


@router.get("", response_model=list[SupplierOut])
def list_suppliers(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> list[Supplier]:
    return (
        db.query(Supplier)
        .filter(Supplier.merchant_id == session.merchant_id)
        .order_by(Supplier.name)
        .all()
    )


@router.post("", response_model=SupplierOut, status_code=status.HTTP_201_CREATED)
def create_supplier(
    payload: SupplierCreate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> Supplier:
    supplier = Supplier(**payload.model_dump(), merchant_id=session.merchant_id)
    db.add(supplier)
    db.flush()
    log_action(
        db,
        user_id=session.user_id,
        action="SUPPLIER_CREATED",
        resource_type="suppliers",
        resource_id=str(supplier.id),
        changes=payload.model_dump(),
        merchant_id=session.merchant_id,
    )
    commit_or_raise(db, "the supplier")
    db.refresh(supplier)
    return supplier


@router.get("/{supplier_id}", response_model=SupplierOut)
def get_supplier(
    supplier_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> Supplier:
    return _get_supplier(db, session, supplier_id)


@router.put("/{supplier_id}", response_model=SupplierOut)
def update_supplier(
    supplier_id: UUID,
    payload: SupplierUpdate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> Supplier:
    supplier = _get_supplier(db, session, supplier_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        changes.pop("name", None)
    for field, value in changes.items():
        setattr(supplier, field, value)
    log_action(
        db,
        user_id=session.user_id,
        action="SUPPLIER_UPDATED",
        resource_type="suppliers",
        resource_id=str(supplier.id),
        changes=changes,
        merchant_id=session.merchant_id,
    )
    commit_or_raise(db, "the supplier")
    db.refresh(supplier)
    return supplier


@router.delete("/{supplier_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_supplier(
    supplier_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> None:
    supplier = _get_supplier(db, session, supplier_id)
    log_action(
        db,
        user_id=session.user_id,
        action="SUPPLIER_DELETED",
        resource_type="suppliers",
        resource_id=str(supplier.id),
        old_values={"name": supplier.name},
        merchant_id=session.merchant_id,
    )
    db.delete(supplier)
    commit_or_raise(db, "the supplier deletion")
