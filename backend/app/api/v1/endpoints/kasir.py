"""Kasir accounts of a merchant, managed by the merchant admin."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.api.permission_deps import require_merchant_role
from backend.app.core.database import commit_or_raise, get_db
from backend.app.models.user import RoleEnum, User
from backend.app.schemas.user import KasirCreate, KasirOut, KasirUpdate
from backend.app.services.access import SessionContext
from backend.app.services.user_management import (
    create_kasir,
    delete_kasir,
    list_kasirs,
    update_kasir,
)

router = APIRouter()

_admin = require_merchant_role(RoleEnum.ADMIN)


def _to_out(user: User) -> KasirOut:
    return KasirOut(
        id=user.id,
        email=user.email,
        name=user.name,
        status=user.status,
        outlet_ids=user.outlet_ids,
        created_at=user.created_at,
    )


@router.get("", response_model=list[KasirOut])
def get_kasirs(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> list[KasirOut]:
    return [_to_out(k) for k in list_kasirs(db, session.merchant_id)]


@router.post("", response_model=KasirOut, status_code=status.HTTP_201_CREATED)
def post_kasir(
    body: KasirCreate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> KasirOut:
    kasir = create_kasir(
        db,
        merchant_id=session.merchant_id,
        name=body.name,
        email=body.email,
        password=body.password,
        outlet_ids=body.outlet_ids,
        admin_id=session.user_id,
    )
    commit_or_raise(db, "the kasir")
    db.refresh(kasir)
    return _to_out(kasir)


@router.put("/{kasir_id}", response_model=KasirOut)
def put_kasir(
    kasir_id: UUID,
    body: KasirUpdate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> KasirOut:
    kasir = update_kasir(
        db,
        merchant_id=session.merchant_id,
        kasir_id=kasir_id,
        admin_id=session.user_id,
        name=body.name,
        outlet_ids=body.outlet_ids,
        password=body.password,
    )
    commit_or_raise(db, "the kasir")
    db.refresh(kasir)
    return _to_out(kasir)


@router.delete("/{kasir_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_kasir(
    kasir_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> None:
    delete_kasir(db, merchant_id=session.merchant_id, kasir_id=kasir_id, admin_id=session.user_id)
    commit_or_raise(db, "the kasir deletion")
