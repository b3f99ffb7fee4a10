"""Superadmin user and merchant management."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.api.permission_deps import require_role
from backend.app.core.database import commit_or_raise, get_db
from backend.app.models.user import RoleEnum, User, UserStatus
from backend.app.schemas.user import MerchantCreate, MerchantOut, UserOut
from backend.app.services.access import SessionContext
from backend.app.services.user_management import (
    approve_user,
    create_merchant,
    delete_user,
    list_users,
    set_user_status,
)

router = APIRouter()

_superadmin = require_role(RoleEnum.SUPERADMIN)


def _to_out(user: User) -> UserOut:
    out = UserOut.model_validate(user)
    out.merchant_name = user.merchant.name if user.merchant else None
    return out


@router.get("", response_model=list[UserOut])
def get_users(
    db: Session = Depends(get_db),
    _session: SessionContext = Depends(_superadmin),
) -> list[UserOut]:
    return [_to_out(u) for u in list_users(db)]


@router.post("/merchants", response_model=MerchantOut, status_code=status.HTTP_201_CREATED)
def post_merchant(
    body: MerchantCreate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_superadmin),
) -> MerchantOut:
    merchant, admin = create_merchant(
        db,
        merchant_name=body.merchant_name,
        admin_name=body.admin_name,
        email=body.email,
        password=body.password,
        superadmin_id=session.user_id,
    )
    commit_or_raise(db, "the merchant")
    db.refresh(admin)
    return MerchantOut(id=merchant.id, name=merchant.name, admin=_to_out(admin))


@router.post("/{user_id}/approve", response_model=UserOut)
def post_approve(
    user_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_superadmin),
) -> UserOut:
    user = approve_user(db, user_id=user_id, superadmin_id=session.user_id)
    commit_or_raise(db, "the user")
    db.refresh(user)
    return _to_out(user)


@router.post("/{user_id}/activate", response_model=UserOut)
def post_activate(
    user_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_superadmin),
) -> UserOut:
    user = set_user_status(
        db, user_id=user_id, status=UserStatus.ACTIVE, superadmin_id=session.user_id
    )
    commit_or_raise(db, "the user")
    db.refresh(user)
    return _to_out(user)


@router.post("/{user_id}/deactivate", response_model=UserOut)
def post_deactivate(
    user_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_superadmin),
) -> UserOut:
    user = set_user_status(
        db, user_id=user_id, status=UserStatus.INACTIVE, superadmin_id=session.user_id
    )
    commit_or_raise(db, "the user")
    db.refresh(user)
    return _to_out(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_superadmin),
) -> None:
    delete_user(db, user_id=user_id, superadmin_id=session.user_id)
    commit_or_raise(db, "the user deletion")
