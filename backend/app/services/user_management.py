"""User management service: merchants, their admins and kasir accounts.

All mutations are audit-logged. This module does NOT call db.commit();
the caller (endpoint) is responsible for committing.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from backend.app.core.exceptions import ValidationError
from backend.app.core.security import get_password_hash, verify_password
from backend.app.models.merchant import Merchant, MerchantSettings
from backend.app.models.outlet import Outlet
from backend.app.models.user import RoleEnum, User, UserStatus
from backend.app.services.audit import log_action

logger = logging.getLogger(__name__)


def _email_taken(db: Session, email: str, exclude_id: UUID | None = None) -> bool:
    query = db.query(User.id).filter(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def _get_user(db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ValidationError("User not found")
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    """Return the user for valid credentials, None otherwise (status not checked)."""
    user = db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


# ─── Merchants ───────────────────────────────────────────────────────────────


def _create_merchant(
    db: Session,
    *,
    merchant_name: str,
    admin_name: str,
    email: str,
    password: str,
    status: UserStatus,
) -> tuple[Merchant, User]:
    if _email_taken(db, email):
        raise ValidationError("Email is already registered")

    merchant = Merchant(name=merchant_name.strip())
    merchant.settings = MerchantSettings()
    db.add(merchant)
    db.flush()

    admin = User(
        email=email,
        name=admin_name.strip(),
        hashed_password=get_password_hash(password),
        role=RoleEnum.ADMIN,
        status=status,
        merchant_id=merchant.id,
    )
    db.add(admin)
    db.flush()
    return merchant, admin


def register_merchant(
    db: Session,
    *,
    merchant_name: str,
    admin_name: str,
    email: str,
    password: str,
    ip_address: str | None = None,
) -> User:
    """Self-service sign-up. The admin stays pending until a superadmin approves."""
    merchant, admin = _create_merchant(
        db,
        merchant_name=merchant_name,
        admin_name=admin_name,
        email=email,
        password=password,
        status=UserStatus.PENDING_APPROVAL,
    )
    log_action(
        db,
        user_id=admin.id,
        action="MERCHANT_REGISTERED",
        resource_type="merchants",
        resource_id=str(merchant.id),
        changes={"name": merchant.name, "admin_email": admin.email},
        merchant_id=merchant.id,
        ip_address=ip_address,
    )
    return admin


def create_merchant(
    db: Session,
    *,
    merchant_name: str,
    admin_name: str,
    email: str,
    password: str,
    superadmin_id: UUID,
) -> tuple[Merchant, User]:
    """Superadmin onboarding: merchant plus an already active admin."""
    merchant, admin = _create_merchant(
        db,
        merchant_name=merchant_name,
        admin_name=admin_name,
        email=email,
        password=password,
        status=UserStatus.ACTIVE,
    )
    log_action(
        db,
        user_id=superadmin_id,
        action="MERCHANT_CREATED",
        resource_type="merchants",
        resource_id=str(merchant.id),
        changes={"name": merchant.name, "admin_email": admin.email},
        merchant_id=merchant.id,
    )
    return merchant, admin


# ─── Users (superadmin) ──────────────────────────────────────────────────────


def list_users(db: Session) -> list[User]:
    """Return all users ordered by creation date descending."""
    return (
        db.query(User)
        .options(selectinload(User.merchant))
        .order_by(User.created_at.desc())
        .all()
    )


def set_user_status(
    db: Session,
    *,
    user_id: UUID,
    status: UserStatus,
    superadmin_id: UUID,
) -> User:
    user = _get_user(db, user_id)
    if user.role == RoleEnum.SUPERADMIN and status != UserStatus.ACTIVE:
        raise ValidationError("Superadmin accounts cannot be deactivated")
    if status == UserStatus.PENDING_APPROVAL:
        raise ValidationError("Users cannot be moved back to pending approval")

    old = user.status
    if old == status:
        return user
    user.status = status
    db.flush()

    action = "USER_APPROVED" if old == UserStatus.PENDING_APPROVAL else "USER_STATUS_CHANGED"
    log_action(
        db,
        user_id=superadmin_id,
        action=action,
        resource_type="users",
        resource_id=str(user.id),
        changes={"status": status.value},
        old_values={"status": old.value},
        merchant_id=user.merchant_id,
    )
    return user


def approve_user(db: Session, *, user_id: UUID, superadmin_id: UUID) -> User:
    user = _get_user(db, user_id)
    if user.status != UserStatus.PENDING_APPROVAL:
        raise ValidationError("User is not pending approval")
    return set_user_status(
        db, user_id=user_id, status=UserStatus.ACTIVE, superadmin_id=superadmin_id
    )


def delete_user(db: Session, *, user_id: UUID, superadmin_id: UUID) -> None:
    user = _get_user(db, user_id)
    if user.role == RoleEnum.SUPERADMIN:
        raise ValidationError("Superadmin accounts cannot be deleted")
    log_action(
        db,
        user_id=superadmin_id,
        action="USER_DELETED",
        resource_type="users",
        resource_id=str(user.id),
        old_values={"email": user.email, "role": user.role.value},
        merchant_id=user.merchant_id,
    )
    db.delete(user)
    db.flush()


# ─── Kasir (merchant admin) ──────────────────────────────────────────────────


def _merchant_outlets(db: Session, merchant_id: UUID, outlet_ids: list[UUID]) -> list[Outlet]:
    wanted = set(outlet_ids)
    outlets = (
        db.query(Outlet)
        .filter(Outlet.merchant_id == merchant_id, Outlet.id.in_(wanted))
        .all()
    )
    if len(outlets) != len(wanted):
        raise ValidationError("One or more outlets do not belong to this merchant")
    return outlets


def _get_kasir(db: Session, merchant_id: UUID, kasir_id: UUID) -> User:
    kasir = (
        db.query(User)
        .filter(
            User.id == kasir_id,
            User.merchant_id == merchant_id,
            User.role == RoleEnum.KASIR,
        )
        .first()
    )
    if not kasir:
        raise ValidationError("Kasir not found")
    return kasir


def list_kasirs(db: Session, merchant_id: UUID) -> list[User]:
    return (
        db.query(User)
        .options(selectinload(User.outlets))
        .filter(User.merchant_id == merchant_id, User.role == RoleEnum.KASIR)
        .order_by(User.name)
        .all()
    )


def create_kasir(
    db: Session,
    *,
    merchant_id: UUID,
    name: str,
    email: str,
    password: str,
    outlet_ids: list[UUID],
    admin_id: UUID,
) -> User:
    if not outlet_ids:
        raise ValidationError("A kasir needs at least one outlet")
    if _email_taken(db, email):
        raise ValidationError("Email is already registered")
    outlets = _merchant_outlets(db, merchant_id, outlet_ids)

    kasir = User(
        email=email,
        name=name.strip(),
        hashed_password=get_password_hash(password),
        role=RoleEnum.KASIR,
        status=UserStatus.ACTIVE,
        merchant_id=merchant_id,
    )
    kasir.outlets = outlets
    db.add(kasir)
    db.flush()

    log_action(
        db,
        user_id=admin_id,
        action="KASIR_CREATED",
        resource_type="users",
        resource_id=str(kasir.id),
        changes={"email": kasir.email, "outlets": sorted(str(o.id) for o in outlets)},
        merchant_id=merchant_id,
    )
    return kasir


def update_kasir(
    db: Session,
    *,
    merchant_id: UUID,
    kasir_id: UUID,
    admin_id: UUID,
    name: str | None = None,
    outlet_ids: list[UUID] | None = None,
    password: str | None = None,
) -> User:
    kasir = _get_kasir(db, merchant_id, kasir_id)
    changes: dict[str, object] = {}

    if name is not None and name.strip() != kasir.name:
        changes["name"] = {"old": kasir.name, "new": name.strip()}
        kasir.name = name.strip()

    if outlet_ids is not None:
        if not outlet_ids:
            raise ValidationError("A kasir needs at least one outlet")
        outlets = _merchant_outlets(db, merchant_id, outlet_ids)
        old_ids = sorted(str(o) for o in kasir.outlet_ids)
        new_ids = sorted(str(o.id) for o in outlets)
        if old_ids != new_ids:
            changes["outlets"] = {"old": old_ids, "new": new_ids}
            kasir.outlets = outlets

    if password:
        kasir.hashed_password = get_password_hash(password)
        changes["password"] = "changed"

    if changes:
        db.flush()
        log_action(
            db,
            user_id=admin_id,
            action="KASIR_UPDATED",
            resource_type="users",
            resource_id=str(kasir.id),
            changes=changes,
            merchant_id=merchant_id,
        )
    return kasir


def delete_kasir(db: Session, *, merchant_id: UUID, kasir_id: UUID, admin_id: UUID) -> None:
    kasir = _get_kasir(db, merchant_id, kasir_id)
    log_action(
        db,
        user_id=admin_id,
        action="KASIR_DELETED",
        resource_type="users",
        resource_id=str(kasir.id),
        old_values={"email": kasir.email, "name": kasir.name},
        merchant_id=merchant_id,
    )
    db.delete(kasir)
    db.flush()
