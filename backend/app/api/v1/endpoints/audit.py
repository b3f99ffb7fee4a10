from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.permission_deps import require_role
from backend.app.core.database import get_db
from backend.app.models.audit import AuditLog
from backend.app.models.user import RoleEnum
from backend.app.services.access import SessionContext

router = APIRouter()


class AuditLogOut(BaseModel):
    id: UUID
    user_id: UUID | None
    action: str
    resource_type: str
    resource_id: str
    changes: dict[str, Any] | None
    old_values: dict[str, Any] | None
    ip_address: str | None
    timestamp: datetime | None


@router.get("", response_model=list[AuditLogOut])
def list_audit_logs(
    user_id: UUID | None = Query(None, description="Filter by acting user"),
    action: str | None = Query(None, description="e.g. SALE_COMPLETED, STOCK_ADJUSTMENT"),
    resource_type: str | None = Query(None, description="e.g. sales_transactions, products"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_role(RoleEnum.SUPERADMIN, RoleEnum.ADMIN)),
) -> list[AuditLogOut]:
    """Newest first. A merchant admin only sees entries of their merchant."""
    query = db.query(AuditLog)
    if session.role != RoleEnum.SUPERADMIN:
        query = query.filter(AuditLog.merchant_id == session.merchant_id)

    if user_id is not None:
        query = query.filter(AuditLog.changed_by == user_id)
    if action is not None:
        query = query.filter(AuditLog.action == action)
    if resource_type is not None:
        query = query.filter(AuditLog.table_name == resource_type)

    rows = (
        query.order_by(AuditLog.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )

    return [
        AuditLogOut(
            id=r.id,
            user_id=r.changed_by,
            action=r.action,
            resource_type=r.table_name,
            resource_id=r.record_id,
            changes=r.new_values,
            old_values=r.old_values,
            ip_address=r.ip_address,
            timestamp=r.created_at,
        )
        for r in rows
    ]
