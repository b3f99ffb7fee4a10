from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from backend.app.models.audit import AuditLog


def _jsonable(value: Any) -> Any:
    """Make audit payloads storable in a JSON column (amounts, ids, timestamps)."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def log_action(
    db: Session,
    *,
    user_id: UUID | None,
    action: str,
    resource_type: str,
    resource_id: str,
    changes: dict[str, Any] | None = None,
    old_values: dict[str, Any] | None = None,
    merchant_id: UUID | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    """Stage one audit_logs row in the caller's transaction.

    Sales, stock corrections, account changes, exports and logins all pass
    through here. Nothing is committed; the row is written together with
    the change it describes or not at all.
    """
    entry = AuditLog(
        table_name=resource_type,
        record_id=resource_id,
        action=action,
        changed_by=user_id,
        merchant_id=merchant_id,
        old_values=_jsonable(old_values) if old_values is not None else None,
        new_values=_jsonable(changes) if changes is not None else None,
        ip_address=ip_address,
    )
    db.add(entry)
    return entry
