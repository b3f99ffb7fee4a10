"""Async export tasks: render the sales report in the background."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID, uuid4

from celery.result import AsyncResult
from sqlalchemy.orm import selectinload

from backend.app.workers.celery_app import celery

logger = logging.getLogger(__name__)

_EXTENSIONS = {"pdf": "pdf", "excel": "xlsx"}

# Celery states a client sees before the export has finished
_PENDING_STATES = {"PENDING": "queued", "RECEIVED": "queued", "STARTED": "running", "RETRY": "running"}


def filter_to_params(flt: Any) -> dict[str, str | None]:
    """Serialise a ReportFilter to the JSON-safe dict the task accepts."""
    return {
        "date_from": flt.date_from.isoformat() if flt.date_from else None,
        "date_to": flt.date_to.isoformat() if flt.date_to else None,
        "outlet_id": str(flt.outlet_id),
        "kasir_id": str(flt.kasir_id),
        "payment_method": str(flt.payment_method),
    }


def export_folder(merchant_id: UUID | None, user_id: UUID) -> str:
    """Storage folder, relative to the file root, for one user's exports."""
    return f"reports/{merchant_id or 'platform'}/{user_id}"


def params_to_filter(params: dict[str, str | None]) -> Any:
    from backend.app.services.reports import ALL, ReportFilter

    return ReportFilter(
        date_from=date.fromisoformat(params["date_from"]) if params.get("date_from") else None,
        date_to=date.fromisoformat(params["date_to"]) if params.get("date_to") else None,
        outlet_id=params.get("outlet_id") or ALL,
        kasir_id=params.get("kasir_id") or ALL,
        payment_method=params.get("payment_method") or ALL,
    )


@celery.task(name="backend.app.workers.tasks.exports.generate_sales_report")
def generate_sales_report(
    user_id: str,
    outlet_id: str | None,
    params: dict,
    fmt: str = "pdf",
    lang: str = "en",
) -> dict:
    """Render the sales report for a user's session and store it via FileStorageService.

    Returns ``{"status": "done", "file_path": ..., "url": ..., "user_id": ...}``.
    Files land in a per-user folder so only the requester can download them.
    A partially written file is removed when anything fails after the write
    started.
    """
    from backend.app.core.database import SessionLocal
    from backend.app.core.exceptions import KasirError
    from backend.app.models.user import User
    from backend.app.services.access import SessionContext
    from backend.app.services.export_excel import export_sales_report_excel
    from backend.app.services.export_pdf import export_sales_report_pdf
    from backend.app.services.file_service import FileStorageService
    from backend.app.services.reports import build_sales_report_document

    if fmt not in _EXTENSIONS:
        return {"status": "error", "detail": f"Unknown format: {fmt}", "user_id": user_id}

    db = SessionLocal()
    fs = FileStorageService()
    relative_path: str | None = None
    try:
        user = (
            db.query(User)
            .options(selectinload(User.outlets))
            .filter(User.id == UUID(user_id))
            .first()
        )
        if user is None or not user.is_active:
            return {"status": "error", "detail": "User not found or inactive", "user_id": user_id}
        session = SessionContext.from_user(user, UUID(outlet_id) if outlet_id else None)

        doc = build_sales_report_document(db, session, params_to_filter(params), lang=lang)
        render = export_sales_report_pdf if fmt == "pdf" else export_sales_report_excel
        buf = render(doc)

        folder = export_folder(session.merchant_id, session.user_id)
        relative_path = f"{folder}/sales-report-{uuid4().hex}.{_EXTENSIONS[fmt]}"
        path = fs.save(relative_path, buf.getvalue())
        return {
            "status": "done",
            "file_path": path,
            "url": fs.url(relative_path),
            "user_id": user_id,
        }
    except KasirError as exc:
        if relative_path:
            fs.delete(relative_path)
        logger.warning("Sales report export for %s failed: %s", user_id, exc.message)
        return {"status": "error", "detail": exc.message, "user_id": user_id}
    except Exception:
        if relative_path:
            fs.delete(relative_path)
        logger.exception("Sales report export for %s crashed", user_id)
        raise
    finally:
        db.close()


def export_status(task_id: str) -> dict[str, Any]:
    """Poll a queued export.

    ``status`` is ``queued`` or ``running`` until the worker finishes, then
    the task's own ``done`` or ``error`` result. A crashed task is ``failed``.
    """
    result = AsyncResult(task_id, app=celery)
    if result.state == "SUCCESS":
        return dict(result.result or {})
    if result.state in _PENDING_STATES:
        return {"status": _PENDING_STATES[result.state]}
    logger.warning("Export task %s ended in state %s", task_id, result.state)
    return {"status": "failed", "detail": "Export task failed"}
