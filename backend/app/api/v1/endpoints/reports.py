from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse, StreamingResponse
from sqlalchemy.orm import Session

from backend.app.api.permission_deps import require_role
from backend.app.core.database import commit_or_raise, get_db
from backend.app.core.exceptions import ValidationError
from backend.app.models.user import RoleEnum
from backend.app.schemas.reports import (
    DashboardResponse,
    ExportJobResponse,
    RecentSale,
    SalesReportResponse,
    SalesReportRow,
)
from backend.app.services.access import SessionContext
from backend.app.services.audit import log_action
from backend.app.services.dashboard import get_dashboard_stats
from backend.app.services.export_excel import export_sales_report_excel
from backend.app.services.export_pdf import export_sales_report_pdf
from backend.app.services.file_service import FileStorageService
from backend.app.services.reports import (
    ALL,
    ReportFilter,
    build_sales_report_document,
    effective_filter,
    load_name_lookups,
    run_sales_report,
)

router = APIRouter()

_reader = require_role(RoleEnum.SUPERADMIN, RoleEnum.ADMIN, RoleEnum.KASIR)

_SUPPORTED_LANGS = {"en", "id"}


def report_filter(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    outlet_id: str = Query(ALL, max_length=64),
    kasir_id: str = Query(ALL, max_length=64),
    payment_method: str = Query(ALL, pattern="^(all|cash|qris)$"),
) -> ReportFilter:
    if date_from and date_to and date_from > date_to:
        raise ValidationError("Start date must be on or before end date")
    return ReportFilter(
        date_from=date_from,
        date_to=date_to,
        outlet_id=outlet_id,
        kasir_id=kasir_id,
        payment_method=payment_method,
    )


def _language(request: Request, lang: str | None) -> str:
    if lang in _SUPPORTED_LANGS:
        return lang
    return getattr(request.state, "language", "en")


# ── Export helpers ────────────────────────────────────────────────────────

_XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
_PDF_MIME = "application/pdf"


def _export_response(
    buf: object, media_type: str, filename: str,
) -> StreamingResponse:
    return StreamingResponse(
        buf,  # type: ignore[arg-type]
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _log_export(
    db: Session, session: SessionContext, flt: ReportFilter, fmt: str, rows: int,
) -> None:
    log_action(
        db,
        user_id=session.user_id,
        action="REPORT_EXPORTED",
        resource_type="reports",
        resource_id="sales",
        changes={
            "format": fmt,
            "rows": rows,
            "outlet_id": flt.outlet_id,
            "kasir_id": flt.kasir_id,
            "payment_method": flt.payment_method,
        },
        merchant_id=session.merchant_id,
    )
    commit_or_raise(db, "the export log")


def _filename(flt: ReportFilter, ext: str) -> str:
    parts = ["sales-report"]
    if flt.date_from:
        parts.append(flt.date_from.isoformat())
    if flt.date_to:
        parts.append(flt.date_to.isoformat())
    return "_".join(parts) + f".{ext}"


# ── Sales report ─────────────────────────────────────────────────────────────


@router.get("/sales", response_model=SalesReportResponse)
def sales_report(
    flt: ReportFilter = Depends(report_filter),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_reader),
) -> SalesReportResponse:
    flt = effective_filter(flt, session)
    result = run_sales_report(db, session, flt)
    outlet_names, kasir_names = load_name_lookups(db, session)
    return SalesReportResponse(
        date_from=flt.date_from.isoformat() if flt.date_from else None,
        date_to=flt.date_to.isoformat() if flt.date_to else None,
        outlet_id=flt.outlet_id,
        kasir_id=flt.kasir_id,
        payment_method=flt.payment_method,
        count=result.count,
        total_amount_sum=str(result.total_amount_sum),
        transactions=[
            SalesReportRow(
                id=str(t.id),
                timestamp=t.timestamp.isoformat(),
                outlet_id=str(t.outlet_id),
                outlet_name=outlet_names.get(str(t.outlet_id)) or t.outlet_name or "N/A",
                kasir_id=str(t.kasir_id),
                kasir_name=kasir_names.get(str(t.kasir_id)) or t.kasir_name or "N/A",
                payment_method=t.payment_method.value,
                total_amount=str(t.total_amount),
            )
            for t in result.transactions
        ],
    )


@router.get("/sales/export/pdf")
def sales_report_export_pdf(
    request: Request,
    lang: str | None = Query(None),
    flt: ReportFilter = Depends(report_filter),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_reader),
) -> StreamingResponse:
    doc = build_sales_report_document(db, session, flt, lang=_language(request, lang))
    buf = export_sales_report_pdf(doc)
    _log_export(db, session, effective_filter(flt, session), "pdf", len(doc.rows))
    return _export_response(buf, _PDF_MIME, _filename(flt, "pdf"))


@router.get("/sales/export/excel")
def sales_report_export_excel(
    request: Request,
    lang: str | None = Query(None),
    flt: ReportFilter = Depends(report_filter),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_reader),
) -> StreamingResponse:
    doc = build_sales_report_document(db, session, flt, lang=_language(request, lang))
    buf = export_sales_report_excel(doc)
    _log_export(db, session, effective_filter(flt, session), "excel", len(doc.rows))
    return _export_response(buf, _XLSX_MIME, _filename(flt, "xlsx"))


@router.post(
    "/sales/export/async",
    response_model=ExportJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def sales_report_export_async(
    request: Request,
    fmt: str = Query("pdf", pattern="^(pdf|excel)$"),
    lang: str | None = Query(None),
    flt: ReportFilter = Depends(report_filter),
    session: SessionContext = Depends(_reader),
) -> ExportJobResponse:
    """Queue the export on the Celery worker for large date ranges."""
    from backend.app.workers.tasks.exports import filter_to_params, generate_sales_report

    task = generate_sales_report.delay(
        str(session.user_id),
        str(session.outlet_id) if session.outlet_id else None,
        filter_to_params(flt),
        fmt,
        _language(request, lang),
    )
    return ExportJobResponse(task_id=task.id, status="queued")


@router.get("/sales/export/async/{task_id}", response_model=ExportJobResponse)
def sales_report_export_status(
    task_id: str,
    session: SessionContext = Depends(_reader),
) -> ExportJobResponse:
    """Poll a queued export; ``url`` is set once the file is ready."""
    from backend.app.workers.tasks.exports import export_status

    info = export_status(task_id)
    owner = info.get("user_id")
    if owner is not None and owner != str(session.user_id):
        raise HTTPException(status_code=404, detail="Export not found")
    return ExportJobResponse(
        task_id=task_id,
        status=info["status"],
        url=info.get("url"),
        detail=info.get("detail"),
    )


@router.get("/files/{relative_path:path}")
def download_export_file(
    relative_path: str,
    session: SessionContext = Depends(_reader),
) -> FileResponse:
    """Serve a stored export to the user who requested it."""
    from backend.app.workers.tasks.exports import export_folder

    fs = FileStorageService()
    try:
        path = fs.local_path(relative_path)
        own_folder = fs.local_path(export_folder(session.merchant_id, session.user_id))
    except ValueError:
        raise HTTPException(status_code=404, detail="File not found") from None
    if session.role != RoleEnum.SUPERADMIN and own_folder not in path.parents:
        raise HTTPException(status_code=404, detail="File not found")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    media_type = _PDF_MIME if path.suffix == ".pdf" else _XLSX_MIME
    return FileResponse(path, media_type=media_type, filename=path.name)


# ── Dashboard ────────────────────────────────────────────────────────────────


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_reader),
) -> DashboardResponse:
    stats = get_dashboard_stats(db, session)
    outlet_names, kasir_names = load_name_lookups(db, session)
    return DashboardResponse(
        month_start=stats.month_start.isoformat(),
        revenue=str(stats.revenue),
        transaction_count=stats.transaction_count,
        active_kasirs=stats.active_kasirs,
        average_sale=str(stats.average_sale),
        recent_sales=[
            RecentSale(
                id=str(t.id),
                timestamp=t.timestamp.isoformat(),
                outlet_name=outlet_names.get(str(t.outlet_id)) or t.outlet_name or "N/A",
                kasir_name=kasir_names.get(str(t.kasir_id)) or t.kasir_name or "N/A",
                payment_method=t.payment_method.value,
                total_amount=str(t.total_amount),
            )
            for t in stats.recent_sales
        ],
    )
