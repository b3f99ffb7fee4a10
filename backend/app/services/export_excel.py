"""Excel export of the sales report using openpyxl."""
from __future__ import annotations

import io
import logging
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from backend.app.core.exceptions import ExportError
from backend.app.services.export_i18n import t
from backend.app.services.reports import ReportDocument

logger = logging.getLogger(__name__)

# ── Shared styling constants ────────────────────────────────────────────────

_HEADER_FONT = Font(name="Calibri", bold=True, color="FFFFFF", size=11)
_HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
_TOTAL_FONT = Font(name="Calibri", bold=True, size=11)
_TOTAL_BORDER = Border(
    top=Side(style="thin"),
    bottom=Side(style="double"),
)
_CURRENCY_FMT = '"Rp" #,##0'
_RIGHT = Alignment(horizontal="right")
_LEFT = Alignment(horizontal="left")


def _auto_width(ws: Any) -> None:
    """Auto-fit column widths based on content."""
    for col_idx in range(1, ws.max_column + 1):
        max_len = 0
        col_letter = get_column_letter(col_idx)
        for row in ws.iter_rows(min_col=col_idx, max_col=col_idx, values_only=False):
            cell = row[0]
            if cell.value is not None:
                max_len = max(max_len, len(str(cell.value)))
        ws.column_dimensions[col_letter].width = min(max_len + 4, 40)


def _write_header_row(ws: Any, row: int, values: list[str]) -> None:
    """Write a styled header row."""
    for col, val in enumerate(values, 1):
        cell = ws.cell(row=row, column=col, value=val)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _RIGHT if col == len(values) else _LEFT


def _write_title(ws: Any, title: str, subtitle: str, generated: str) -> int:
    """Write report title and subtitle, return next available row."""
    ws.cell(row=1, column=1, value=title).font = Font(name="Calibri", bold=True, size=14)
    ws.cell(row=2, column=1, value=subtitle).font = Font(name="Calibri", size=10, italic=True)
    ws.cell(row=3, column=1, value=generated).font = Font(name="Calibri", size=10, italic=True)
    return 5


def export_sales_report_excel(doc: ReportDocument) -> io.BytesIO:
    if doc.is_empty:
        raise ExportError(t(doc.lang, "no_data"))

    lang = doc.lang
    try:
        wb = Workbook()
        ws = wb.active
        ws.title = t(lang, "sales_report")[:31]

        row = _write_title(
            ws,
            doc.title,
            doc.filter_description,
            f"{t(lang, 'generated_at')}: {doc.generated_at}",
        )
        _write_header_row(ws, row, [
            t(lang, "number"),
            t(lang, "date"),
            t(lang, "outlet"),
            t(lang, "kasir"),
            t(lang, "payment_method"),
            t(lang, "amount"),
        ])
        ws.freeze_panes = ws.cell(row=row + 1, column=1)
        row += 1

        for r in doc.rows:
            ws.cell(row=row, column=1, value=r.index)
            ws.cell(row=row, column=2, value=r.date)
            ws.cell(row=row, column=3, value=r.outlet)
            ws.cell(row=row, column=4, value=r.kasir)
            ws.cell(row=row, column=5, value=r.payment_method)
            c = ws.cell(row=row, column=6, value=float(r.amount))
            c.number_format = _CURRENCY_FMT
            c.alignment = _RIGHT
            row += 1

        # Totals
        ws.cell(row=row, column=5, value=t(lang, "transactions")).font = _TOTAL_FONT
        c = ws.cell(row=row, column=6, value=doc.count)
        c.font = _TOTAL_FONT
        c.alignment = _RIGHT
        row += 1
        ws.cell(row=row, column=5, value=t(lang, "total_sales")).font = _TOTAL_FONT
        c = ws.cell(row=row, column=6, value=float(doc.total_amount_sum))
        c.number_format = _CURRENCY_FMT
        c.font = _TOTAL_FONT
        c.border = _TOTAL_BORDER
        c.alignment = _RIGHT

        _auto_width(ws)
        buf = io.BytesIO()
        wb.save(buf)
        buf.seek(0)
        return buf
    except Exception as exc:
        logger.exception("Excel rendering failed")
        raise ExportError("Could not generate the Excel report") from exc
