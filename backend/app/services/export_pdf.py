"""PDF export of the sales report using fpdf2."""
from __future__ import annotations

import io
import logging

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from backend.app.core.exceptions import ExportError
from backend.app.services.export_i18n import format_rupiah, t
from backend.app.services.reports import ReportDocument

logger = logging.getLogger(__name__)


# ── Shared helpers ──────────────────────────────────────────────────────────

_COL_BG = (31, 78, 121)   # dark blue header
_SEC_BG = (214, 228, 240)  # light blue section
_LINE_H = 7
_FONT = "Helvetica"

# No., Date, Outlet, Kasir, Payment Method, Amount; sums to the A4 landscape body
_WIDTHS = [14, 50, 62, 62, 42, 47]


class ReportPDF(FPDF):
    """Landscape A4 with a ``Page n/N`` footer on every page."""

    def __init__(self, lang: str = "en") -> None:
        super().__init__(orientation="L", format="A4")
        self.lang = lang
        self.set_auto_page_break(auto=True, margin=15)

    def footer(self) -> None:
        self.set_y(-12)
        self.set_font(_FONT, "I", 8)
        self.set_text_color(120, 120, 120)
        self.cell(0, 8, f"{t(self.lang, 'page')} {self.page_no()}/{{nb}}", align="C")
        self.set_text_color(0, 0, 0)


def _safe_text(text: str) -> str:
    """Replace non-latin-1 characters for PDF built-in fonts."""
    return text.encode("latin-1", errors="replace").decode("latin-1")


def _header_row(pdf: FPDF, headers: list[str], widths: list[int]) -> None:
    """Draw a colored header row."""
    pdf.set_fill_color(*_COL_BG)
    pdf.set_text_color(255, 255, 255)
    pdf.set_font(_FONT, "B", 9)
    for i, (h, w) in enumerate(zip(headers, widths)):
        align = "R" if i == len(widths) - 1 else "L"
        pdf.cell(w, _LINE_H, _safe_text(h), border=1, fill=True, align=align)
    pdf.ln()
    pdf.set_text_color(0, 0, 0)


def _data_row(pdf: FPDF, values: list[str], widths: list[int], bold: bool = False) -> None:
    """Draw a data row."""
    pdf.set_font(_FONT, "B" if bold else "", 8)
    for i, (v, w) in enumerate(zip(values, widths)):
        align = "R" if i == len(widths) - 1 else "L"
        pdf.cell(w, _LINE_H, _safe_text(v), border="B", align=align)
    pdf.ln()


def _to_bytes(pdf: FPDF) -> io.BytesIO:
    """Output PDF to BytesIO."""
    buf = io.BytesIO()
    pdf.output(buf)
    buf.seek(0)
    return buf


# ── Sales report ────────────────────────────────────────────────────────────


def export_sales_report_pdf(doc: ReportDocument) -> io.BytesIO:
    """Render *doc*; the table header is repeated after every page break."""
    if doc.is_empty:
        raise ExportError(t(doc.lang, "no_data"))

    lang = doc.lang
    headers = [
        t(lang, "number"),
        t(lang, "date"),
        t(lang, "outlet"),
        t(lang, "kasir"),
        t(lang, "payment_method"),
        t(lang, "amount"),
    ]

    try:
        pdf = ReportPDF(lang)
        pdf.add_page()
        pdf.set_font(_FONT, "B", 16)
        pdf.cell(0, 10, _safe_text(doc.title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font(_FONT, "", 9)
        pdf.cell(0, 6, _safe_text(doc.filter_description), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.cell(
            0, 6,
            _safe_text(f"{t(lang, 'generated_at')}: {doc.generated_at}"),
            new_x=XPos.LMARGIN, new_y=YPos.NEXT,
        )
        pdf.ln(4)

        _header_row(pdf, headers, _WIDTHS)
        for row in doc.rows:
            if pdf.will_page_break(_LINE_H):
                pdf.add_page()
                _header_row(pdf, headers, _WIDTHS)
            _data_row(
                pdf,
                [
                    str(row.index),
                    row.date,
                    row.outlet,
                    row.kasir,
                    row.payment_method,
                    format_rupiah(row.amount),
                ],
                _WIDTHS,
            )

        # Summary
        pdf.ln(3)
        if pdf.will_page_break(_LINE_H * 2):
            pdf.add_page()
        pdf.set_fill_color(*_SEC_BG)
        label_w = sum(_WIDTHS[:-1])
        pdf.set_font(_FONT, "B", 9)
        pdf.cell(label_w, _LINE_H, _safe_text(t(lang, "transactions")), fill=True)
        pdf.cell(_WIDTHS[-1], _LINE_H, str(doc.count), fill=True, align="R",
                 new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.cell(label_w, _LINE_H, _safe_text(t(lang, "total_sales")), fill=True)
        pdf.cell(_WIDTHS[-1], _LINE_H, _safe_text(format_rupiah(doc.total_amount_sum)),
                 fill=True, align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        return _to_bytes(pdf)
    except Exception as exc:
        logger.exception("PDF rendering failed")
        raise ExportError("Could not generate the PDF report") from exc
