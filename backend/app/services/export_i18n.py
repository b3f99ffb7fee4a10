"""Translation dictionary and number/date formatting for report exports (en/id)."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from backend.app.core.config import settings

TRANSLATIONS: dict[str, dict[str, str]] = {
    "en": {
        # Common
        "period": "Period",
        "all": "All",
        "all_dates": "All dates",
        "generated_at": "Generated at",
        "total": "Total",
        "no_data": "No data to export",
        "na": "N/A",

        # Sales report
        "sales_report": "Sales Report",
        "outlet": "Outlet",
        "kasir": "Kasir",
        "payment_method": "Payment Method",
        "date": "Date",
        "amount": "Amount",
        "number": "No.",
        "transactions": "Transactions",
        "total_sales": "Total Sales",
        "page": "Page",

        # Payment methods
        "cash": "Cash",
        "qris": "QRIS",
    },
    "id": {
        # Common
        "period": "Periode",
        "all": "Semua",
        "all_dates": "Semua tanggal",
        "generated_at": "Dibuat pada",
        "total": "Total",
        "no_data": "Tidak ada data untuk diekspor",
        "na": "N/A",

        # Sales report
        "sales_report": "Laporan Penjualan",
        "outlet": "Outlet",
        "kasir": "Kasir",
        "payment_method": "Metode Pembayaran",
        "date": "Tanggal",
        "amount": "Jumlah",
        "number": "No.",
        "transactions": "Transaksi",
        "total_sales": "Total Penjualan",
        "page": "Halaman",

        # Payment methods
        "cash": "Tunai",
        "qris": "QRIS",
    },
}

_MONTHS: dict[str, list[str]] = {
    "en": ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
    "id": ["Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des"],
}


def t(lang: str, key: str) -> str:
    """Get translated label. Falls back to English."""
    return TRANSLATIONS.get(lang, TRANSLATIONS["en"]).get(
        key, TRANSLATIONS["en"].get(key, key)
    )


def format_date(value: date | datetime, lang: str = "en", with_time: bool = True) -> str:
    """``dd MMM yyyy, HH:mm`` with month names that do not depend on the OS locale."""
    month = _MONTHS.get(lang, _MONTHS["en"])[value.month - 1]
    text = f"{value.day:02d} {month} {value.year}"
    if with_time:
        text += f", {value.hour:02d}:{value.minute:02d}"
    return text


def format_rupiah(amount: Decimal | int | float | str) -> str:
    """Indonesian currency style: ``Rp 37.962`` or ``Rp 1.250,50``."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    value = abs(value)
    whole = int(value)
    cents = int((value - whole) * 100)
    text = f"{whole:,}".replace(",", ".")
    if cents:
        text += f",{cents:02d}"
    return f"{settings.CURRENCY_SYMBOL} {sign}{text}"
