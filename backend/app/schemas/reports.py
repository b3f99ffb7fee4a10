"""Pydantic response schemas for sales reports and the dashboard."""
from __future__ import annotations

from pydantic import BaseModel


# ── Sales report ─────────────────────────────────────────────────────────────

class SalesReportRow(BaseModel):
    id: str
    timestamp: str
    outlet_id: str
    outlet_name: str
    kasir_id: str
    kasir_name: str
    payment_method: str
    total_amount: str


class SalesReportResponse(BaseModel):
    date_from: str | None
    date_to: str | None
    outlet_id: str
    kasir_id: str
    payment_method: str
    count: int
    total_amount_sum: str
    transactions: list[SalesReportRow]


class ExportJobResponse(BaseModel):
    task_id: str
    status: str
    url: str | None = None
    detail: str | None = None


# ── Dashboard ────────────────────────────────────────────────────────────────

class RecentSale(BaseModel):
    id: str
    timestamp: str
    outlet_name: str
    kasir_name: str
    payment_method: str
    total_amount: str


class DashboardResponse(BaseModel):
    month_start: str
    revenue: str
    transaction_count: int
    active_kasirs: int
    average_sale: str
    recent_sales: list[RecentSale]
