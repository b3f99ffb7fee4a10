"""Month-to-date sales summary for the landing page."""
from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from backend.app.services.access import SessionContext
from backend.app.services.reports import (
    ReportFilter,
    aggregate,
    apply_filters,
    fetch_transactions,
    report_timezone,
)

ZERO = Decimal("0")
RECENT_SALES = 5


@dataclass(frozen=True)
class DashboardStats:
    month_start: date
    revenue: Decimal = ZERO
    transaction_count: int = 0
    active_kasirs: int = 0
    average_sale: Decimal = ZERO
    recent_sales: list[Any] = field(default_factory=list)


def month_bounds(today: date) -> tuple[date, date]:
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def get_dashboard_stats(
    db: Session, session: SessionContext, now: datetime | None = None
) -> DashboardStats:
    """Revenue, count, distinct selling kasirs and latest sales of this month.

    Uses the same role restriction as the sales report, so a kasir only
    sees the outlet they are working at.
    """
    today = (now or datetime.now(report_timezone())).astimezone(report_timezone()).date()
    first, last = month_bounds(today)

    snapshot = fetch_transactions(db, session)
    month = apply_filters(snapshot, ReportFilter(date_from=first, date_to=last), session)
    agg = aggregate(month)

    average = agg.total_amount_sum / agg.count if agg.count else ZERO
    return DashboardStats(
        month_start=first,
        revenue=agg.total_amount_sum,
        transaction_count=agg.count,
        active_kasirs=len({str(t.kasir_id) for t in month}),
        average_sale=average,
        # fetch_transactions orders newest first
        recent_sales=month[:RECENT_SALES],
    )
