"""Service layer for sales reports.

Filtering and aggregation are pure functions over in-memory transaction
lists. The database is only touched by :func:`fetch_transactions` and the name
lookups; :class:`SalesReportView` wires them together as an explicit
fetch -> refilter -> reaggregate pipeline.
"""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.core.exceptions import FetchError, NoDataError
from backend.app.models.outlet import Outlet
from backend.app.models.pos import SalesTransaction
from backend.app.models.user import RoleEnum, User
from backend.app.services.access import SessionContext
from backend.app.services.export_i18n import format_date, t

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ALL = "all"


# ── Types ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ReportFilter:
    date_from: date | None = None
    date_to: date | None = None
    outlet_id: str = ALL
    kasir_id: str = ALL
    payment_method: str = ALL


@dataclass(frozen=True)
class ReportAggregate:
    count: int = 0
    total_amount_sum: Decimal = ZERO


@dataclass(frozen=True)
class ReportResult:
    transactions: list[Any] = field(default_factory=list)
    aggregate: ReportAggregate = field(default_factory=ReportAggregate)

    @property
    def count(self) -> int:
        return self.aggregate.count

    @property
    def total_amount_sum(self) -> Decimal:
        return self.aggregate.total_amount_sum


@dataclass(frozen=True)
class ReportRow:
    index: int
    date: str
    outlet: str
    kasir: str
    payment_method: str
    amount: Decimal


@dataclass(frozen=True)
class ReportDocument:
    title: str
    filter_description: str
    generated_at: str
    rows: list[ReportRow]
    count: int
    total_amount_sum: Decimal
    lang: str = "en"

    @property
    def is_empty(self) -> bool:
        return not self.rows


# ── Helpers ──────────────────────────────────────────────────────────────────


def report_timezone() -> ZoneInfo:
    return ZoneInfo(settings.REPORT_TIMEZONE)


def start_of_day(d: date, tz: ZoneInfo | None = None) -> datetime:
    return datetime.combine(d, time.min, tzinfo=tz or report_timezone())


def end_of_day(d: date, tz: ZoneInfo | None = None) -> datetime:
    """23:59:59.999999 of *d* in the report timezone."""
    return datetime.combine(d, time.max, tzinfo=tz or report_timezone())


def _aware(ts: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _method_value(method: Any) -> str:
    return str(getattr(method, "value", method)).lower()


def _is_all(value: Any) -> bool:
    return value is None or str(value).lower() == ALL


# ── Filtering & aggregation ──────────────────────────────────────────────────


def effective_filter(flt: ReportFilter, session: SessionContext) -> ReportFilter:
    """*flt* as the session's role is allowed to run it.

    A session bound to a single outlet always reports on that outlet, so the
    requested outlet is replaced by it. The kasir choice falls back to "all"
    for roles that may not filter by kasir.
    """
    policy = session.policy
    allowed = policy.allowed_outlets(session)
    changes: dict[str, str] = {}
    if allowed is not None and len(allowed) == 1:
        changes["outlet_id"] = str(next(iter(allowed)))
    if not policy.can_filter_by_kasir(session) and not _is_all(flt.kasir_id):
        changes["kasir_id"] = ALL
    return replace(flt, **changes) if changes else flt


def apply_filters(
    transactions: Iterable[Any],
    flt: ReportFilter,
    session: SessionContext,
) -> list[Any]:
    """Return the transactions matching *flt*, in input order.

    *flt* is first passed through :func:`effective_filter`; a kasir gets the
    sales of their own outlet whatever outlet was asked for. A kasir with no
    usable outlet sees nothing.
    """
    flt = effective_filter(flt, session)
    allowed = session.policy.allowed_outlets(session)
    allowed_ids = {str(o) for o in allowed} if allowed is not None else None

    tz = report_timezone()
    lower = start_of_day(flt.date_from, tz) if flt.date_from else None
    upper = end_of_day(flt.date_to, tz) if flt.date_to else None

    outlet_id = None if _is_all(flt.outlet_id) else str(flt.outlet_id)
    kasir_id = None if _is_all(flt.kasir_id) else str(flt.kasir_id)
    method = None if _is_all(flt.payment_method) else _method_value(flt.payment_method)

    result = []
    for txn in transactions:
        if allowed_ids is not None and str(txn.outlet_id) not in allowed_ids:
            continue
        if lower is not None or upper is not None:
            ts = _aware(txn.timestamp)
            if lower is not None and ts < lower:
                continue
            if upper is not None and ts > upper:
                continue
        if outlet_id is not None and str(txn.outlet_id) != outlet_id:
            continue
        if kasir_id is not None and str(txn.kasir_id) != kasir_id:
            continue
        if method is not None and _method_value(txn.payment_method) != method:
            continue
        result.append(txn)
    return result


def aggregate(transactions: Sequence[Any]) -> ReportAggregate:
    total = sum((Decimal(str(txn.total_amount)) for txn in transactions), ZERO)
    return ReportAggregate(count=len(transactions), total_amount_sum=total)


def describe_filter(
    flt: ReportFilter,
    outlet_names: Mapping[str, str] | None = None,
    kasir_names: Mapping[str, str] | None = None,
    lang: str = "en",
) -> str:
    outlet_names = outlet_names or {}
    kasir_names = kasir_names or {}

    if flt.date_from and flt.date_to:
        period = (
            f"{format_date(flt.date_from, lang, with_time=False)} - "
            f"{format_date(flt.date_to, lang, with_time=False)}"
        )
    elif flt.date_from:
        period = f">= {format_date(flt.date_from, lang, with_time=False)}"
    elif flt.date_to:
        period = f"<= {format_date(flt.date_to, lang, with_time=False)}"
    else:
        period = t(lang, "all_dates")

    def _name(value: str, names: Mapping[str, str]) -> str:
        if _is_all(value):
            return t(lang, "all")
        return names.get(str(value), t(lang, "na"))

    method = t(lang, "all") if _is_all(flt.payment_method) else t(lang, _method_value(flt.payment_method))
    return " | ".join(
        [
            f"{t(lang, 'period')}: {period}",
            f"{t(lang, 'outlet')}: {_name(flt.outlet_id, outlet_names)}",
            f"{t(lang, 'kasir')}: {_name(flt.kasir_id, kasir_names)}",
            f"{t(lang, 'payment_method')}: {method}",
        ]
    )


def build_report_document(
    transactions: Sequence[Any],
    agg: ReportAggregate,
    filter_description: str,
    outlet_names: Mapping[str, str],
    kasir_names: Mapping[str, str],
    lang: str = "en",
    generated_at: datetime | None = None,
) -> ReportDocument:
    """Project filtered transactions into printable rows.

    Names resolve through the lookups first, then the names stored on the
    transaction, then ``N/A``. Inputs are not modified.
    """
    tz = report_timezone()
    na = t(lang, "na")
    rows = []
    for index, txn in enumerate(transactions, start=1):
        outlet = outlet_names.get(str(txn.outlet_id)) or txn.outlet_name or na
        kasir = kasir_names.get(str(txn.kasir_id)) or txn.kasir_name or na
        rows.append(
            ReportRow(
                index=index,
                date=format_date(_aware(txn.timestamp).astimezone(tz), lang),
                outlet=outlet,
                kasir=kasir,
                payment_method=t(lang, _method_value(txn.payment_method)),
                amount=Decimal(str(txn.total_amount)),
            )
        )
    generated = generated_at or datetime.now(timezone.utc)
    return ReportDocument(
        title=t(lang, "sales_report"),
        filter_description=filter_description,
        generated_at=format_date(_aware(generated).astimezone(tz), lang),
        rows=rows,
        count=agg.count,
        total_amount_sum=agg.total_amount_sum,
        lang=lang,
    )


# ── Database access ──────────────────────────────────────────────────────────


def fetch_transactions(db: Session, session: SessionContext) -> list[SalesTransaction]:
    """All transactions of the session's merchant, newest first."""
    try:
        query = db.query(SalesTransaction)
        if session.role != RoleEnum.SUPERADMIN:
            query = query.filter(SalesTransaction.merchant_id == session.merchant_id)
        return query.order_by(SalesTransaction.timestamp.desc()).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to fetch transactions for merchant %s", session.merchant_id)
        raise FetchError("Could not load transactions") from exc


def load_name_lookups(
    db: Session, session: SessionContext
) -> tuple[dict[str, str], dict[str, str]]:
    """``(outlet_names, kasir_names)`` keyed by stringified id."""
    try:
        outlets = db.query(Outlet.id, Outlet.name)
        kasirs = db.query(User.id, User.name).filter(User.role == RoleEnum.KASIR)
        if session.role != RoleEnum.SUPERADMIN:
            outlets = outlets.filter(Outlet.merchant_id == session.merchant_id)
            kasirs = kasirs.filter(User.merchant_id == session.merchant_id)
        outlet_names = {str(r.id): r.name for r in outlets.all()}
        kasir_names = {str(r.id): r.name for r in kasirs.all()}
    except SQLAlchemyError as exc:
        logger.exception("Failed to load report name lookups")
        raise FetchError("Could not load outlet and kasir names") from exc
    return outlet_names, kasir_names


# ── Pipeline ─────────────────────────────────────────────────────────────────


class SalesReportView:
    """Holds the latest transaction snapshot and its filtered result.

    Every fetch is stamped with a sequence number when it starts; a snapshot
    older than the one already applied is dropped, so a slow fetch can never
    overwrite newer data.
    """

    def __init__(self, session: SessionContext, flt: ReportFilter | None = None) -> None:
        self.session = session
        self.filter = flt or ReportFilter()
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)
        self._applied_version = 0
        self._snapshot: list[Any] = []
        self.result = ReportResult()

    @property
    def snapshot(self) -> list[Any]:
        return list(self._snapshot)

    def next_version(self) -> int:
        with self._lock:
            return next(self._sequence)

    def on_data_changed(self, snapshot: Iterable[Any], version: int) -> bool:
        """Apply a fetched snapshot. Returns False when it was stale."""
        with self._lock:
            if version < self._applied_version:
                logger.debug("Dropping stale report snapshot %s", version)
                return False
            self._applied_version = version
            self._snapshot = list(snapshot)
            self._refilter()
            return True

    def on_fetch_failed(self, version: int) -> None:
        with self._lock:
            if version < self._applied_version:
                return
            self._applied_version = version
            self._snapshot = []
            self._refilter()

    def set_filter(self, flt: ReportFilter) -> ReportResult:
        with self._lock:
            self.filter = flt
            self._refilter()
            return self.result

    def refresh(self, db: Session) -> ReportResult:
        version = self.next_version()
        try:
            rows = fetch_transactions(db, self.session)
        except FetchError:
            self.on_fetch_failed(version)
            raise
        self.on_data_changed(rows, version)
        return self.result

    def _refilter(self) -> None:
        filtered = apply_filters(self._snapshot, self.filter, self.session)
        self.result = ReportResult(transactions=filtered, aggregate=aggregate(filtered))


def run_sales_report(db: Session, session: SessionContext, flt: ReportFilter) -> ReportResult:
    view = SalesReportView(session, flt)
    return view.refresh(db)


def build_sales_report_document(
    db: Session,
    session: SessionContext,
    flt: ReportFilter,
    lang: str = "en",
) -> ReportDocument:
    """Run the report and project it for export. Raises NoDataError when empty."""
    flt = effective_filter(flt, session)
    result = run_sales_report(db, session, flt)
    if result.count == 0:
        raise NoDataError(t(lang, "no_data"))
    outlet_names, kasir_names = load_name_lookups(db, session)
    return build_report_document(
        result.transactions,
        result.aggregate,
        describe_filter(flt, outlet_names, kasir_names, lang),
        outlet_names,
        kasir_names,
        lang=lang,
    )
