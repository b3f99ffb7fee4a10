"""Pure filtering and aggregation over in-memory transactions."""
from __future__ import annotations

import itertools
import uuid
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from backend.app.models.pos import PaymentMethod
from backend.app.models.user import RoleEnum
from backend.app.services.access import SessionContext
from backend.app.services.reports import (
    ALL,
    ReportFilter,
    aggregate,
    apply_filters,
    effective_filter,
)

JKT = ZoneInfo("Asia/Jakarta")
OUTLET_A = uuid.uuid4()
OUTLET_B = uuid.uuid4()
KASIR_1 = uuid.uuid4()
KASIR_2 = uuid.uuid4()


def _txn(ts: datetime, outlet=OUTLET_A, kasir=KASIR_1, method=PaymentMethod.CASH, amount="10000"):
    return SimpleNamespace(
        id=uuid.uuid4(),
        timestamp=ts,
        outlet_id=outlet,
        kasir_id=kasir,
        payment_method=method,
        total_amount=Decimal(amount),
        outlet_name=None,
        kasir_name=None,
    )


def _session(role: RoleEnum, outlet_id=None, assigned=()) -> SessionContext:
    return SessionContext(
        user_id=uuid.uuid4(),
        name="Tester",
        role=role,
        merchant_id=uuid.uuid4(),
        outlet_id=outlet_id,
        assigned_outlet_ids=frozenset(assigned),
    )


ADMIN = _session(RoleEnum.ADMIN)


@pytest.fixture()
def transactions() -> list[SimpleNamespace]:
    return [
        _txn(datetime(2026, 1, 1, 9, 0, tzinfo=JKT), OUTLET_A, KASIR_1, PaymentMethod.CASH, "15000"),
        _txn(datetime(2026, 1, 2, 12, 0, tzinfo=JKT), OUTLET_B, KASIR_2, PaymentMethod.QRIS, "22000"),
        _txn(datetime(2026, 1, 3, 23, 59, tzinfo=JKT), OUTLET_A, KASIR_2, PaymentMethod.QRIS, "8000"),
        _txn(datetime(2026, 1, 5, 10, 0, tzinfo=JKT), OUTLET_B, KASIR_1, PaymentMethod.CASH, "40000"),
    ]


def test_date_range_is_inclusive_of_whole_end_day() -> None:
    jan1 = _txn(datetime(2026, 1, 1, tzinfo=JKT), outlet=OUTLET_A, amount="12000")
    jan5 = _txn(datetime(2026, 1, 5, tzinfo=JKT), outlet=OUTLET_B, amount="9000")
    flt = ReportFilter(date_from=date(2026, 1, 1), date_to=date(2026, 1, 3))

    result = apply_filters([jan1, jan5], flt, ADMIN)

    assert result == [jan1]
    agg = aggregate(result)
    assert agg.count == 1
    assert agg.total_amount_sum == Decimal("12000")


def test_day_boundaries_follow_report_timezone() -> None:
    just_before = _txn(datetime(2025, 12, 31, 23, 59, 59, tzinfo=JKT))
    midnight = _txn(datetime(2026, 1, 1, 0, 0, tzinfo=JKT))
    last_moment = _txn(datetime(2026, 1, 3, 23, 59, 59, 999999, tzinfo=JKT))
    next_day = _txn(datetime(2026, 1, 4, 0, 0, tzinfo=JKT))
    flt = ReportFilter(date_from=date(2026, 1, 1), date_to=date(2026, 1, 3))

    result = apply_filters([just_before, midnight, last_moment, next_day], flt, ADMIN)

    assert result == [midnight, last_moment]


def test_naive_timestamps_are_read_as_utc() -> None:
    # 2026-01-03 17:30 UTC is 2026-01-04 00:30 in Jakarta
    late = _txn(datetime(2026, 1, 3, 17, 30))
    flt = ReportFilter(date_from=date(2026, 1, 1), date_to=date(2026, 1, 3))
    assert apply_filters([late], flt, ADMIN) == []


def test_all_sentinel_disables_each_filter(transactions) -> None:
    flt = ReportFilter(outlet_id=ALL, kasir_id="ALL", payment_method=ALL)
    assert apply_filters(transactions, flt, ADMIN) == transactions


def test_outlet_kasir_and_method_filters(transactions) -> None:
    assert apply_filters(transactions, ReportFilter(outlet_id=str(OUTLET_B)), ADMIN) == [
        transactions[1], transactions[3],
    ]
    assert apply_filters(transactions, ReportFilter(kasir_id=str(KASIR_2)), ADMIN) == [
        transactions[1], transactions[2],
    ]
    assert apply_filters(transactions, ReportFilter(payment_method="qris"), ADMIN) == [
        transactions[1], transactions[2],
    ]


def test_filters_compose_in_any_order(transactions) -> None:
    full = ReportFilter(
        date_from=date(2026, 1, 1),
        date_to=date(2026, 1, 4),
        outlet_id=str(OUTLET_A),
        kasir_id=str(KASIR_2),
        payment_method="qris",
    )
    expected = apply_filters(transactions, full, ADMIN)
    assert expected == [transactions[2]]

    steps = [
        ReportFilter(date_from=full.date_from, date_to=full.date_to),
        ReportFilter(outlet_id=full.outlet_id),
        ReportFilter(kasir_id=full.kasir_id),
        ReportFilter(payment_method=full.payment_method),
    ]
    for order in itertools.permutations(steps):
        current = list(transactions)
        for step in order:
            current = apply_filters(current, step, ADMIN)
        assert current == expected


def test_kasir_outlet_is_forced_to_own_outlet(transactions) -> None:
    kasir = _session(RoleEnum.KASIR, outlet_id=OUTLET_A, assigned=[OUTLET_A])
    own = [transactions[0], transactions[2]]
    for requested in (ALL, str(OUTLET_A), str(OUTLET_B)):
        assert apply_filters(transactions, ReportFilter(outlet_id=requested), kasir) == own


def test_single_outlet_kasir_without_selection_is_bound(transactions) -> None:
    kasir = _session(RoleEnum.KASIR, assigned=[OUTLET_B])
    result = apply_filters(transactions, ReportFilter(outlet_id=str(OUTLET_A)), kasir)
    assert result == [transactions[1], transactions[3]]


def test_multi_outlet_kasir_without_selection_sees_nothing(transactions) -> None:
    kasir = _session(RoleEnum.KASIR, assigned=[OUTLET_A, OUTLET_B])
    assert apply_filters(transactions, ReportFilter(outlet_id=str(OUTLET_A)), kasir) == []


def test_effective_filter_rewrites_kasir_choices() -> None:
    kasir = _session(RoleEnum.KASIR, outlet_id=OUTLET_A, assigned=[OUTLET_A])
    flt = ReportFilter(outlet_id=str(OUTLET_B), kasir_id=str(KASIR_2), payment_method="qris")

    forced = effective_filter(flt, kasir)

    assert forced.outlet_id == str(OUTLET_A)
    assert forced.kasir_id == ALL
    assert forced.payment_method == "qris"
    # Admins keep what they asked for
    assert effective_filter(flt, ADMIN) is flt


def test_kasir_filter_ignored_for_kasir_role(transactions) -> None:
    kasir = _session(RoleEnum.KASIR, outlet_id=OUTLET_A, assigned=[OUTLET_A])
    result = apply_filters(transactions, ReportFilter(kasir_id=str(KASIR_1)), kasir)
    assert result == [transactions[0], transactions[2]]


def test_filtering_does_not_mutate_input(transactions) -> None:
    before = list(transactions)
    apply_filters(transactions, ReportFilter(outlet_id=str(OUTLET_A)), ADMIN)
    assert transactions == before


def test_aggregate_empty() -> None:
    agg = aggregate([])
    assert agg.count == 0
    assert agg.total_amount_sum == Decimal("0")


def test_aggregate_sums_totals(transactions) -> None:
    agg = aggregate(transactions)
    assert agg.count == 4
    assert agg.total_amount_sum == Decimal("85000")


def test_filter_is_immutable_value() -> None:
    flt = ReportFilter(outlet_id=str(OUTLET_A))
    changed = replace(flt, payment_method="cash")
    assert flt.payment_method == ALL
    assert changed.outlet_id == str(OUTLET_A)
