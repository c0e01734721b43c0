from argparse import Namespace
from datetime import date

import pytest

import sheetvault.periods as periods
from sheetvault.models import Transaction

TODAY = date(2026, 2, 15)


def _tx(tx_id: str, day: str) -> Transaction:
    return Transaction(
        transaction_id=tx_id, date=day, type="Income", category="Sales", amount=1.0
    )


def test_filter_transactions_by_period_inclusive_bounds() -> None:
    """filter_transactions_by_period should keep transactions dated in [start, end]."""
    txs = [
        _tx("T1", "2025-01-01"),
        _tx("T2", "2025-02-01"),
        _tx("T3", "2025-03-10"),
        _tx("T4", "2025-04-01"),
        _tx("T5", "2025-05-01"),
        _tx("", "2025-03-01"),
        _tx("T6", "not a date"),
    ]
    p = periods.Period(start=date(2025, 2, 1), end=date(2025, 4, 1), label="Test period")

    filtered = periods.filter_transactions_by_period(txs, p)

    assert [t.transaction_id for t in filtered] == ["T2", "T3", "T4"]


def test_period_month_handles_leap_year() -> None:
    p = periods.period_month(2024, 2)
    assert (p.start, p.end) == (date(2024, 2, 1), date(2024, 2, 29))
    assert p.label == "February 2024"
    assert p.kind == "month"


@pytest.mark.parametrize(
    "month, start, end, label",
    [
        (1, date(2026, 1, 1), date(2026, 3, 31), "Q1 2026"),
        (5, date(2026, 4, 1), date(2026, 6, 30), "Q2 2026"),
        (12, date(2026, 10, 1), date(2026, 12, 31), "Q4 2026"),
    ],
)
def test_period_quarter(month, start, end, label) -> None:
    p = periods.period_quarter(2026, month)
    assert (p.start, p.end, p.label) == (start, end, label)


def test_invalid_month() -> None:
    with pytest.raises(ValueError):
        periods.period_month(2026, 13)
    with pytest.raises(ValueError):
        periods.period_quarter(2026, 0)


def test_previous_period_wraps_years() -> None:
    assert periods.previous_period(periods.period_month(2026, 1)) == periods.period_month(2025, 12)
    assert periods.previous_period(periods.period_quarter(2026, 2)) == periods.period_quarter(
        2025, 10
    )
    assert periods.previous_period(periods.period_quarter(2026, 8)) == periods.period_quarter(
        2026, 4
    )
    assert periods.previous_period(periods.period_year(2026)) == periods.period_year(2025)
    assert periods.previous_period(periods.period_custom(today=TODAY)) is None


def test_custom_period_defaults() -> None:
    p = periods.period_custom(today=TODAY)
    assert (p.start, p.end) == (date(2026, 1, 1), TODAY)
    assert p.kind == "custom"


def test_custom_period_rejects_reversed_bounds() -> None:
    with pytest.raises(ValueError):
        periods.period_custom("2026-03-01", "2026-02-01")


def test_determine_period_priority() -> None:
    args = Namespace(period="year", month=None, year=2025, from_date="2025-06-01", to_date=None)
    p = periods.determine_period_from_args(args, today=TODAY)
    assert (p.start, p.end, p.kind) == (date(2025, 6, 1), TODAY, "custom")

    args = Namespace(period="quarter", month=11, year=2025, from_date=None, to_date=None)
    assert periods.determine_period_from_args(args, today=TODAY).label == "Q4 2025"

    assert periods.determine_period_from_args(Namespace(), today=TODAY) == periods.period_month(
        2026, 2
    )
