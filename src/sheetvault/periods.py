# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period helpers for SheetVault.

This module defines a Period value object and helpers to derive
reporting periods (calendar month, quarter, year, custom range) and the
period that precedes them, used by the P&L statement.
"""

from calendar import monthrange
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional

from . import dates
from .dates import MONTHS
from .models import Transaction

PeriodKind = Literal["month", "quarter", "year", "custom"]


@dataclass(frozen=True)
class Period:
    """Represents a reporting period with a human-readable label."""

    start: date
    end: date
    label: str
    kind: PeriodKind = "custom"

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def _month_end(year: int, month: int) -> date:
    return date(year, month, monthrange(year, month)[1])


def period_month(year: int, month: int) -> Period:
    """Full calendar month (``month`` is 1..12)."""
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    return Period(
        start=date(year, month, 1),
        end=_month_end(year, month),
        label=f"{MONTHS[month - 1]} {year}",
        kind="month",
    )


def period_quarter(year: int, month: int) -> Period:
    """Calendar quarter containing ``month``."""
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    quarter = (month - 1) // 3
    first = quarter * 3 + 1
    return Period(
        start=date(year, first, 1),
        end=_month_end(year, first + 2),
        label=f"Q{quarter + 1} {year}",
        kind="quarter",
    )


def period_year(year: int) -> Period:
    return Period(
        start=date(year, 1, 1),
        end=date(year, 12, 31),
        label=f"Year {year}",
        kind="year",
    )


def period_custom(
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    today: Optional[date] = None,
) -> Period:
    """
    Custom period from ISO dates.

    A missing start defaults to 1 January of the current year, a missing
    end to today.

    Raises
    ------
    ValueError
        If a date is not ISO formatted or the end is before the start.
    """
    today = today or dates._today()
    start = date.fromisoformat(from_date) if from_date else date(today.year, 1, 1)
    end = date.fromisoformat(to_date) if to_date else today

    if end < start:
        raise ValueError("Custom period end date cannot be before start date.")

    return Period(start=start, end=end, label=f"Custom period ({start} → {end})")


def previous_period(period: Period) -> Optional[Period]:
    """
    The period of the same kind right before ``period``.

    Custom periods have no comparison period and return None.
    """
    if period.kind == "month":
        if period.start.month == 1:
            return period_month(period.start.year - 1, 12)
        return period_month(period.start.year, period.start.month - 1)
    if period.kind == "quarter":
        if period.start.month == 1:
            return period_quarter(period.start.year - 1, 10)
        return period_quarter(period.start.year, period.start.month - 3)
    if period.kind == "year":
        return period_year(period.start.year - 1)
    return None


def determine_period_from_args(args, today: Optional[date] = None) -> Period:
    """
    Determine the reporting period to use based on CLI args.

    Priority (highest to lowest):

        1. args.from_date / args.to_date (custom period)
        2. args.period (month, quarter, year) with args.month / args.year
        3. current month by default
    """
    from_raw: Optional[str] = getattr(args, "from_date", None)
    to_raw: Optional[str] = getattr(args, "to_date", None)
    if from_raw or to_raw:
        return period_custom(from_raw, to_raw, today)

    today = today or dates._today()
    year = getattr(args, "year", None) or today.year
    month = getattr(args, "month", None) or today.month
    kind = getattr(args, "period", None) or "month"

    if kind == "month":
        return period_month(year, month)
    if kind == "quarter":
        return period_quarter(year, month)
    if kind == "year":
        return period_year(year)
    raise ValueError(f"Unknown period: {kind!r}")


def filter_transactions_by_period(
    transactions: Iterable[Transaction],
    period: Period,
) -> list[Transaction]:
    """
    Keep the transactions dated within ``period`` (bounds inclusive).

    Placeholder rows (empty identifier) and rows whose date cannot be
    parsed are dropped.
    """
    kept: list[Transaction] = []
    for t in transactions:
        if not t.transaction_id:
            continue
        parsed = t.parsed_date
        if parsed is not None and period.contains(parsed.date()):
            kept.append(t)
    return kept
