# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Reporting helpers: P&L statement, CSV export and display formatting.

- ``pnl_statement`` aggregates the transactions of a ``Period`` and compares
  them with the previous period of the same kind.
- ``records_to_csv`` turns any homogeneous list of flat records
  (dataclasses or dicts) into CSV text, header taken from the first record.
- ``REPORTS`` lists the export presets used by the CLI ``export`` command.
- ``format_currency`` / ``format_percentage`` render amounts for display.
"""

import dataclasses
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional

import pandas as pd

from .analytics import CategoryBreakdown, category_breakdown
from .models import EXPENSE, INCOME, Transaction
from .periods import Period, filter_transactions_by_period, previous_period
from .repository import VaultSnapshot
from .schema import format_number, record_to_dict, schema_for

DEFAULT_CURRENCY_SYMBOL = "₹"


# ---------------------------------------------------------------------------
# P&L statement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PeriodTotals:
    period: Period
    revenue: float
    expenses: float

    @property
    def profit(self) -> float:
        return self.revenue - self.expenses


@dataclass(frozen=True)
class PnLStatement:
    """
    Profit and loss for one period.

    ``previous`` is None for custom periods. ``revenue_change`` and
    ``expense_change`` are percent changes versus the previous period, 0
    when the previous value is 0 or there is no previous period.
    """

    current: PeriodTotals
    revenue_breakdown: CategoryBreakdown
    expense_breakdown: CategoryBreakdown
    previous: Optional[PeriodTotals] = None

    @property
    def period(self) -> Period:
        return self.current.period

    @property
    def total_revenue(self) -> float:
        return self.current.revenue

    @property
    def total_expenses(self) -> float:
        return self.current.expenses

    @property
    def gross_profit(self) -> float:
        return self.current.profit

    @property
    def profit_margin(self) -> float:
        if self.total_revenue > 0:
            return self.gross_profit / self.total_revenue * 100
        return 0.0

    @property
    def revenue_change(self) -> float:
        if self.previous is None or self.previous.revenue <= 0:
            return 0.0
        return (self.total_revenue - self.previous.revenue) / self.previous.revenue * 100

    @property
    def expense_change(self) -> float:
        if self.previous is None or self.previous.expenses <= 0:
            return 0.0
        return (self.total_expenses - self.previous.expenses) / self.previous.expenses * 100

    def to_frame(self) -> pd.DataFrame:
        """Summary table: one row per line item, current vs previous period."""
        previous = self.previous
        return pd.DataFrame(
            {
                "line": ["Revenue", "Expenses", "Gross profit"],
                "current": [self.total_revenue, self.total_expenses, self.gross_profit],
                "previous": [
                    previous.revenue if previous else float("nan"),
                    previous.expenses if previous else float("nan"),
                    previous.profit if previous else float("nan"),
                ],
            }
        )


def _totals(transactions: Sequence[Transaction], period: Period) -> PeriodTotals:
    kept = filter_transactions_by_period(transactions, period)
    return PeriodTotals(
        period=period,
        revenue=sum(t.amount for t in kept if t.type == INCOME),
        expenses=sum(t.amount for t in kept if t.type == EXPENSE),
    )


def pnl_statement(transactions: Sequence[Transaction], period: Period) -> PnLStatement:
    """Build the P&L statement of ``period``."""
    kept = filter_transactions_by_period(transactions, period)
    prev_period = previous_period(period)

    return PnLStatement(
        current=_totals(transactions, period),
        revenue_breakdown=category_breakdown(kept, INCOME),
        expense_breakdown=category_breakdown(kept, EXPENSE),
        previous=_totals(transactions, prev_period) if prev_period else None,
    )


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------


def _as_dict(record: Any) -> Mapping[str, Any]:
    if isinstance(record, Mapping):
        return record
    if dataclasses.is_dataclass(record):
        try:
            return record_to_dict(schema_for(record), record)
        except TypeError:
            return dataclasses.asdict(record)
    raise TypeError(f"Cannot export record of type {type(record).__name__}")


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def records_to_csv(records: Sequence[Any]) -> str:
    """
    CSV text for a homogeneous list of flat records.

    The header row is taken from the keys of the first record. Fields
    containing a comma (or a quote / newline) are quoted. An empty list
    yields an empty string.
    """
    if not records:
        return ""

    rows = [_as_dict(r) for r in records]
    headers = list(rows[0].keys())
    df = pd.DataFrame(
        [[_cell(row.get(h)) for h in headers] for row in rows],
        columns=headers,
        dtype=str,
    )
    text = df.to_csv(index=False, lineterminator="\n")
    return text[:-1] if text.endswith("\n") else text


@dataclass(frozen=True)
class ReportPreset:
    """A named CSV export."""

    name: str
    title: str
    filename: str
    build: Callable[[VaultSnapshot], list]


def _category_spending(snapshot: VaultSnapshot) -> list[dict[str, Any]]:
    breakdown = category_breakdown(snapshot.transactions, EXPENSE)
    total = sum(breakdown.values)
    return [
        {
            "Category": label,
            "Total_Amount": value,
            "Percentage": format_percentage(value / total * 100 if total else 0.0),
        }
        for label, value in zip(breakdown.labels, breakdown.values)
    ]


REPORTS: dict[str, ReportPreset] = {
    preset.name: preset
    for preset in (
        ReportPreset(
            "ledger",
            "Full Transaction Ledger",
            "transaction_ledger",
            lambda s: [t for t in s.transactions if t.transaction_id],
        ),
        ReportPreset(
            "revenue",
            "Revenue Report",
            "revenue_report",
            lambda s: [t for t in s.transactions if t.type == INCOME and t.transaction_id],
        ),
        ReportPreset(
            "expenses",
            "Expense Report",
            "expense_report",
            lambda s: [t for t in s.transactions if t.type == EXPENSE and t.transaction_id],
        ),
        ReportPreset(
            "partners",
            "Partner Holdings Summary",
            "partner_holdings",
            lambda s: list(s.partners),
        ),
        ReportPreset(
            "budgets",
            "Budget Utilization Report",
            "budget_report",
            lambda s: [b for b in s.budgets if b.category],
        ),
        ReportPreset(
            "transfers",
            "Inter-Partner Transfer Log",
            "transfer_log",
            lambda s: [t for t in s.transfers if t.transfer_id],
        ),
        ReportPreset(
            "category-spending",
            "Expense Distribution by Category",
            "category_spending",
            _category_spending,
        ),
    )
}


def export_report(name: str, snapshot: VaultSnapshot) -> str:
    """
    CSV text of the preset ``name``.

    Raises
    ------
    KeyError
        If ``name`` is not a known preset.
    """
    try:
        preset = REPORTS[name]
    except KeyError:
        raise KeyError(
            f"Unknown report {name!r}. Available: {', '.join(sorted(REPORTS))}"
        ) from None
    return records_to_csv(preset.build(snapshot))


def records_to_frame(records: Sequence[Any]) -> pd.DataFrame:
    """Tabular view of records for ``DataFrame.to_string`` display."""
    return pd.DataFrame([dict(_as_dict(r)) for r in records])


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _indian_grouping(integer_part: str) -> str:
    """'1234567' -> '12,34,567' (last three digits, then pairs)."""
    if len(integer_part) <= 3:
        return integer_part
    head, tail = integer_part[:-3], integer_part[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_currency(
    amount: float,
    compact: bool = False,
    symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> str:
    """
    Format an amount for display.

    Examples: ``₹12,34,567.50``; compact ``₹1.5Cr``, ``₹2.5L``, ``₹1.2K``.
    """
    if compact:
        if abs(amount) >= 10_000_000:
            return f"{symbol}{amount / 10_000_000:.1f}Cr"
        if abs(amount) >= 100_000:
            return f"{symbol}{amount / 100_000:.1f}L"
        if abs(amount) >= 1_000:
            return f"{symbol}{amount / 1_000:.1f}K"

    sign = "-" if amount < 0 else ""
    integer_part, decimals = f"{abs(amount):.2f}".split(".")
    return f"{symbol}{sign}{_indian_grouping(integer_part)}.{decimals}"


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"
