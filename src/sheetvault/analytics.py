# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Aggregation engine: pure derivations over partner and transaction lists.

Nothing in this module performs I/O. Every function that depends on the
current date takes an optional ``today`` / ``now`` argument and falls back
to ``sheetvault.dates._today`` / ``_now`` (patchable in tests).

Conventions kept on purpose because the health score thresholds depend on
them:
- growth is 0 when the previous month's value is 0,
- operating margin is 0 when this month's revenue is 0 (scored as "not
  positive"),
- burn rate always divides the trailing 6-month expense total by 6,
- runway is ``INFINITE_RUNWAY`` when the burn rate is 0.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

import pandas as pd

from . import dates
from .dates import MonthBucket, last_n_months, month_bucket, months_ago, shift_month
from .models import (
    DEFAULT_SETTINGS,
    EXPENSE,
    INCOME,
    Budget,
    Partner,
    Setting,
    Transaction,
    TransactionType,
)

BURN_RATE_MONTHS = 6
INFINITE_RUNWAY = 999.0
LOW_BALANCE_SETTING = "Low_Balance_Threshold"


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def total_cash(partners: Iterable[Partner]) -> float:
    return sum(p.balance for p in partners)


def sum_in_month(
    transactions: Iterable[Transaction],
    tx_type: TransactionType,
    bucket: MonthBucket,
) -> float:
    """Sum of ``tx_type`` amounts whose date falls in ``bucket``."""
    return sum(
        t.amount
        for t in transactions
        if t.type == tx_type and bucket.contains(t.parsed_date)
    )


def trailing_burn_rate(
    transactions: Iterable[Transaction],
    now: Optional[datetime] = None,
) -> float:
    """
    Average monthly expenses over the trailing 6 calendar months.

    Every expense dated on or after ``now - 6 months`` is counted (no upper
    bound) and the total is divided by 6, whatever the number of months
    that actually hold data.
    """
    cutoff = months_ago(BURN_RATE_MONTHS, now)
    recent = 0.0
    for t in transactions:
        if t.type != EXPENSE:
            continue
        parsed = t.parsed_date
        if parsed is not None and parsed >= cutoff:
            recent += t.amount
    return recent / BURN_RATE_MONTHS


def _growth(current: float, previous: float) -> float:
    if previous > 0:
        return (current - previous) / previous * 100
    return 0.0


# ---------------------------------------------------------------------------
# Dashboard metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DashboardMetrics:
    total_cash_available: float
    this_month_revenue: float
    this_month_expenses: float
    this_month_profit_loss: float
    burn_rate: float


def dashboard_metrics(
    partners: Sequence[Partner],
    transactions: Sequence[Transaction],
    now: Optional[datetime] = None,
) -> DashboardMetrics:
    """Headline figures for the current calendar month."""
    now = now or dates._now()
    current = month_bucket(now)
    revenue = sum_in_month(transactions, INCOME, current)
    expenses = sum_in_month(transactions, EXPENSE, current)

    return DashboardMetrics(
        total_cash_available=total_cash(partners),
        this_month_revenue=revenue,
        this_month_expenses=expenses,
        this_month_profit_loss=revenue - expenses,
        burn_rate=trailing_burn_rate(transactions, now),
    )


# ---------------------------------------------------------------------------
# Monthly series
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonthlySeries:
    """Parallel per-month arrays, oldest month first."""

    labels: list[str]
    revenue: list[float]
    expenses: list[float]
    profit: list[float]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "month": self.labels,
                "revenue": self.revenue,
                "expenses": self.expenses,
                "profit": self.profit,
            }
        )


def monthly_series(
    transactions: Sequence[Transaction],
    months: int = 6,
    today: Optional[date] = None,
) -> MonthlySeries:
    """
    Revenue, expenses and profit for the ``months`` most recent calendar
    months (current month included). Empty months yield 0.

    Raises
    ------
    ValueError
        If ``months`` is lower than 1.
    """
    if months < 1:
        raise ValueError("months must be at least 1")

    labels: list[str] = []
    revenue: list[float] = []
    expenses: list[float] = []
    profit: list[float] = []

    for bucket in last_n_months(months, today):
        rev = sum_in_month(transactions, INCOME, bucket)
        exp = sum_in_month(transactions, EXPENSE, bucket)
        labels.append(bucket.label)
        revenue.append(rev)
        expenses.append(exp)
        profit.append(rev - exp)

    return MonthlySeries(labels=labels, revenue=revenue, expenses=expenses, profit=profit)


# ---------------------------------------------------------------------------
# Category breakdown
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CategoryBreakdown:
    labels: list[str]
    values: list[float]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"category": self.labels, "amount": self.values})


def category_breakdown(
    transactions: Sequence[Transaction],
    tx_type: TransactionType,
) -> CategoryBreakdown:
    """
    Total amount per category for ``tx_type``, largest first.

    Ties keep the order in which the categories first appear.
    """
    rows = [(t.category, t.amount) for t in transactions if t.type == tx_type]
    if not rows:
        return CategoryBreakdown(labels=[], values=[])

    df = pd.DataFrame(rows, columns=["category", "amount"])
    totals = (
        df.groupby("category", sort=False)["amount"]
        .sum()
        .sort_values(ascending=False, kind="stable")
    )
    return CategoryBreakdown(
        labels=[str(c) for c in totals.index],
        values=[float(v) for v in totals.values],
    )


# ---------------------------------------------------------------------------
# Financial health
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FinancialHealth:
    """
    Composite health indicator.

    Attributes
    ----------
    score:
        0..100, starting at 50.
    operating_margin:
        This month's profit / revenue, in percent (0 without revenue).
    burn_rate:
        Trailing 6-month average monthly expenses.
    runway:
        Months of cash at the current burn rate, ``INFINITE_RUNWAY`` when
        nothing is being spent.
    revenue_growth, expense_growth:
        Percent change versus the previous calendar month.
    """

    score: float
    operating_margin: float
    burn_rate: float
    runway: float
    revenue_growth: float
    expense_growth: float

    @property
    def runway_is_infinite(self) -> bool:
        return self.runway >= INFINITE_RUNWAY


def health_score(operating_margin: float, runway: float, revenue_growth: float) -> float:
    score = 50.0
    if operating_margin > 20:
        score += 20
    elif operating_margin > 0:
        score += 10
    else:
        score -= 15

    if runway > 12:
        score += 20
    elif runway < 3:
        score -= 20

    if revenue_growth > 10:
        score += 10

    return max(0.0, min(100.0, score))


def financial_health(
    partners: Sequence[Partner],
    transactions: Sequence[Transaction],
    now: Optional[datetime] = None,
) -> FinancialHealth:
    now = now or dates._now()
    current = month_bucket(now)
    previous = shift_month(current, -1)

    this_revenue = sum_in_month(transactions, INCOME, current)
    this_expenses = sum_in_month(transactions, EXPENSE, current)
    last_revenue = sum_in_month(transactions, INCOME, previous)
    last_expenses = sum_in_month(transactions, EXPENSE, previous)

    revenue_growth = _growth(this_revenue, last_revenue)
    expense_growth = _growth(this_expenses, last_expenses)

    if this_revenue > 0:
        operating_margin = (this_revenue - this_expenses) / this_revenue * 100
    else:
        operating_margin = 0.0

    burn_rate = trailing_burn_rate(transactions, now)
    runway = total_cash(partners) / burn_rate if burn_rate > 0 else INFINITE_RUNWAY

    return FinancialHealth(
        score=health_score(operating_margin, runway, revenue_growth),
        operating_margin=operating_margin,
        burn_rate=burn_rate,
        runway=runway,
        revenue_growth=revenue_growth,
        expense_growth=expense_growth,
    )


# ---------------------------------------------------------------------------
# Cash-flow projection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CashFlowProjection:
    """
    Historical and projected balances.

    ``actual`` holds NaN for future months: there is no actual data yet,
    which is different from a zero balance.
    """

    labels: list[str]
    projected: list[float]
    actual: list[float]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"month": self.labels, "projected": self.projected, "actual": self.actual}
        )


def project_cash_flow(
    current_balance: float,
    transactions: Sequence[Transaction],
    months: int = 3,
    today: Optional[date] = None,
) -> CashFlowProjection:
    """
    Rebuild the last 6 months of balances and extrapolate ``months`` ahead.

    The history is reconstructed by walking the monthly net flows backward
    from ``current_balance``, then forward again (one point per month).
    Future points start from ``current_balance`` and add the average
    monthly net flow of the last 6 months each month.
    """
    today = today or dates._today()
    history = monthly_series(transactions, BURN_RATE_MONTHS, today)
    net_flows = [r - e for r, e in zip(history.revenue, history.expenses)]
    avg_net_flow = sum(net_flows) / max(len(net_flows), 1)

    labels: list[str] = []
    projected: list[float] = []
    actual: list[float] = []

    running = current_balance
    for flow in reversed(net_flows):
        running -= flow
    for label, flow in zip(history.labels, net_flows):
        running += flow
        labels.append(label)
        actual.append(running)
        projected.append(running)

    current = month_bucket(today)
    balance = current_balance
    for i in range(1, months + 1):
        balance += avg_net_flow
        labels.append(shift_month(current, i).label)
        projected.append(balance)
        actual.append(math.nan)

    return CashFlowProjection(labels=labels, projected=projected, actual=actual)


# ---------------------------------------------------------------------------
# Budgets and alerts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BudgetLine:
    category: str
    monthly_budget: float
    spent: float
    remaining: float
    percentage: float

    @property
    def status(self) -> str:
        """'over' above 100%, 'warning' above 80%, 'ok' otherwise."""
        if self.percentage > 100:
            return "over"
        if self.percentage > 80:
            return "warning"
        return "ok"


@dataclass(frozen=True)
class BudgetStatus:
    lines: list[BudgetLine]
    total_budget: float
    total_spent: float
    over_budget: list[str] = field(default_factory=list)

    @property
    def total_remaining(self) -> float:
        return self.total_budget - self.total_spent

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "category": line.category,
                    "monthly_budget": line.monthly_budget,
                    "spent": line.spent,
                    "remaining": line.remaining,
                    "percentage": line.percentage,
                    "status": line.status,
                }
                for line in self.lines
            ],
            columns=[
                "category",
                "monthly_budget",
                "spent",
                "remaining",
                "percentage",
                "status",
            ],
        )


def budget_status(
    budgets: Sequence[Budget],
    transactions: Sequence[Transaction],
    today: Optional[date] = None,
) -> BudgetStatus:
    """
    Recompute spend against each monthly budget from this month's expenses.

    The stored Current_Spent / Remaining cells are ignored.
    """
    current = month_bucket(today or dates._today())
    spent_by_category: dict[str, float] = {}
    for t in transactions:
        if t.type == EXPENSE and current.contains(t.parsed_date):
            spent_by_category[t.category] = spent_by_category.get(t.category, 0.0) + t.amount

    lines: list[BudgetLine] = []
    for b in budgets:
        if not b.category:
            continue
        spent = spent_by_category.get(b.category, 0.0)
        pct = spent / b.monthly_budget * 100 if b.monthly_budget > 0 else 0.0
        lines.append(
            BudgetLine(
                category=b.category,
                monthly_budget=b.monthly_budget,
                spent=spent,
                remaining=b.monthly_budget - spent,
                percentage=pct,
            )
        )

    return BudgetStatus(
        lines=lines,
        total_budget=sum(line.monthly_budget for line in lines),
        total_spent=sum(line.spent for line in lines),
        over_budget=[line.category for line in lines if line.percentage > 100],
    )


def low_balance_threshold(settings: Iterable[Setting]) -> float:
    """Threshold from the settings, falling back to the default on bad input."""
    default = float(DEFAULT_SETTINGS[LOW_BALANCE_SETTING])
    for setting in settings:
        if setting.name == LOW_BALANCE_SETTING:
            try:
                return float(setting.value)
            except (TypeError, ValueError):
                return default
    return default


def low_balance_alerts(
    partners: Iterable[Partner],
    threshold: float,
) -> list[Partner]:
    """Partners whose balance is strictly below ``threshold``."""
    return [p for p in partners if p.balance < threshold]
