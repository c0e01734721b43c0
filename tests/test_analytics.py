import math
from datetime import date, datetime

import pytest

from sheetvault.analytics import (
    INFINITE_RUNWAY,
    budget_status,
    category_breakdown,
    dashboard_metrics,
    financial_health,
    health_score,
    low_balance_alerts,
    low_balance_threshold,
    monthly_series,
    project_cash_flow,
    trailing_burn_rate,
)
from sheetvault.dates import months_ago
from sheetvault.models import Budget, Partner, Setting, Transaction

NOW = datetime(2026, 2, 15, 12, 0, 0)


def tx(day: str, type_: str, amount: float, category: str = "Misc", tx_id: str = "T") -> Transaction:
    return Transaction(
        transaction_id=tx_id, date=day, type=type_, category=category, amount=amount
    )


def partner(pid: str, balance: float) -> Partner:
    return Partner(partner_id=pid, name=pid, balance=balance)


# ---------------------------------------------------------------------------
# Monthly series
# ---------------------------------------------------------------------------


def test_monthly_series_two_months() -> None:
    txs = [tx("2024-01-10", "Income", 100), tx("2024-02-05", "Expense", 40)]

    series = monthly_series(txs, months=2, today=date(2024, 2, 20))

    assert series.labels == ["Jan 2024", "Feb 2024"]
    assert series.revenue == [100, 0]
    assert series.expenses == [0, 40]
    assert series.profit == [100, -40]


def test_monthly_series_default_window_crosses_year() -> None:
    series = monthly_series([], today=date(2026, 2, 1))
    assert series.labels == [
        "Sep 2025",
        "Oct 2025",
        "Nov 2025",
        "Dec 2025",
        "Jan 2026",
        "Feb 2026",
    ]
    assert series.to_frame().shape == (6, 4)


def test_monthly_series_ignores_undated_rows() -> None:
    series = monthly_series([tx("garbage", "Income", 10)], months=1, today=date(2026, 2, 1))
    assert series.revenue == [0]


def test_monthly_series_needs_one_month() -> None:
    with pytest.raises(ValueError):
        monthly_series([], months=0)


# ---------------------------------------------------------------------------
# Category breakdown
# ---------------------------------------------------------------------------


def test_category_breakdown_sorted_descending() -> None:
    txs = [
        tx("2026-02-01", "Expense", 10, "A"),
        tx("2026-02-01", "Expense", 30, "B"),
        tx("2026-02-01", "Expense", 5, "C"),
        tx("2026-02-01", "Expense", 5, "A"),
        tx("2026-02-01", "Income", 999, "Sales"),
    ]

    breakdown = category_breakdown(txs, "Expense")

    assert breakdown.labels == ["B", "A", "C"]
    assert breakdown.values == [30, 15, 5]


def test_category_breakdown_ties_keep_first_seen_order() -> None:
    txs = [tx("2026-02-01", "Income", 10, "X"), tx("2026-02-01", "Income", 10, "Y")]
    assert category_breakdown(txs, "Income").labels == ["X", "Y"]


def test_category_breakdown_empty() -> None:
    breakdown = category_breakdown([], "Expense")
    assert breakdown.labels == []
    assert breakdown.to_frame().empty


# ---------------------------------------------------------------------------
# Dashboard and burn rate
# ---------------------------------------------------------------------------


def test_burn_rate_cutoff_is_six_calendar_months_back() -> None:
    assert months_ago(6, NOW) == datetime(2025, 8, 15, 12, 0, 0)

    txs = [
        tx("2025-08-14", "Expense", 600),  # before the cutoff
        tx("2025-08-16", "Expense", 60),
        tx("2026-03-01", "Expense", 6),  # future rows are counted
        tx("2026-02-01", "Income", 1000),
    ]
    assert trailing_burn_rate(txs, NOW) == pytest.approx(11.0)


def test_months_ago_clamps_day() -> None:
    assert months_ago(6, datetime(2025, 8, 31)) == datetime(2025, 2, 28)


def test_dashboard_metrics() -> None:
    partners = [partner("P001", 1000), partner("P002", 500)]
    txs = [
        tx("2026-02-03", "Income", 800),
        tx("2026-02-10", "Expense", 300),
        tx("2026-01-10", "Expense", 300),
    ]

    metrics = dashboard_metrics(partners, txs, NOW)

    assert metrics.total_cash_available == 1500
    assert metrics.this_month_revenue == 800
    assert metrics.this_month_expenses == 300
    assert metrics.this_month_profit_loss == 500
    assert metrics.burn_rate == pytest.approx(100.0)


# ---------------------------------------------------------------------------
# Financial health
# ---------------------------------------------------------------------------


def test_health_without_data() -> None:
    health = financial_health([], [], NOW)

    assert health.operating_margin == 0
    assert health.runway == INFINITE_RUNWAY
    assert health.runway_is_infinite
    assert health.revenue_growth == 0
    assert health.score == 55


def test_health_can_reach_full_score() -> None:
    txs = [
        tx("2026-01-10", "Income", 100),
        tx("2026-02-03", "Income", 1000),
        tx("2026-02-04", "Expense", 100),
    ]

    health = financial_health([partner("P001", 10000)], txs, NOW)

    assert health.operating_margin == pytest.approx(90)
    assert health.revenue_growth == pytest.approx(900)
    assert health.expense_growth == 0
    assert health.runway == pytest.approx(600)
    assert health.score == 100


def test_health_short_runway_and_loss() -> None:
    txs = [tx("2026-02-03", "Income", 100), tx("2026-02-04", "Expense", 600)]

    health = financial_health([partner("P001", 100)], txs, NOW)

    # margin -500% -> -15, runway 1 month -> -20
    assert health.runway == pytest.approx(1.0)
    assert health.score == 15


@pytest.mark.parametrize(
    "margin, runway, growth, expected",
    [
        (25, 24, 20, 100),
        (10, 6, 0, 60),
        (0, 6, 0, 35),
        (-50, 1, 0, 15),
        (21, 2, 11, 60),
    ],
)
def test_health_score_rules(margin, runway, growth, expected) -> None:
    assert health_score(margin, runway, growth) == expected


def test_health_score_is_clamped() -> None:
    assert 0 <= health_score(-1000, 0, -1000) <= 100


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def test_cash_flow_projection() -> None:
    txs = [tx("2026-02-05", "Income", 600), tx("2026-01-20", "Expense", 300)]

    projection = project_cash_flow(1000, txs, months=3, today=date(2026, 2, 15))

    assert len(projection.labels) == 9
    assert projection.labels[-3:] == ["Mar 2026", "Apr 2026", "May 2026"]
    assert projection.actual[:6] == [700, 700, 700, 700, 400, 1000]
    assert projection.projected[:6] == projection.actual[:6]
    assert projection.projected[6:] == pytest.approx([1050, 1100, 1150])
    assert all(math.isnan(v) for v in projection.actual[6:])


def test_projection_without_history_is_flat() -> None:
    projection = project_cash_flow(250, [], months=2, today=date(2026, 2, 15))
    assert projection.projected == [250] * 8


# ---------------------------------------------------------------------------
# Budgets and alerts
# ---------------------------------------------------------------------------


def test_budget_status_uses_this_months_expenses() -> None:
    budgets = [
        Budget(category="R&D Costs", monthly_budget=1000),
        Budget(category="Team Salaries", monthly_budget=500),
        Budget(category="Marketing", monthly_budget=0),
        Budget(category="", monthly_budget=100),
    ]
    txs = [
        tx("2026-02-01", "Expense", 850, "R&D Costs"),
        tx("2026-02-02", "Expense", 600, "Team Salaries"),
        tx("2026-01-02", "Expense", 9999, "Team Salaries"),
        tx("2026-02-02", "Income", 9999, "R&D Costs"),
    ]

    status = budget_status(budgets, txs, today=date(2026, 2, 15))

    assert [line.category for line in status.lines] == [
        "R&D Costs",
        "Team Salaries",
        "Marketing",
    ]
    assert [line.status for line in status.lines] == ["warning", "over", "ok"]
    assert status.lines[0].percentage == pytest.approx(85)
    assert status.lines[1].remaining == -100
    assert status.over_budget == ["Team Salaries"]
    assert status.total_budget == 1500
    assert status.total_spent == 1450
    assert status.total_remaining == 50
    assert list(status.to_frame()["status"]) == ["warning", "over", "ok"]


def test_low_balance_threshold() -> None:
    assert low_balance_threshold([]) == 50000
    assert low_balance_threshold([Setting("Low_Balance_Threshold", "1200")]) == 1200
    assert low_balance_threshold([Setting("Low_Balance_Threshold", "lots")]) == 50000


def test_low_balance_alerts_are_strict() -> None:
    partners = [partner("P001", 100), partner("P002", 99.99), partner("P003", 500)]
    assert [p.partner_id for p in low_balance_alerts(partners, 100)] == ["P002"]
