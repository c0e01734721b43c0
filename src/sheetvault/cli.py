# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for SheetVault.

This module wires together the main building blocks of SheetVault:

- global configuration (spreadsheet, allow-list, cache/retry, display),
- the session (token, identity check, repository and read cache),
- the aggregation engine (dashboard, cash flow, breakdowns, budgets),
- reporting (P&L statement, CSV exports).

The CLI is intentionally thin: it does not implement financial logic
itself. It orchestrates the underlying modules based on command-line
arguments and configuration files.

Access token
------------
SheetVault does not run the OAuth consent flow. The access token is taken
from, in order:

1) ``--token``,
2) the ``SHEETVAULT_ACCESS_TOKEN`` environment variable,
3) the token file configured in ``[auth].token_file`` (written by a
   previous run, reused until it expires).

Output
------
Tables are printed with ``pandas.DataFrame.to_string`` (display mode
"table"), written as timestamped CSV files in the output directory (mode
"csv"), or both.

Exit codes
----------
0 success, 1 remote store / lookup failure, 2 invalid input,
3 authorization failure (the cached token is cleared).
"""

import argparse
import dataclasses
import logging
import os
import sys
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from . import __version__
from .analytics import (
    budget_status,
    category_breakdown,
    dashboard_metrics,
    financial_health,
    low_balance_alerts,
    low_balance_threshold,
    monthly_series,
    project_cash_flow,
    total_cash,
)
from .config import AppConfig, load_app_config
from .dates import format_date, today_iso
from .errors import (
    AuthorizationError,
    ReferentialError,
    RemoteStoreError,
    ValidationError,
)
from .models import (
    ALL_CATEGORIES,
    PAYMENT_METHODS,
    TRANSACTION_TYPES,
    NewTransaction,
    NewTransfer,
)
from .periods import determine_period_from_args
from .reports import (
    REPORTS,
    export_report,
    format_currency,
    format_percentage,
    pnl_statement,
    records_to_frame,
)
from .session import Session
from .validation import validate_budget, validate_transaction, validate_transfer

logger = logging.getLogger(__name__)

TOKEN_ENV = "SHEETVAULT_ACCESS_TOKEN"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2
EXIT_UNAUTHORIZED = 3


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def _non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be 0 or more, got {value}")
    return value


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="python -m sheetvault.cli",
        description=(
            "SheetVault - Financial dashboard for small partnerships, backed by "
            "Google Sheets. Tracks income and expenses, partner balances, "
            "budgets and transfers, and derives P&L, cash-flow projections "
            "and a financial health score."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of sheetvault and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'sheetvault_config.toml' in the current directory is used."
        ),
    )
    ap.add_argument(
        "--token",
        help=(
            "OAuth2 access token (spreadsheets + userinfo.email scopes). "
            f"Defaults to ${TOKEN_ENV}, then to the cached token file."
        ),
    )
    ap.add_argument(
        "--expires-in",
        dest="expires_in",
        type=float,
        default=None,
        help="Lifetime in seconds of the token given with --token (default: 3600).",
    )
    ap.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the logging level from the configuration.",
    )
    ap.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=["table", "csv", "both"],
        help="Override the display mode from the configuration.",
    )
    ap.add_argument(
        "--output-dir",
        dest="output_dir",
        help="Directory for CSV output (overrides [display].output_dir).",
    )

    sub = ap.add_subparsers(dest="command")

    sub.add_parser("init", help="Create missing sheets and default partners.")

    p_dash = sub.add_parser(
        "dashboard", help="Key metrics, health score and monthly series."
    )
    p_dash.add_argument(
        "--months",
        type=_positive_int,
        default=6,
        help="Months in the series, at least 1 (default: 6).",
    )

    p_cash = sub.add_parser("cashflow", help="Historical and projected balances.")
    p_cash.add_argument(
        "--months",
        type=_non_negative_int,
        default=3,
        help="Number of future months to project (default: 3).",
    )

    p_break = sub.add_parser("breakdown", help="Totals per category.")
    p_break.add_argument(
        "--type",
        dest="tx_type",
        choices=list(TRANSACTION_TYPES),
        default="Expense",
        help="Transaction type (default: Expense).",
    )

    p_pnl = sub.add_parser("pnl", help="Profit and loss statement.")
    p_pnl.add_argument(
        "--period",
        choices=["month", "quarter", "year"],
        help="Period kind (default: month).",
    )
    p_pnl.add_argument("--month", type=int, help="Month number 1-12 (default: current).")
    p_pnl.add_argument("--year", type=int, help="Year (default: current).")
    p_pnl.add_argument(
        "--from-date", dest="from_date", help="Custom period start (YYYY-MM-DD)."
    )
    p_pnl.add_argument(
        "--to-date", dest="to_date", help="Custom period end (YYYY-MM-DD)."
    )

    # budgets list | add | delete
    p_budgets = sub.add_parser("budgets", help="Budget status and management.")
    budgets_sub = p_budgets.add_subparsers(dest="budgets_command")
    budgets_sub.add_parser("list", help="Spend against each monthly budget.")
    p_badd = budgets_sub.add_parser("add", help="Add a budget line.")
    p_badd.add_argument("--category", required=True, help="Expense category.")
    p_badd.add_argument("--monthly", required=True, help="Monthly ceiling.")
    p_badd.add_argument("--quarterly", type=float, help="Default: 3x monthly.")
    p_badd.add_argument("--yearly", type=float, help="Default: 12x monthly.")
    p_bdel = budgets_sub.add_parser("delete", help="Delete a budget line.")
    p_bdel.add_argument("index", type=int, help="Row index as shown by 'budgets list'.")

    sub.add_parser("partners", help="Partner balances and low-balance alerts.")

    # transactions list | add | delete
    p_tx = sub.add_parser("transactions", help="List, add or delete transactions.")
    tx_sub = p_tx.add_subparsers(dest="tx_command")

    p_txl = tx_sub.add_parser("list", help="List transactions.")
    p_txl.add_argument("--type", dest="tx_type", choices=list(TRANSACTION_TYPES))
    p_txl.add_argument("--category", help="Exact category filter.")
    p_txl.add_argument(
        "--search",
        help="Case-insensitive search in description, category, tags and id.",
    )
    p_txl.add_argument("--limit", type=int, default=None, help="Show at most N rows.")

    p_txa = tx_sub.add_parser("add", help="Add a transaction.")
    p_txa.add_argument("--date", default=None, help="YYYY-MM-DD (default: today).")
    p_txa.add_argument(
        "--type", dest="tx_type", required=True, choices=list(TRANSACTION_TYPES)
    )
    p_txa.add_argument(
        "--category",
        required=True,
        help=f"One of: {', '.join(ALL_CATEGORIES)}.",
    )
    p_txa.add_argument("--amount", required=True, help="Positive amount.")
    p_txa.add_argument("--partner", required=True, help="Partner id (e.g. P001).")
    p_txa.add_argument("--description", default="")
    p_txa.add_argument(
        "--payment-method",
        dest="payment_method",
        default="",
        help=f"One of: {', '.join(PAYMENT_METHODS)}.",
    )
    p_txa.add_argument("--tags", default="")

    p_txd = tx_sub.add_parser("delete", help="Delete a transaction.")
    p_txd.add_argument(
        "index", type=int, help="Row index as shown by 'transactions list'."
    )

    p_trf = sub.add_parser("transfer", help="Move money between two partners.")
    p_trf.add_argument("--from", dest="from_partner", required=True)
    p_trf.add_argument("--to", dest="to_partner", required=True)
    p_trf.add_argument("--amount", required=True)
    p_trf.add_argument("--date", default=None, help="YYYY-MM-DD (default: today).")
    p_trf.add_argument("--purpose", default="")

    # settings list | set
    p_set = sub.add_parser("settings", help="Show or change settings.")
    set_sub = p_set.add_subparsers(dest="settings_command")
    set_sub.add_parser("list", help="Show all settings.")
    p_sset = set_sub.add_parser("set", help="Set a setting value.")
    p_sset.add_argument("name")
    p_sset.add_argument("value")

    p_exp = sub.add_parser("export", help="Export a report as CSV.")
    p_exp.add_argument("report", choices=sorted(REPORTS), help="Report to export.")

    sub.add_parser("logout", help="Forget the cached access token.")

    return ap


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


class _Output:
    """Renders tables according to the display mode."""

    def __init__(self, mode: str, output_dir: Path, decimals: int) -> None:
        self.mode = mode
        self.output_dir = output_dir
        self.decimals = decimals
        self.timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")

    def table(self, title: str, name: str, df: pd.DataFrame) -> None:
        if self.mode in {"table", "both"}:
            print()
            print(f"=== {title} ===")
            if df.empty:
                print("(no rows)")
            else:
                print(df.round(self.decimals).to_string(index=False))

        if self.mode in {"csv", "both"}:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self.output_dir / f"{name}_{self.timestamp}.csv"
            df.to_csv(path, index=False)
            print(f"Wrote {path} ({len(df)} rows)")


def _money(config: AppConfig):
    symbol = config.company.currency_symbol
    return lambda amount: format_currency(amount, symbol=symbol)


def _resolve_token(args: argparse.Namespace) -> Optional[str]:
    return args.token or os.environ.get(TOKEN_ENV) or None


def _login(session: Session, args: argparse.Namespace):
    return session.login(
        _resolve_token(args),
        args.expires_in,
        start_refresh=False,
    )


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _handle_init(args, config: AppConfig, session: Session, out: _Output) -> None:
    snapshot = _login(session, args)
    if session.created_sheets:
        print(f"Created sheets: {', '.join(session.created_sheets)}")
    else:
        print("All sheets already exist.")
    print(f"{len(snapshot.partners)} partners, {len(snapshot.transactions)} transactions.")


def _handle_dashboard(args, config: AppConfig, session: Session, out: _Output) -> None:
    snapshot = _login(session, args)
    money = _money(config)
    metrics = dashboard_metrics(snapshot.partners, snapshot.transactions)
    health = financial_health(snapshot.partners, snapshot.transactions)

    runway = "∞" if health.runway_is_infinite else f"{health.runway:.1f} months"
    print(f"{config.company.name} - signed in as {session.user_email}")
    print()
    print(f"Total cash available : {money(metrics.total_cash_available)}")
    print(f"This month revenue   : {money(metrics.this_month_revenue)}")
    print(f"This month expenses  : {money(metrics.this_month_expenses)}")
    print(f"This month P&L       : {money(metrics.this_month_profit_loss)}")
    print(f"Burn rate (6 months) : {money(metrics.burn_rate)}")
    print()
    print(f"Health score         : {health.score:.0f}/100")
    print(f"Operating margin     : {format_percentage(health.operating_margin)}")
    print(f"Runway               : {runway}")
    print(f"Revenue growth (MoM) : {format_percentage(health.revenue_growth)}")
    print(f"Expense growth (MoM) : {format_percentage(health.expense_growth)}")

    series = monthly_series(snapshot.transactions, args.months)
    out.table("Monthly series", "monthly_series", series.to_frame())

    threshold = low_balance_threshold(snapshot.settings)
    alerts = low_balance_alerts(snapshot.partners, threshold)
    if alerts:
        print()
        for partner in alerts:
            print(
                f"Low balance: {partner.name} ({partner.partner_id}) "
                f"{money(partner.balance)}"
            )


def _handle_cashflow(args, config: AppConfig, session: Session, out: _Output) -> None:
    snapshot = _login(session, args)
    projection = project_cash_flow(
        total_cash(snapshot.partners), snapshot.transactions, args.months
    )
    out.table("Cash flow", "cashflow", projection.to_frame())


def _handle_breakdown(args, config: AppConfig, session: Session, out: _Output) -> None:
    snapshot = _login(session, args)
    breakdown = category_breakdown(snapshot.transactions, args.tx_type)
    out.table(f"{args.tx_type} by category", "breakdown", breakdown.to_frame())


def _handle_pnl(args, config: AppConfig, session: Session, out: _Output) -> None:
    try:
        period = determine_period_from_args(args)
    except ValueError as exc:
        raise ValidationError({"Period": str(exc)}) from exc

    snapshot = _login(session, args)
    statement = pnl_statement(snapshot.transactions, period)

    print(
        f"Applied period: {period.label} "
        f"({period.start.isoformat()} → {period.end.isoformat()})"
    )
    out.table("Profit & loss", "pnl", statement.to_frame())
    print(f"Profit margin  : {format_percentage(statement.profit_margin)}")
    if statement.previous is not None:
        print(f"Revenue change : {format_percentage(statement.revenue_change)}")
        print(f"Expense change : {format_percentage(statement.expense_change)}")
    out.table("Revenue by category", "pnl_revenue", statement.revenue_breakdown.to_frame())
    out.table("Expenses by category", "pnl_expenses", statement.expense_breakdown.to_frame())


def _handle_budgets(args, config: AppConfig, session: Session, out: _Output) -> None:
    command = getattr(args, "budgets_command", None) or "list"
    if command == "add":
        validate_budget(args.category, args.monthly, args.quarterly, args.yearly)

    snapshot = _login(session, args)
    repo = session.require_repository()

    if command == "add":
        budget = repo.add_budget(
            args.category, args.monthly, args.quarterly, args.yearly
        )
        print(f"Added budget for {budget.category}.")
        return

    if command == "delete":
        budget = repo.delete_budget(args.index)
        print(f"Deleted budget for {budget.category}.")
        return

    status = budget_status(snapshot.budgets, snapshot.transactions)
    df = status.to_frame()
    df.insert(0, "index", range(len(df)))
    out.table("Budgets (this month)", "budgets", df)
    money = _money(config)
    print(f"Total budget : {money(status.total_budget)}")
    print(f"Spent        : {money(status.total_spent)}")
    print(f"Over budget  : {len(status.over_budget)} categories")


def _handle_partners(args, config: AppConfig, session: Session, out: _Output) -> None:
    snapshot = _login(session, args)
    threshold = low_balance_threshold(snapshot.settings)
    df = records_to_frame(snapshot.partners)
    if not df.empty:
        df["Low_Balance"] = df["Current_Balance"] < threshold
    out.table("Partners", "partners", df)
    print(f"Total: {_money(config)(total_cash(snapshot.partners))}")


def _handle_transactions(args, config: AppConfig, session: Session, out: _Output) -> None:
    command = getattr(args, "tx_command", None) or "list"

    if command == "add":
        tx = NewTransaction(
            date=args.date or today_iso(),
            type=args.tx_type,
            category=args.category,
            amount=args.amount,
            partner_account=args.partner,
            description=args.description,
            payment_method=args.payment_method,
            tags=args.tags,
        )
        # Reject bad input before signing in.
        validate_transaction(tx)
        _login(session, args)
        repo = session.require_repository()
        record = repo.add_transaction(
            dataclasses.replace(tx, added_by=session.user_email or "")
        )
        print(
            f"Added {record.transaction_id}: "
            f"{record.type} {record.amount} ({record.category})."
        )
        return

    snapshot = _login(session, args)
    repo = session.require_repository()

    if command == "delete":
        tx = repo.delete_transaction(args.index)
        print(f"Deleted {tx.transaction_id or 'row ' + str(args.index)}.")
        return

    rows = []
    for index, t in enumerate(snapshot.transactions):
        if not t.transaction_id:
            continue
        if args.tx_type and t.type != args.tx_type:
            continue
        if args.category and t.category != args.category:
            continue
        if args.search:
            q = args.search.lower()
            haystack = (t.description, t.category, t.tags, t.transaction_id)
            if not any(q in field.lower() for field in haystack):
                continue
        rows.append(
            {
                "index": index,
                "id": t.transaction_id,
                "date": format_date(t.date),
                "type": t.type,
                "category": t.category,
                "amount": t.amount,
                "partner": t.partner_account,
                "description": t.description,
            }
        )

    if args.limit is not None:
        rows = rows[: args.limit]
    out.table("Transactions", "transactions", pd.DataFrame(rows))


def _handle_transfer(args, config: AppConfig, session: Session, out: _Output) -> None:
    transfer = NewTransfer(
        date=args.date or today_iso(),
        from_partner=args.from_partner,
        to_partner=args.to_partner,
        amount=args.amount,
        purpose=args.purpose,
    )
    validate_transfer(transfer)
    _login(session, args)
    record = session.require_repository().add_transfer(transfer)
    print(
        f"Recorded {record.transfer_id}: {record.amount} "
        f"from {record.from_partner} to {record.to_partner}."
    )


def _handle_settings(args, config: AppConfig, session: Session, out: _Output) -> None:
    snapshot = _login(session, args)
    if getattr(args, "settings_command", None) == "set":
        setting = session.require_repository().update_setting(args.name, args.value)
        print(f"{setting.name} = {setting.value}")
        return
    out.table("Settings", "settings", records_to_frame(snapshot.settings))


def _handle_export(args, config: AppConfig, session: Session, out: _Output) -> None:
    snapshot = _login(session, args)
    preset = REPORTS[args.report]
    text = export_report(args.report, snapshot)
    out.output_dir.mkdir(parents=True, exist_ok=True)
    path = out.output_dir / f"{preset.filename}_{out.timestamp}.csv"
    path.write_text(text, encoding="utf-8")
    print(f"Wrote {path} ({preset.title})")


def _handle_logout(args, config: AppConfig, session: Session, out: _Output) -> None:
    session.logout()
    print("Signed out.")


_HANDLERS = {
    "init": _handle_init,
    "dashboard": _handle_dashboard,
    "cashflow": _handle_cashflow,
    "breakdown": _handle_breakdown,
    "pnl": _handle_pnl,
    "budgets": _handle_budgets,
    "partners": _handle_partners,
    "transactions": _handle_transactions,
    "transfer": _handle_transfer,
    "settings": _handle_settings,
    "export": _handle_export,
    "logout": _handle_logout,
}


def main(argv: Optional[Sequence[str]] = None, session: Optional[Session] = None) -> int:
    """Entry point for the SheetVault CLI.

    This function parses command-line arguments, loads the application
    configuration, configures logging, signs in (token, allow-list,
    sheet provisioning, first snapshot) and dispatches to the requested
    command. Errors are reported on stderr and mapped to exit codes.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"sheetvault version {__version__}")
        return EXIT_OK

    if not args.command:
        parser.print_help()
        return EXIT_OK

    try:
        config = load_app_config(args.config_path)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    logging.basicConfig(
        level=args.log_level or config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    out = _Output(
        mode=args.display_mode or config.display_mode,
        output_dir=Path(args.output_dir) if args.output_dir else config.output_dir,
        decimals=config.decimals,
    )
    session = session or Session(config)

    try:
        _HANDLERS[args.command](args, config, session, out)
    except ValidationError as exc:
        print("Invalid input:", file=sys.stderr)
        for field, message in exc.errors.items():
            print(f"  {field}: {message}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except AuthorizationError as exc:
        session.token_cache.clear()
        print(str(exc), file=sys.stderr)
        return EXIT_UNAUTHORIZED
    except (ReferentialError, RemoteStoreError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        session.close()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
