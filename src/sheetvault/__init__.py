# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
SheetVault
----------

A Python financial dashboard for small partnerships that keeps all of its
data in a single Google Sheets spreadsheet. The spreadsheet is used as the
database: each collection (partners, transactions, budgets, inter-partner
transfers, monthly summaries, settings) lives in its own sheet with a fixed
column layout.

Main capabilities:
- typed record mapping for every sheet, with a short-lived read cache,
- income / expense tracking with automatic partner balance maintenance,
- inter-partner transfers (zero-sum balance moves),
- budgets with current-month spend tracking,
- derived analytics: dashboard metrics, monthly series, category
  breakdowns, financial health score, cash-flow projection, P&L statement,
- CSV exports of every collection,
- a command-line interface for scripting and quick inspection.

SheetVault separates computation (analytics), data access (repository,
sheets), configuration (TOML) and presentation (CLI), so that the
analytics stay pure and can be tested without any network access.

Version: 0.2.0

Usage:
    python -m sheetvault.cli --help
"""

__all__ = ["analytics", "dates", "models", "repository", "reports"]

__version__ = "0.2.0"
