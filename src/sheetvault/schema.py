# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Sheet layouts and the generic row <-> record mapping.

Each collection is stored in its own sheet. The first row of the sheet is a
header row and is always skipped; the remaining rows are mapped to records
*by column position*, not by header name. Trailing columns may be missing
(the Sheets API trims empty trailing cells), in which case the field takes
its default. Reordered columns are not supported.

Layouts
-------
Partners                 A:F  Partner_ID, Partner_Name, Current_Balance,
                              Phone, Email, Last_Updated
Transactions             A:K  Transaction_ID, Date, Type, Category, Amount,
                              Partner_Account, Description, Payment_Method,
                              Tags, Added_By, Timestamp
Budgets                  A:F  Category, Monthly_Budget, Quarterly_Budget,
                              Yearly_Budget, Current_Spent, Remaining
Inter_Partner_Transfers  A:G  Transfer_ID, Date, From_Partner, To_Partner,
                              Amount, Purpose, Timestamp
Monthly_Summary          A:H  Month, Year, Total_Revenue, Total_Expenses,
                              Net_Profit_Loss, Cash_Balance, Burn_Rate, Notes
Settings                 A:C  Setting_Name, Setting_Value, Last_Modified

Coercion rules
--------------
- ``str``   : missing / None -> "".
- ``float`` : unparseable or NaN -> 0.0.
- ``int``   : unparseable -> 0 (fractional values are truncated).
- ``type``  : transaction type, empty -> "Expense".
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from .models import (
    EXPENSE,
    Budget,
    InterPartnerTransfer,
    MonthlySummary,
    Partner,
    Setting,
    Transaction,
)

FieldKind = Literal["str", "float", "int", "type"]


@dataclass(frozen=True)
class FieldSpec:
    """One column of a sheet: record attribute, header and coercion rule."""

    attr: str
    header: str
    kind: FieldKind = "str"


@dataclass(frozen=True)
class CollectionSchema:
    """
    Layout of one sheet.

    Attributes
    ----------
    key:
        Cache key / short name of the collection (e.g. 'partners').
    sheet:
        Sheet (tab) title in the spreadsheet.
    record_type:
        Dataclass produced by ``decode_row``.
    fields:
        Ordered column descriptors, column A first.
    """

    key: str
    sheet: str
    record_type: type
    fields: tuple[FieldSpec, ...]

    @property
    def headers(self) -> list[str]:
        return [f.header for f in self.fields]

    @property
    def last_column(self) -> str:
        return _column_letter(len(self.fields))

    @property
    def range(self) -> str:
        """A1 range covering every column, e.g. 'Partners!A:F'."""
        return f"{self.sheet}!A:{self.last_column}"

    def row_range(self, index: int) -> str:
        """
        A1 range of the data row at zero-based ``index``.

        Data row 0 is sheet row 2 (row 1 holds the headers).
        """
        row = index + 2
        return f"{self.sheet}!A{row}:{self.last_column}{row}"


def _column_letter(n: int) -> str:
    """1 -> 'A', 26 -> 'Z', 27 -> 'AA'."""
    letters = ""
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


PARTNERS = CollectionSchema(
    key="partners",
    sheet="Partners",
    record_type=Partner,
    fields=(
        FieldSpec("partner_id", "Partner_ID"),
        FieldSpec("name", "Partner_Name"),
        FieldSpec("balance", "Current_Balance", "float"),
        FieldSpec("phone", "Phone"),
        FieldSpec("email", "Email"),
        FieldSpec("last_updated", "Last_Updated"),
    ),
)

TRANSACTIONS = CollectionSchema(
    key="transactions",
    sheet="Transactions",
    record_type=Transaction,
    fields=(
        FieldSpec("transaction_id", "Transaction_ID"),
        FieldSpec("date", "Date"),
        FieldSpec("type", "Type", "type"),
        FieldSpec("category", "Category"),
        FieldSpec("amount", "Amount", "float"),
        FieldSpec("partner_account", "Partner_Account"),
        FieldSpec("description", "Description"),
        FieldSpec("payment_method", "Payment_Method"),
        FieldSpec("tags", "Tags"),
        FieldSpec("added_by", "Added_By"),
        FieldSpec("timestamp", "Timestamp"),
    ),
)

BUDGETS = CollectionSchema(
    key="budgets",
    sheet="Budgets",
    record_type=Budget,
    fields=(
        FieldSpec("category", "Category"),
        FieldSpec("monthly_budget", "Monthly_Budget", "float"),
        FieldSpec("quarterly_budget", "Quarterly_Budget", "float"),
        FieldSpec("yearly_budget", "Yearly_Budget", "float"),
        FieldSpec("current_spent", "Current_Spent", "float"),
        FieldSpec("remaining", "Remaining", "float"),
    ),
)

TRANSFERS = CollectionSchema(
    key="transfers",
    sheet="Inter_Partner_Transfers",
    record_type=InterPartnerTransfer,
    fields=(
        FieldSpec("transfer_id", "Transfer_ID"),
        FieldSpec("date", "Date"),
        FieldSpec("from_partner", "From_Partner"),
        FieldSpec("to_partner", "To_Partner"),
        FieldSpec("amount", "Amount", "float"),
        FieldSpec("purpose", "Purpose"),
        FieldSpec("timestamp", "Timestamp"),
    ),
)

MONTHLY_SUMMARY = CollectionSchema(
    key="monthly_summary",
    sheet="Monthly_Summary",
    record_type=MonthlySummary,
    fields=(
        FieldSpec("month", "Month"),
        FieldSpec("year", "Year", "int"),
        FieldSpec("total_revenue", "Total_Revenue", "float"),
        FieldSpec("total_expenses", "Total_Expenses", "float"),
        FieldSpec("net_profit_loss", "Net_Profit_Loss", "float"),
        FieldSpec("cash_balance", "Cash_Balance", "float"),
        FieldSpec("burn_rate", "Burn_Rate", "float"),
        FieldSpec("notes", "Notes"),
    ),
)

SETTINGS = CollectionSchema(
    key="settings",
    sheet="Settings",
    record_type=Setting,
    fields=(
        FieldSpec("name", "Setting_Name"),
        FieldSpec("value", "Setting_Value"),
        FieldSpec("last_modified", "Last_Modified"),
    ),
)

# Provisioning order.
COLLECTIONS: tuple[CollectionSchema, ...] = (
    PARTNERS,
    TRANSACTIONS,
    BUDGETS,
    TRANSFERS,
    MONTHLY_SUMMARY,
    SETTINGS,
)


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def _to_str(raw: Any) -> str:
    if raw is None:
        return ""
    return str(raw)


def _to_float(raw: Any) -> float:
    if raw is None:
        return 0.0
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return value


def _to_int(raw: Any) -> int:
    value = _to_float(raw)
    if math.isinf(value):
        return 0
    return int(value)


def _coerce(kind: FieldKind, raw: Any) -> Any:
    if kind == "float":
        return _to_float(raw)
    if kind == "int":
        return _to_int(raw)
    if kind == "type":
        text = _to_str(raw)
        return text if text else EXPENSE
    return _to_str(raw)


def format_number(value: float) -> str:
    """Render a number the way it is written to the sheet ('1000', '12.5')."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decode_row(schema: CollectionSchema, row: Sequence[Any]) -> Any:
    """Map one positional row to a record of ``schema.record_type``."""
    values: dict[str, Any] = {}
    for position, field in enumerate(schema.fields):
        raw = row[position] if position < len(row) else None
        values[field.attr] = _coerce(field.kind, raw)
    return schema.record_type(**values)


def decode_rows(schema: CollectionSchema, rows: Sequence[Sequence[Any]]) -> list:
    """
    Map the raw values of a sheet (header row included) to records.

    The first row is always treated as the header row and skipped, whatever
    it contains. An empty sheet or a header-only sheet yields an empty list.
    """
    if len(rows) <= 1:
        return []
    return [decode_row(schema, row) for row in rows[1:]]


def encode_record(schema: CollectionSchema, record: Any) -> list[str]:
    """Map a record back to a positional row of cell values."""
    row: list[str] = []
    for field in schema.fields:
        value = getattr(record, field.attr)
        if field.kind in ("float", "int"):
            row.append(format_number(value))
        else:
            row.append(_to_str(value))
    return row


def record_to_dict(schema: CollectionSchema, record: Any) -> dict[str, Any]:
    """Header-keyed view of a record, e.g. {'Partner_ID': 'P001', ...}."""
    return {field.header: getattr(record, field.attr) for field in schema.fields}


def schema_for(record: Any) -> CollectionSchema:
    """Return the schema whose record type matches ``record``."""
    for schema in COLLECTIONS:
        if isinstance(record, schema.record_type):
            return schema
    raise TypeError(f"No sheet layout for record type {type(record).__name__}")
