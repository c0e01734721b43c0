# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Input validation for forms (transactions, transfers, budgets).

Field validators return an error message, or None when the value is valid.
Form validators collect those messages per field and raise a single
``ValidationError`` so that nothing invalid ever reaches the remote store.
"""

import math
from typing import Any, Optional

import pandas as pd

from .errors import ValidationError
from .models import TRANSACTION_TYPES, NewTransaction, NewTransfer


def parse_amount(value: Any) -> Optional[float]:
    """
    Parse a form amount into a finite float.

    The whole (stripped) text must be a number: '12.5' -> 12.5, while
    '1,000', '5k' or '12abc' -> None. NaN and infinities are rejected too.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def validate_amount(value: Any) -> Optional[str]:
    number = parse_amount(value)
    if number is None:
        return "Please enter a valid number"
    if number <= 0:
        return "Amount must be positive"
    return None


def validate_date(value: Any) -> Optional[str]:
    if value is None or str(value).strip() == "":
        return "Date is required"
    try:
        parsed = pd.to_datetime(str(value).strip())
    except (ValueError, TypeError, OverflowError):
        return "Invalid date"
    if pd.isna(parsed):
        return "Invalid date"
    return None


def validate_required(value: Any, field_name: str) -> Optional[str]:
    if value is None or str(value).strip() == "":
        return f"{field_name} is required"
    return None


def _collect(checks: dict[str, Optional[str]]) -> None:
    errors = {field: msg for field, msg in checks.items() if msg}
    if errors:
        raise ValidationError(errors)


def validate_transaction(tx: NewTransaction) -> None:
    """
    Validate a transaction form.

    Raises
    ------
    ValidationError
        With one message per invalid field among Date, Type, Category,
        Amount and Partner_Account.
    """
    type_error = validate_required(tx.type, "Type")
    if type_error is None and tx.type not in TRANSACTION_TYPES:
        type_error = "Type must be Income or Expense"

    _collect(
        {
            "Date": validate_date(tx.date),
            "Type": type_error,
            "Category": validate_required(tx.category, "Category"),
            "Amount": validate_amount(tx.amount),
            "Partner_Account": validate_required(tx.partner_account, "Partner"),
        }
    )


def validate_transfer(transfer: NewTransfer) -> None:
    """Validate a transfer form; source and destination must differ."""
    to_error = validate_required(transfer.to_partner, "Destination partner")
    if (
        to_error is None
        and transfer.from_partner
        and transfer.from_partner == transfer.to_partner
    ):
        to_error = "Source and destination partners must differ"

    _collect(
        {
            "Date": validate_date(transfer.date),
            "From_Partner": validate_required(transfer.from_partner, "Source partner"),
            "To_Partner": to_error,
            "Amount": validate_amount(transfer.amount),
        }
    )


def validate_budget(
    category: Any,
    monthly_budget: Any,
    quarterly_budget: Any = None,
    yearly_budget: Any = None,
) -> None:
    """Validate a budget form; quarterly / yearly ceilings are optional."""
    _collect(
        {
            "Category": validate_required(category, "Category"),
            "Monthly_Budget": validate_amount(monthly_budget),
            "Quarterly_Budget": (
                None if quarterly_budget is None else validate_amount(quarterly_budget)
            ),
            "Yearly_Budget": (
                None if yearly_budget is None else validate_amount(yearly_budget)
            ),
        }
    )
