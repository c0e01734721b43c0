# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Typed records for SheetVault.

Every record mirrors one row of a sheet. Records are immutable value
objects: a refresh cycle produces new instances rather than mutating the
previous ones. Relationships are expressed through string identifiers only
(``Transaction.partner_account`` -> ``Partner.partner_id``, etc.).

Dates are kept exactly as stored in the sheet (serial number, ISO string,
...). Use ``sheetvault.dates.parse_date`` (or the ``parsed_date`` helper
properties) when a calendar date is needed.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

from .dates import parse_date

TransactionType = Literal["Income", "Expense"]

INCOME: TransactionType = "Income"
EXPENSE: TransactionType = "Expense"
TRANSACTION_TYPES: tuple[str, ...] = (INCOME, EXPENSE)

INCOME_CATEGORIES: tuple[str, ...] = (
    "Product Sales Revenue",
    "Subscription Revenue",
    "Licensing Fees",
    "Partner Capital Injection",
    "Grants & Funding",
    "Pilot Program Revenue",
    "Other Income",
)

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "R&D Costs",
    "Software Development Tools",
    "Infrastructure Costs",
    "Product Testing & QA",
    "Team Salaries",
    "Office & Operations",
    "Marketing & Product Launch",
    "Legal & IP Protection",
    "Hardware & Equipment",
    "Software Licenses & Subscriptions",
    "Prototyping Costs",
    "Travel & Conferences",
    "Miscellaneous Operating Expenses",
)

ALL_CATEGORIES: tuple[str, ...] = INCOME_CATEGORIES + EXPENSE_CATEGORIES

PAYMENT_METHODS: tuple[str, ...] = (
    "Bank Transfer",
    "UPI",
    "Corporate Card",
    "Partner Personal Card",
    "Cash",
    "Cheque",
    "Other",
)

DEFAULT_SETTINGS: dict[str, str] = {
    "Currency": "INR",
    "Company_Name": "Arneor Labs",
    "Financial_Year_Start": "April",
    "Tax_Rate": "18",
    "Low_Balance_Threshold": "50000",
    "Auto_Refresh_Interval": "30",
}


@dataclass(frozen=True)
class Partner:
    """
    A partner account.

    ``balance`` is a running total maintained incrementally: every
    transaction and transfer attributed to the partner adjusts it at write
    time. It is never recomputed from history on read.
    """

    partner_id: str
    name: str
    balance: float
    phone: str = ""
    email: str = ""
    last_updated: str = ""


@dataclass(frozen=True)
class Transaction:
    """
    An income or expense line.

    ``amount`` is always stored positive; the sign is implied by ``type``.
    Rows with an empty ``transaction_id`` are placeholders and are ignored
    by reports.
    """

    transaction_id: str
    date: str
    type: TransactionType
    category: str
    amount: float
    partner_account: str = ""
    description: str = ""
    payment_method: str = ""
    tags: str = ""
    added_by: str = ""
    timestamp: str = ""

    @property
    def parsed_date(self) -> Optional[datetime]:
        return parse_date(self.date)

    @property
    def signed_amount(self) -> float:
        """Effect of this transaction on its partner's balance."""
        return self.amount if self.type == INCOME else -self.amount


@dataclass(frozen=True)
class NewTransaction:
    """Data required to create a transaction (id and timestamp are generated)."""

    date: str
    type: TransactionType
    category: str
    amount: float
    partner_account: str = ""
    description: str = ""
    payment_method: str = ""
    tags: str = ""
    added_by: str = ""


@dataclass(frozen=True)
class Budget:
    """
    Spending ceilings for one category (the category is the natural key).

    ``current_spent`` and ``remaining`` are stored in the sheet but are not
    authoritative: ``analytics.budget_status`` recomputes them from the
    transactions at read time.
    """

    category: str
    monthly_budget: float
    quarterly_budget: float = 0.0
    yearly_budget: float = 0.0
    current_spent: float = 0.0
    remaining: float = 0.0


@dataclass(frozen=True)
class InterPartnerTransfer:
    """A zero-sum move of money from one partner to another."""

    transfer_id: str
    date: str
    from_partner: str
    to_partner: str
    amount: float
    purpose: str = ""
    timestamp: str = ""

    @property
    def parsed_date(self) -> Optional[datetime]:
        return parse_date(self.date)


@dataclass(frozen=True)
class NewTransfer:
    """Data required to record a transfer (id and timestamp are generated)."""

    date: str
    from_partner: str
    to_partner: str
    amount: float
    purpose: str = ""


@dataclass(frozen=True)
class MonthlySummary:
    """A manually maintained monthly closing line."""

    month: str
    year: int
    total_revenue: float = 0.0
    total_expenses: float = 0.0
    net_profit_loss: float = 0.0
    cash_balance: float = 0.0
    burn_rate: float = 0.0
    notes: str = ""


@dataclass(frozen=True)
class Setting:
    """Key/value setting. Keys are unique by convention only."""

    name: str
    value: str
    last_modified: str = ""
