# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Data access layer: typed, cached reads and writes over a ``SheetStore``.

``VaultRepository`` is the only component that talks to the remote store.
It is responsible for:
- fetching each collection through the read cache (see ``cache.TTLCache``),
- applying writes (append / update / delete rows),
- the derived side effects of writes (partner balance adjustments),
- provisioning missing sheets,
- generating sequential identifiers.

Every write clears the *whole* cache once it has completed. Dependent
writes (a transaction append followed by a balance update, the two legs of
a transfer) are issued strictly one after the other. There is no rollback:
if a later write fails, the error propagates and earlier writes stay.
"""

import dataclasses
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional

from . import dates
from .cache import TTLCache
from .config import DEFAULT_PARTNERS, DefaultPartner
from .errors import PartnerNotFoundError, ReferentialError, ValidationError
from .models import (
    Budget,
    InterPartnerTransfer,
    MonthlySummary,
    NewTransaction,
    NewTransfer,
    Partner,
    Setting,
    Transaction,
)
from .schema import (
    BUDGETS,
    COLLECTIONS,
    MONTHLY_SUMMARY,
    PARTNERS,
    SETTINGS,
    TRANSACTIONS,
    TRANSFERS,
    CollectionSchema,
    decode_rows,
    encode_record,
)
from .sheets import SheetStore, add_sheet_request, delete_rows_request
from .validation import (
    parse_amount,
    validate_budget,
    validate_transaction,
    validate_transfer,
)

logger = logging.getLogger(__name__)

TRANSACTION_PREFIX = "TXN"
TRANSFER_PREFIX = "TRF"


def generate_id(prefix: str, existing: Sequence[Any]) -> str:
    """
    Next sequential identifier: prefix + (count + 1), zero-padded to 4 digits.

    Known limitation: the number derives from the current row count, so a
    deletion followed by an insert, or two concurrent writers, can produce
    a duplicate identifier.
    """
    return f"{prefix}{len(existing) + 1:04d}"


def _timestamp() -> str:
    return dates._now().isoformat()


@dataclass(frozen=True)
class VaultSnapshot:
    """Every collection, as read during one refresh cycle."""

    partners: list[Partner]
    transactions: list[Transaction]
    budgets: list[Budget]
    transfers: list[InterPartnerTransfer]
    monthly_summaries: list[MonthlySummary]
    settings: list[Setting]


class VaultRepository:
    """
    Cached access to the SheetVault collections.

    Parameters
    ----------
    store:
        Remote store implementing ``sheets.SheetStore``.
    cache:
        Read cache shared for the lifetime of the session. A fresh one with
        the default TTL is created when omitted.
    default_partners:
        Partners appended by ``initialize_sheets`` when the Partners sheet
        is empty.
    """

    def __init__(
        self,
        store: SheetStore,
        cache: Optional[TTLCache] = None,
        *,
        default_partners: Sequence[DefaultPartner] = DEFAULT_PARTNERS,
    ) -> None:
        self.store = store
        self.cache = cache if cache is not None else TTLCache()
        self.default_partners = tuple(default_partners)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _fetch(self, schema: CollectionSchema) -> list:
        cached = self.cache.get(schema.key)
        if cached is not None:
            return cached

        rows = self.store.get_values(schema.range)
        records = decode_rows(schema, rows)
        self.cache.set(schema.key, records)
        return records

    def fetch_partners(self) -> list[Partner]:
        return self._fetch(PARTNERS)

    def fetch_transactions(self) -> list[Transaction]:
        return self._fetch(TRANSACTIONS)

    def fetch_budgets(self) -> list[Budget]:
        return self._fetch(BUDGETS)

    def fetch_transfers(self) -> list[InterPartnerTransfer]:
        return self._fetch(TRANSFERS)

    def fetch_monthly_summaries(self) -> list[MonthlySummary]:
        return self._fetch(MONTHLY_SUMMARY)

    def fetch_settings(self) -> list[Setting]:
        return self._fetch(SETTINGS)

    def fetch_all(self) -> VaultSnapshot:
        """Drop the cache and read every collection again, one after the other."""
        self.cache.clear()
        return VaultSnapshot(
            partners=self.fetch_partners(),
            transactions=self.fetch_transactions(),
            budgets=self.fetch_budgets(),
            transfers=self.fetch_transfers(),
            monthly_summaries=self.fetch_monthly_summaries(),
            settings=self.fetch_settings(),
        )

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def _sheet_id(self, schema: CollectionSchema) -> int:
        for info in self.store.list_sheets():
            if info.title == schema.sheet:
                return info.sheet_id
        raise ReferentialError(f"Sheet {schema.sheet} not found")

    def _delete_row(self, schema: CollectionSchema, index: int) -> None:
        sheet_id = self._sheet_id(schema)
        # Header is row 0, data row ``index`` is row index + 1.
        self.store.batch_update([delete_rows_request(sheet_id, index + 1, index + 2)])

    @staticmethod
    def _check_index(records: Sequence[Any], index: int, what: str) -> None:
        if not 0 <= index < len(records):
            raise ReferentialError(f"No {what} at row index {index}")

    def initialize_sheets(self) -> list[str]:
        """
        Create the missing sheets with their header row, then seed the
        default partners if the Partners sheet is empty.

        Returns
        -------
        list of str
            Titles of the sheets that were created.
        """
        existing = {info.title for info in self.store.list_sheets()}
        created: list[str] = []

        for schema in COLLECTIONS:
            if schema.sheet in existing:
                continue
            self.store.batch_update([add_sheet_request(schema.sheet)])
            self.store.update_values(f"{schema.sheet}!A1", [schema.headers])
            created.append(schema.sheet)
            logger.info("Created sheet %s", schema.sheet)

        if created:
            self.cache.clear()

        if not self.fetch_partners():
            stamp = _timestamp()
            rows = [
                encode_record(
                    PARTNERS,
                    Partner(
                        partner_id=p.partner_id,
                        name=p.name,
                        balance=0.0,
                        email=p.email,
                        last_updated=stamp,
                    ),
                )
                for p in self.default_partners
            ]
            self.store.append_values(PARTNERS.range, rows)
            self.cache.clear()
            logger.info("Seeded %d default partners", len(rows))

        return created

    # ------------------------------------------------------------------
    # Partners
    # ------------------------------------------------------------------

    def find_partner(self, partner_id: str) -> tuple[int, Partner]:
        """Return ``(row index, partner)``; raise ``PartnerNotFoundError`` if absent."""
        for index, partner in enumerate(self.fetch_partners()):
            if partner.partner_id == partner_id:
                return index, partner
        raise PartnerNotFoundError(partner_id)

    def update_partner(self, index: int, **changes: Any) -> Partner:
        """
        Merge ``changes`` into the partner at ``index`` and rewrite its row.

        ``last_updated`` is always stamped with the current time.
        """
        partners = self.fetch_partners()
        self._check_index(partners, index, "partner")

        updated = dataclasses.replace(
            partners[index], **{**changes, "last_updated": _timestamp()}
        )
        self.store.update_values(
            PARTNERS.row_range(index), [encode_record(PARTNERS, updated)]
        )
        self.cache.clear()
        return updated

    def update_partner_balance(self, partner_id: str, delta: float) -> Partner:
        index, partner = self.find_partner(partner_id)
        new_balance = partner.balance + delta
        logger.info(
            "Balance of %s: %.2f -> %.2f", partner_id, partner.balance, new_balance
        )
        return self.update_partner(index, balance=new_balance)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def add_transaction(self, tx: NewTransaction) -> Transaction:
        """
        Append a transaction, then adjust its partner's balance.

        Raises
        ------
        ValidationError
            Before any network write, if the form is invalid.
        PartnerNotFoundError
            Before any network write, if the partner does not exist.
        """
        validate_transaction(tx)
        if tx.partner_account:
            self.find_partner(tx.partner_account)

        record = Transaction(
            transaction_id=generate_id(TRANSACTION_PREFIX, self.fetch_transactions()),
            date=tx.date,
            type=tx.type,
            category=tx.category,
            amount=parse_amount(tx.amount),
            partner_account=tx.partner_account,
            description=tx.description,
            payment_method=tx.payment_method,
            tags=tx.tags,
            added_by=tx.added_by,
            timestamp=_timestamp(),
        )
        self.store.append_values(
            TRANSACTIONS.range, [encode_record(TRANSACTIONS, record)]
        )
        self.cache.clear()
        logger.info(
            "Added %s %s %.2f (%s)",
            record.transaction_id,
            record.type,
            record.amount,
            record.category,
        )

        if record.partner_account:
            self.update_partner_balance(record.partner_account, record.signed_amount)

        self.cache.clear()
        return record

    def update_transaction(self, index: int, tx: Transaction) -> Transaction:
        """
        Rewrite the transaction row at ``index``.

        The partner balances are kept consistent: the effect of the previous
        version is reversed, then the effect of the new one applied.
        """
        validate_transaction(
            NewTransaction(
                date=tx.date,
                type=tx.type,
                category=tx.category,
                amount=tx.amount,
                partner_account=tx.partner_account,
            )
        )
        transactions = self.fetch_transactions()
        self._check_index(transactions, index, "transaction")
        previous = transactions[index]
        # Both partners must exist before the row or any balance changes.
        if previous.partner_account:
            self.find_partner(previous.partner_account)
        if tx.partner_account:
            self.find_partner(tx.partner_account)

        self.store.update_values(
            TRANSACTIONS.row_range(index), [encode_record(TRANSACTIONS, tx)]
        )
        self.cache.clear()

        if previous.partner_account:
            self.update_partner_balance(
                previous.partner_account, -previous.signed_amount
            )
        if tx.partner_account:
            self.update_partner_balance(tx.partner_account, tx.signed_amount)

        self.cache.clear()
        return tx

    def delete_transaction(self, index: int) -> Transaction:
        """Reverse the transaction's balance effect, then delete its row."""
        transactions = self.fetch_transactions()
        self._check_index(transactions, index, "transaction")
        tx = transactions[index]

        if tx.partner_account:
            self.update_partner_balance(tx.partner_account, -tx.signed_amount)

        self._delete_row(TRANSACTIONS, index)
        self.cache.clear()
        logger.info("Deleted transaction %s", tx.transaction_id or f"row {index}")
        return tx

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def _ensure_unique_category(self, category: str, skip_index: Optional[int] = None) -> None:
        for index, budget in enumerate(self.fetch_budgets()):
            if index != skip_index and budget.category == category:
                raise ValidationError(
                    {"Category": f"A budget for {category} already exists"}
                )

    def add_budget(
        self,
        category: str,
        monthly_budget: float,
        quarterly_budget: Optional[float] = None,
        yearly_budget: Optional[float] = None,
    ) -> Budget:
        """
        Append a budget line. Quarterly / yearly ceilings default to 3x and
        12x the monthly one.
        """
        validate_budget(category, monthly_budget, quarterly_budget, yearly_budget)
        self._ensure_unique_category(category)

        monthly = parse_amount(monthly_budget)
        budget = Budget(
            category=category,
            monthly_budget=monthly,
            quarterly_budget=(
                monthly * 3 if quarterly_budget is None else parse_amount(quarterly_budget)
            ),
            yearly_budget=(
                monthly * 12 if yearly_budget is None else parse_amount(yearly_budget)
            ),
            current_spent=0.0,
            remaining=monthly,
        )
        self.store.append_values(BUDGETS.range, [encode_record(BUDGETS, budget)])
        self.cache.clear()
        logger.info("Added budget for %s (%.2f / month)", category, monthly)
        return budget

    def update_budget(self, index: int, budget: Budget) -> Budget:
        validate_budget(budget.category, budget.monthly_budget)
        self._check_index(self.fetch_budgets(), index, "budget")
        self._ensure_unique_category(budget.category, skip_index=index)

        self.store.update_values(BUDGETS.row_range(index), [encode_record(BUDGETS, budget)])
        self.cache.clear()
        return budget

    def delete_budget(self, index: int) -> Budget:
        budgets = self.fetch_budgets()
        self._check_index(budgets, index, "budget")
        self._delete_row(BUDGETS, index)
        self.cache.clear()
        return budgets[index]

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def add_transfer(self, transfer: NewTransfer) -> InterPartnerTransfer:
        """
        Record a transfer, then debit the source and credit the destination.

        Both partners are resolved before anything is written.
        """
        validate_transfer(transfer)
        self.find_partner(transfer.from_partner)
        self.find_partner(transfer.to_partner)

        record = InterPartnerTransfer(
            transfer_id=generate_id(TRANSFER_PREFIX, self.fetch_transfers()),
            date=transfer.date,
            from_partner=transfer.from_partner,
            to_partner=transfer.to_partner,
            amount=parse_amount(transfer.amount),
            purpose=transfer.purpose,
            timestamp=_timestamp(),
        )
        self.store.append_values(TRANSFERS.range, [encode_record(TRANSFERS, record)])
        self.cache.clear()
        logger.info(
            "Transfer %s: %.2f from %s to %s",
            record.transfer_id,
            record.amount,
            record.from_partner,
            record.to_partner,
        )

        self.update_partner_balance(record.from_partner, -record.amount)
        self.update_partner_balance(record.to_partner, record.amount)

        self.cache.clear()
        return record

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_setting(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Value of the first setting named ``name``."""
        for setting in self.fetch_settings():
            if setting.name == name:
                return setting.value
        return default

    def update_setting(self, name: str, value: str) -> Setting:
        """Update the first setting named ``name`` in place, or append it."""
        stamp = _timestamp()
        setting = Setting(name=name, value=str(value), last_modified=stamp)

        for index, existing in enumerate(self.fetch_settings()):
            if existing.name == name:
                row = index + 2
                self.store.update_values(
                    f"{SETTINGS.sheet}!B{row}:C{row}", [[setting.value, stamp]]
                )
                break
        else:
            self.store.append_values(SETTINGS.range, [encode_record(SETTINGS, setting)])

        self.cache.clear()
        return setting
