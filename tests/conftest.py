import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pytest

import sheetvault.dates as dates
from sheetvault.cache import TTLCache
from sheetvault.config import (
    DEFAULT_PARTNERS,
    AppConfig,
    AuthConfig,
    CompanyConfig,
    RetryConfig,
    SpreadsheetConfig,
)
from sheetvault.errors import RemoteStoreError
from sheetvault.repository import VaultRepository
from sheetvault.schema import COLLECTIONS, PARTNERS
from sheetvault.sheets import SheetInfo

FIXED_NOW = datetime(2026, 2, 15, 12, 0, 0)

_CELL_RE = re.compile(r"^([A-Z]+)(\d+)")


def _column_index(letters: str) -> int:
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


class FakeClock:
    """Manually advanced clock for cache / token tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    """
    In-memory ``SheetStore``.

    ``sheets`` maps a sheet title to its rows (header row included).
    ``reads`` / ``writes`` count the calls so cache behaviour is observable.
    Setting ``fail_with`` makes every call raise that exception.
    """

    def __init__(self, sheets: Optional[dict[str, list[list[Any]]]] = None) -> None:
        self.sheets: dict[str, list[list[Any]]] = {}
        self.sheet_ids: dict[str, int] = {}
        self.reads = 0
        self.writes = 0
        self.fail_with: Optional[Exception] = None
        for title, rows in (sheets or {}).items():
            self._add_sheet(title)
            self.sheets[title] = [list(r) for r in rows]

    def _add_sheet(self, title: str) -> None:
        self.sheets.setdefault(title, [])
        self.sheet_ids[title] = 100 + len(self.sheet_ids)

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    @staticmethod
    def _split(range_: str) -> tuple[str, str]:
        sheet, _, cells = range_.partition("!")
        return sheet, cells

    def rows(self, title: str) -> list[list[Any]]:
        """Data rows of a sheet, header excluded."""
        return self.sheets[title][1:]

    # -- SheetStore --------------------------------------------------------

    def get_values(self, range_: str) -> list[list[Any]]:
        self._check()
        self.reads += 1
        sheet, _ = self._split(range_)
        if sheet not in self.sheets:
            raise RemoteStoreError(f"Unable to parse range: {range_}", 400, False)
        return [list(r) for r in self.sheets[sheet]]

    def append_values(self, range_: str, values) -> None:
        self._check()
        self.writes += 1
        sheet, _ = self._split(range_)
        self.sheets[sheet].extend(list(r) for r in values)

    def update_values(self, range_: str, values) -> None:
        self._check()
        self.writes += 1
        sheet, cells = self._split(range_)
        match = _CELL_RE.match(cells)
        assert match, f"unsupported range {range_}"
        col0 = _column_index(match.group(1))
        row0 = int(match.group(2)) - 1

        rows = self.sheets[sheet]
        for offset, new_values in enumerate(values):
            r = row0 + offset
            while len(rows) <= r:
                rows.append([])
            row = rows[r]
            while len(row) < col0 + len(new_values):
                row.append("")
            for c, value in enumerate(new_values):
                row[col0 + c] = value

    def batch_update(self, requests_) -> None:
        self._check()
        self.writes += 1
        for request in requests_:
            if "addSheet" in request:
                self._add_sheet(request["addSheet"]["properties"]["title"])
            elif "deleteDimension" in request:
                rng = request["deleteDimension"]["range"]
                title = next(
                    t for t, sid in self.sheet_ids.items() if sid == rng["sheetId"]
                )
                del self.sheets[title][rng["startIndex"] : rng["endIndex"]]
            else:
                raise AssertionError(f"unsupported request {request}")

    def list_sheets(self) -> list[SheetInfo]:
        self._check()
        return [SheetInfo(title, sid) for title, sid in self.sheet_ids.items()]


def make_store(partners=None, transactions=None) -> FakeStore:
    """A store with every sheet and its header row, plus optional data rows."""
    sheets = {schema.sheet: [schema.headers] for schema in COLLECTIONS}
    if partners is None:
        partners = [
            ["P001", "Alice", "1000", "", "alice@example.com", ""],
            ["P002", "Bob", "500", "", "bob@example.com", ""],
            ["P003", "Business Account", "0", "", "", ""],
        ]
    sheets[PARTNERS.sheet].extend(partners)
    if transactions:
        sheets["Transactions"].extend(transactions)
    return FakeStore(sheets)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text or ("" if payload is None else str(payload))
        self.content = text.encode() if payload is None else b"{}"

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeHTTPSession:
    """Stands in for ``requests.Session``: replays queued responses."""

    def __init__(self, responses=None) -> None:
        self.headers: dict[str, str] = {}
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("GET", url, **kwargs)


@pytest.fixture
def frozen_now(monkeypatch):
    """Freeze 'now' at FIXED_NOW for every module going through sheetvault.dates."""
    monkeypatch.setattr(dates, "_now", lambda: FIXED_NOW)
    return FIXED_NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return make_store()


@pytest.fixture
def repo(store, clock, frozen_now):
    return VaultRepository(store, TTLCache(30.0, clock=clock))


def make_config(tmp_path: Path, allowed=("owner@example.com",), **overrides: Any) -> AppConfig:
    """An AppConfig pointing every file at ``tmp_path``."""
    values: dict[str, Any] = dict(
        spreadsheet=SpreadsheetConfig("sheet-123"),
        auth=AuthConfig(allowed_emails=tuple(allowed), token_file=tmp_path / "token.json"),
        cache_ttl_seconds=30.0,
        retry=RetryConfig(attempts=1, base_delay_seconds=0.0),
        refresh_interval_seconds=30.0,
        company=CompanyConfig(),
        default_partners=DEFAULT_PARTNERS,
        display_mode="table",
        decimals=2,
        output_dir=tmp_path / "out",
    )
    values.update(overrides)
    return AppConfig(**values)
