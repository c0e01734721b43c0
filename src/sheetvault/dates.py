# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Date helpers for SheetVault.

Dates coming back from the spreadsheet are not homogeneous. Depending on how
a cell was entered and on the value render option, the same day can show up
as:

- a Google Sheets serial day number, e.g. ``"46066"`` (days since
  1899-12-30, optionally with a fractional part for the time of day),
- an ISO timestamp, e.g. ``"2026-02-13T10:30:54.653Z"``,
- a plain date string, e.g. ``"2026-02-13"``.

``parse_date`` normalizes all of them to a naive ``datetime``. Everything
else in the application (analytics, periods, reports) goes through it, so
that two cells representing the same day always land in the same month
bucket.

Formatting helpers are best-effort: they never raise and fall back to the
original text (or to today) when a value cannot be parsed.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

import pandas as pd

# Google Sheets (and Excel 1900 date system) epoch.
SHEETS_EPOCH = datetime(1899, 12, 30)
MS_PER_DAY = 86_400_000

MONTHS: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_SERIAL_RE = re.compile(r"^\d+(\.\d+)?$")


@dataclass(frozen=True)
class MonthBucket:
    """One calendar month, as used by the monthly series and projections."""

    year: int
    month: int  # 1..12

    @property
    def label(self) -> str:
        """Short label such as 'Feb 2026'."""
        return f"{MONTHS[self.month - 1][:3]} {self.year}"

    @property
    def name(self) -> str:
        """Full month name such as 'February'."""
        return MONTHS[self.month - 1]

    def contains(self, value: Optional[datetime]) -> bool:
        if value is None:
            return False
        return value.year == self.year and value.month == self.month


def _now() -> datetime:
    """Return the current local datetime (isolated for easier testing)."""
    return datetime.now()


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return _now().date()


def parse_date(value: Any) -> Optional[datetime]:
    """
    Normalize a spreadsheet date cell into a naive ``datetime``.

    Rules
    -----
    - empty / missing value -> now,
    - ``date`` / ``datetime`` -> returned as a naive datetime,
    - a purely numeric value (digits with an optional decimal part) ->
      Google Sheets serial: ``SHEETS_EPOCH + serial * 86_400_000 ms``,
    - anything else -> generic parsing through ``pandas.to_datetime``;
      timezone-aware results are converted to UTC and made naive.

    Returns
    -------
    datetime or None
        None when a non-numeric string cannot be parsed. Callers treat such
        a value as matching no month at all.
    """
    if value is None:
        return _now()

    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 0:
            return None
        return SHEETS_EPOCH + timedelta(milliseconds=float(value) * MS_PER_DAY)

    text = str(value).strip()
    if not text:
        return _now()

    if _SERIAL_RE.match(text):
        serial = float(text)
        return SHEETS_EPOCH + timedelta(milliseconds=serial * MS_PER_DAY)

    try:
        ts = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        return None

    if pd.isna(ts):
        return None

    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)

    return ts.to_pydatetime()


def format_date(value: Any) -> str:
    """
    Format a date cell for display, e.g. '13 Feb 2026'.

    Returns an empty string for empty input and the original text when the
    value cannot be parsed.
    """
    if value is None or str(value).strip() == "":
        return ""

    parsed = parse_date(value)
    if parsed is None:
        return str(value)
    return parsed.strftime("%d %b %Y")


def format_date_input(value: Any) -> str:
    """
    Format a date cell as an ISO 'YYYY-MM-DD' string for form inputs.

    Falls back to today's date when the value is empty or unparseable.
    """
    if value is None or str(value).strip() == "":
        return today_iso()

    parsed = parse_date(value)
    if parsed is None:
        return today_iso()
    return parsed.date().isoformat()


def today_iso() -> str:
    """Today's date as 'YYYY-MM-DD'."""
    return _today().isoformat()


def month_year(value: Any) -> str:
    """Full month and year of a date cell, e.g. 'February 2026'."""
    parsed = parse_date(value)
    if parsed is None:
        return ""
    return f"{MONTHS[parsed.month - 1]} {parsed.year}"


def month_bucket(value: date) -> MonthBucket:
    return MonthBucket(year=value.year, month=value.month)


def shift_month(bucket: MonthBucket, offset: int) -> MonthBucket:
    """Return the calendar month ``offset`` months after ``bucket`` (may be < 0)."""
    index = bucket.year * 12 + (bucket.month - 1) + offset
    return MonthBucket(year=index // 12, month=index % 12 + 1)


def last_n_months(n: int, today: Optional[date] = None) -> list[MonthBucket]:
    """
    The ``n`` most recent calendar months, oldest first, ending with the
    month of ``today``.
    """
    current = month_bucket(today or _today())
    return [shift_month(current, -i) for i in range(n - 1, -1, -1)]


def is_current_month(value: Any, today: Optional[date] = None) -> bool:
    """True if the date cell falls in the same calendar month/year as today."""
    return month_bucket(today or _today()).contains(parse_date(value))


def months_ago(months: int, now: Optional[datetime] = None) -> datetime:
    """
    The instant ``months`` calendar months before ``now``.

    The day of month is clamped to the end of the target month
    (e.g. 31 August minus 6 months is 28/29 February).
    """
    ts = pd.Timestamp(now or _now()) - pd.DateOffset(months=months)
    return ts.to_pydatetime()
