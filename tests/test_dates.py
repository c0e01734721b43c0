from datetime import date, datetime

import pytest

import sheetvault.dates as dates
from sheetvault.dates import MonthBucket


def test_serial_number_parses_to_calendar_date() -> None:
    """A bare numeral is a day count since 1899-12-30."""
    assert dates.parse_date("46066") == datetime(2026, 2, 13)
    assert dates.parse_date("45658") == datetime(2025, 1, 1)


def test_fractional_serial_keeps_time_of_day() -> None:
    assert dates.parse_date("45658.5") == datetime(2025, 1, 1, 12, 0)


def test_serial_and_iso_format_identically() -> None:
    assert dates.format_date("46066") == dates.format_date("2026-02-13")
    assert dates.format_date("46066") == "13 Feb 2026"


def test_iso_timestamp_is_parsed() -> None:
    assert dates.parse_date("2026-02-13T10:30:54.653") == datetime(
        2026, 2, 13, 10, 30, 54, 653000
    )


def test_timezone_aware_input_is_converted_to_naive_utc() -> None:
    assert dates.parse_date("2026-02-13T10:00:00+05:30") == datetime(2026, 2, 13, 4, 30)


def test_numeric_cells_are_serials() -> None:
    assert dates.parse_date(46066) == datetime(2026, 2, 13)
    assert dates.parse_date(-1) is None


def test_empty_value_means_now(frozen_now) -> None:
    assert dates.parse_date("") == frozen_now
    assert dates.parse_date(None) == frozen_now


def test_unparseable_string_returns_none() -> None:
    assert dates.parse_date("not a date") is None


def test_format_date_is_best_effort() -> None:
    assert dates.format_date("") == ""
    assert dates.format_date("garbage") == "garbage"


def test_format_date_input(frozen_now) -> None:
    assert dates.format_date_input("46066") == "2026-02-13"
    assert dates.format_date_input("") == "2026-02-15"
    assert dates.format_date_input("garbage") == "2026-02-15"
    assert dates.today_iso() == "2026-02-15"


def test_month_year_uses_full_month_name() -> None:
    assert dates.month_year("46066") == "February 2026"
    assert dates.month_year("garbage") == ""


def test_month_bucket_label_and_contains() -> None:
    bucket = MonthBucket(2026, 2)
    assert bucket.label == "Feb 2026"
    assert bucket.name == "February"
    assert bucket.contains(datetime(2026, 2, 28, 23, 59))
    assert not bucket.contains(datetime(2025, 2, 1))
    assert not bucket.contains(None)


@pytest.mark.parametrize(
    "bucket, offset, expected",
    [
        (MonthBucket(2026, 1), -1, MonthBucket(2025, 12)),
        (MonthBucket(2026, 12), 1, MonthBucket(2027, 1)),
        (MonthBucket(2026, 2), -14, MonthBucket(2024, 12)),
        (MonthBucket(2026, 2), 0, MonthBucket(2026, 2)),
    ],
)
def test_shift_month(bucket, offset, expected) -> None:
    assert dates.shift_month(bucket, offset) == expected


def test_last_n_months_oldest_first_across_year_boundary() -> None:
    months = dates.last_n_months(3, today=date(2026, 1, 10))
    assert [m.label for m in months] == ["Nov 2025", "Dec 2025", "Jan 2026"]


def test_is_current_month() -> None:
    today = date(2026, 2, 15)
    assert dates.is_current_month("2026-02-01", today=today)
    assert dates.is_current_month("46066", today=today)
    assert not dates.is_current_month("2025-02-01", today=today)
    assert not dates.is_current_month("garbage", today=today)


def test_months_ago_clamps_to_month_end() -> None:
    assert dates.months_ago(6, datetime(2026, 8, 31)) == datetime(2026, 2, 28)
    assert dates.months_ago(6, datetime(2026, 2, 15, 12)) == datetime(2025, 8, 15, 12)
