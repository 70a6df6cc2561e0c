from __future__ import annotations

from datetime import date, datetime, timezone

import pandas as pd
import pytest

from salesrecon.services.dates import month_index, period_date, raw_date, resolve_date, to_date

UTC = timezone.utc


def test_month_only_record_resolves_to_first_of_month():
    assert resolve_date({"month": "Sept", "year": 2023}) == datetime(2023, 9, 1, tzinfo=UTC)


def test_structured_date_beats_raw_date():
    record = {
        "date": datetime(2024, 3, 5, 10, 0, tzinfo=UTC),
        "raw_json": {"Date": "2020-01-01"},
        "month": "Jan",
        "year": 2019,
    }
    assert resolve_date(record) == datetime(2024, 3, 5, 10, 0, tzinfo=UTC)


def test_raw_alias_beats_month_year():
    record = {"raw_json": {"Txn Date": "2024-02-10"}, "month": "Jan", "year": 2019}
    assert resolve_date(record).date() == date(2024, 2, 10)


def test_iso_looking_raw_value_is_used_last():
    record = {"raw_json": {"created": "2024-07-01T08:30:00Z", "note": "x"}}
    assert resolve_date(record) == datetime(2024, 7, 1, 8, 30, tzinfo=UTC)


def test_unparseable_everything_is_undated():
    record = {"raw_json": {"Date": "not a date"}, "month": "Smarch", "year": 2023}
    assert resolve_date(record) is None
    assert resolve_date({"month": "Jan", "year": 0}) is None
    assert resolve_date({"raw_json": "corrupt"}) is None


@pytest.mark.parametrize(
    "name,expected",
    [("jan", 1), ("SEPT", 9), ("Sep", 9), ("September", 9), (" dec ", 12), ("foo", None), (3, None)],
)
def test_month_index(name, expected):
    assert month_index(name) == expected


def test_to_date_handles_excel_serials_and_naive_datetimes():
    assert to_date(45292) == datetime(2024, 1, 1, tzinfo=UTC)
    assert to_date(datetime(2024, 1, 1, 12)) == datetime(2024, 1, 1, 12, tzinfo=UTC)
    assert to_date(date(2024, 1, 2)) == datetime(2024, 1, 2, tzinfo=UTC)
    assert to_date(pd.Timestamp("2024-01-03")) == datetime(2024, 1, 3, tzinfo=UTC)
    assert to_date(-5) is None
    assert to_date("12345") is None
    assert to_date(pd.NaT) is None


def test_raw_date_uses_channel_aliases():
    from salesrecon.sales.channels import get_channel

    offline = get_channel("offline")
    raw = {"Trnsdocdate": "2023-11-20"}
    assert raw_date(raw) is None
    assert raw_date(raw, offline.aliases).date() == date(2023, 11, 20)


def test_period_date_rejects_bad_year():
    assert period_date("Mar", "2022") == datetime(2022, 3, 1, tzinfo=UTC)
    assert period_date("Mar", "20.5") is None
    assert period_date("Mar", None) is None
