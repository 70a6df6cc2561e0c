from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

import salesrecon.services.backfill as backfill_mod
from salesrecon.models import OfflineSale, OnlineSale
from salesrecon.sales.channels import get_channel
from salesrecon.services.backfill import BackfillStats, backfill_channel, backfill_channels, derive_fields

from _helpers import add_sales


def test_derive_fields_prefers_raw_amount_and_falls_back_to_rate_times_qty():
    assert derive_fields({"Amount": "120.555", "Date": "2024-02-03"}) == {
        "amount": Decimal("120.56"),
        "date": datetime(2024, 2, 3, tzinfo=timezone.utc),
    }
    derived = derive_fields({"Rate": "40", "Qty": "3"})
    assert derived == {"amount": Decimal("120.00"), "rate": Decimal("40.00"), "qty": 3}


def test_derive_fields_never_promotes_month_year_to_a_date():
    assert "date" not in derive_fields({"Month": "Jan", "Year": "2024"})
    assert derive_fields("garbage") == {}
    assert "qty" not in derive_fields({"Qty": "1.5"})


def test_backfill_fills_only_null_columns(db):
    raw = {"Amount": "99", "Date": "2024-03-01", "Rate": "33", "Qty": "3"}
    (row,) = add_sales(db, OnlineSale, {"amount": 10, "raw_json": raw})

    stats = backfill_channel(db, get_channel("online"))

    db.refresh(row)
    assert stats.processed == 1 and stats.updated == 1 and stats.failed == 0
    assert row.amount == Decimal("10")
    assert row.date.date() == date(2024, 3, 1)
    assert row.rate == Decimal("33")
    assert row.qty == 3
    assert row.raw_json == raw


def test_backfill_walks_batches_and_terminates_with_unresolvable_rows(db):
    add_sales(
        db,
        OnlineSale,
        {"raw_json": {"Amount": "10", "Date": "2024-01-01"}},
        {"raw_json": {"Note": "nothing usable"}},
        {"raw_json": {"Rate": "5", "Qty": "2"}},
        {"raw_json": {}},
        {"raw_json": {"Selling Price": "7", "Txn Date": "2024-01-09"}},
    )

    stats = backfill_channel(db, get_channel("online"), limit=2)

    assert stats.processed == 5
    assert stats.updated == 3
    assert stats.batches == 3
    assert isinstance(stats, BackfillStats)
    amounts = db.execute(select(OnlineSale.amount).order_by(OnlineSale.id)).scalars().all()
    assert amounts == [Decimal("10"), None, Decimal("10"), None, Decimal("7")]

    # second run revisits only what is still pending and changes nothing
    again = backfill_channel(db, get_channel("online"), limit=2)
    assert again.updated == 0
    assert again.processed == 3


def test_backfill_row_failure_is_logged_and_skipped(db, monkeypatch):
    rows = add_sales(
        db,
        OnlineSale,
        {"raw_json": {"Amount": "1"}},
        {"raw_json": {"Amount": "2"}},
        {"raw_json": {"Amount": "3"}},
    )
    bad_id = rows[1].id
    real_apply = backfill_mod.apply_backfill

    def flaky_apply(row, aliases):
        if row.id == bad_id:
            raise SQLAlchemyError("write conflict")
        return real_apply(row, aliases)

    monkeypatch.setattr(backfill_mod, "apply_backfill", flaky_apply)
    stats = backfill_channel(db, get_channel("online"))

    assert stats.failed == 1
    assert stats.updated == 2
    amounts = db.execute(select(OnlineSale.amount).order_by(OnlineSale.id)).scalars().all()
    assert amounts == [Decimal("1"), None, Decimal("3")]


def test_backfill_uses_channel_aliases(db):
    add_sales(db, OfflineSale, {"raw_json": {"BOOKRATE": "45", "OUT": "2", "Trnsdocdate": "2023-12-01"}})
    (stats,) = backfill_channels(db, [get_channel("offline")])
    row = db.execute(select(OfflineSale)).scalar_one()
    assert stats.updated == 1
    assert row.amount == Decimal("45")
    assert row.qty == 2
    assert row.date.date() == date(2023, 12, 1)
