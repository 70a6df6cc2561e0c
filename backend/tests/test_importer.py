from __future__ import annotations

import io

import pandas as pd
import pytest
from sqlalchemy import func, select

from salesrecon.core.errors import ImportFileError
from salesrecon.models import LokEventSale, OfflineSale, OnlineSale
from salesrecon.sales.channels import channel_for_sheet, get_channel
from salesrecon.services.importer import (
    import_rows,
    iter_csv_bytes,
    read_workbook,
    rows_for_channel,
    truncate_channels,
)

ONLINE_ROWS = [
    {"Order No": "A-1", "Title": "Godaan", "Amount": "100", "Date": "2024-01-05", "Customer Name": "Asha"},
    {"Order No": "A-2", "Title": "Nirmala", "Amount": "80", "Date": "2024-01-06", "Customer Name": "Ravi"},
    {"Order No": "A-3", "Title": "Gaban", "Rate": "60", "Qty": "2", "Date": "2024-01-07", "Customer Name": "Meera"},
]


def _workbook_bytes(sheets):
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, index=False)
    return buf.getvalue()


def _count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_import_inserts_then_reimport_is_a_noop(db):
    online = get_channel("online")

    first = import_rows(db, online, ONLINE_ROWS)
    assert (first.rows_seen, first.inserted, first.duplicates, first.failed) == (3, 3, 0, 0)

    second = import_rows(db, online, ONLINE_ROWS)
    assert second.inserted == 0
    assert second.duplicates == 3
    assert _count(db, OnlineSale) == 3


def test_duplicates_within_one_file_are_dropped(db):
    rows = ONLINE_ROWS + [dict(ONLINE_ROWS[0])]
    stats = import_rows(db, get_channel("online"), rows, chunk_size=2)
    assert stats.inserted == 3
    assert stats.duplicates == 1


def test_imported_rows_are_mapped(db):
    import_rows(db, get_channel("online"), ONLINE_ROWS)
    gaban = db.execute(select(OnlineSale).where(OnlineSale.order_no == "A-3")).scalar_one()
    assert float(gaban.amount) == 120.0
    assert gaban.qty == 2
    assert gaban.raw_json["Title"] == "Gaban"
    assert len(gaban.row_hash) == 64


def test_unmappable_row_is_counted_not_fatal(db, monkeypatch):
    import salesrecon.services.importer as importer_mod

    real_map = importer_mod.map_row

    def picky_map(raw, channel):
        if raw.get("Order No") == "A-2":
            raise ValueError("bad cell")
        return real_map(raw, channel)

    monkeypatch.setattr(importer_mod, "map_row", picky_map)
    stats = import_rows(db, get_channel("online"), ONLINE_ROWS)
    assert stats.failed == 1
    assert stats.inserted == 2
    assert stats.warnings == ["row 1: bad cell"]


def test_iter_csv_bytes_handles_bom_and_blank_lines():
    data = "\ufeffOrder No,Amount\nA-1,10\n,\nA-2,20\n".encode("utf-8")
    rows = list(iter_csv_bytes(data))
    assert rows == [{"Order No": "A-1", "Amount": "10"}, {"Order No": "A-2", "Amount": "20"}]


def test_read_workbook_and_route_sheets_to_channels():
    data = _workbook_bytes(
        {
            "Online Sales": ONLINE_ROWS[:1],
            "Offline-CashUPICC Sales": [{"Item Code": "X1", "BOOKRATE": 50, "OUT": 1}],
            "Lok Event": [{"Item Name": "Madhushala", "Rate": 200, "Qty": 1}],
        }
    )
    book = read_workbook(data)
    assert set(book) == {"Online Sales", "Offline-CashUPICC Sales", "Lok Event"}
    assert book["Offline-CashUPICC Sales"][0]["BOOKRATE"] == 50

    assert rows_for_channel(book, get_channel("lok")) == book["Lok Event"]
    with pytest.raises(ImportFileError):
        rows_for_channel(book, get_channel("rajradha"))


def test_read_workbook_rejects_garbage():
    with pytest.raises(ImportFileError):
        read_workbook(b"definitely not a zip file")


def test_channel_for_sheet():
    assert channel_for_sheet("Online Orders").key == "online"
    assert channel_for_sheet(" offline-CashUPICC Sales").key == "offline"
    assert channel_for_sheet("RajRadha 2024").key == "rajradha"
    assert channel_for_sheet("Raj Radha Mela").key == "rajradha"
    assert channel_for_sheet("LOK event").key == "lok"
    assert channel_for_sheet("Summary") is None


def test_truncate_channels(db):
    import_rows(db, get_channel("online"), ONLINE_ROWS)
    import_rows(db, get_channel("lok"), [{"Item Name": "Madhushala", "Rate": "200", "Qty": "1"}])

    removed = truncate_channels(db, [get_channel("online"), get_channel("offline")])

    assert removed == [("online", 3), ("offline", 0)]
    assert _count(db, OnlineSale) == 0
    assert _count(db, OfflineSale) == 0
    assert _count(db, LokEventSale) == 1
