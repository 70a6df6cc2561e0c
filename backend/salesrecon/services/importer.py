from __future__ import annotations

import csv
import io
import zipfile
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import pandas as pd
import structlog
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from salesrecon.core.errors import ImportFileError
from salesrecon.observability.metrics import IMPORT_ROWS
from salesrecon.sales.channels import ChannelConfig, channel_for_sheet
from salesrecon.schemas.sales import ImportStats
from salesrecon.services.reconcile import json_safe, map_row

logger = structlog.get_logger(__name__)

MAX_WARNINGS = 50


# ---------------------------------------------------------------------------
# Readers (bytes -> row dicts)
# ---------------------------------------------------------------------------

def _is_blank(row: Dict[str, Any]) -> bool:
    return not any(str(v if v is not None else "").strip() for v in row.values())


def iter_csv_bytes(file_bytes: bytes) -> Iterator[Dict[str, Any]]:
    """Yield dictionaries from CSV bytes (UTF-8/BOM tolerant), skipping blank lines."""
    text = file_bytes.decode("utf-8-sig", errors="replace")
    for row in csv.DictReader(io.StringIO(text)):
        if _is_blank(row):
            continue
        yield row


def read_workbook(file_bytes: bytes, sheet: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
    """
    Read every sheet (or only ``sheet``) of an .xlsx workbook into row dicts.

    Empty cells become ``None``; date cells stay timestamps until
    ``json_safe`` turns them into ISO strings at mapping time.
    """
    try:
        frames = pd.read_excel(io.BytesIO(file_bytes), sheet_name=sheet if sheet else None, engine="openpyxl")
    except (ValueError, KeyError, OSError, zipfile.BadZipFile, InvalidFileException) as exc:
        raise ImportFileError(f"Could not read workbook: {exc}") from exc
    if isinstance(frames, pd.DataFrame):
        frames = {sheet or "Sheet1": frames}

    out: Dict[str, List[Dict[str, Any]]] = {}
    for name, frame in frames.items():
        frame = frame.dropna(how="all")
        records = frame.astype(object).where(frame.notna(), None).to_dict(orient="records")
        out[str(name)] = [{str(k): json_safe(v) for k, v in r.items()} for r in records]
    return out


def rows_for_channel(
    workbook: Dict[str, List[Dict[str, Any]]],
    channel: ChannelConfig,
    sheet: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Rows of ``workbook`` that belong to ``channel``.

    An explicit ``sheet`` or a single-sheet workbook is taken as-is. Otherwise
    only sheets whose name maps to ``channel`` are used.
    """
    if sheet is not None or len(workbook) == 1:
        return [row for rows in workbook.values() for row in rows]
    picked = [name for name in workbook if channel_for_sheet(name) is channel]
    if not picked:
        raise ImportFileError(
            f"No sheet for channel '{channel.key}' in workbook (sheets: {', '.join(workbook)})."
        )
    return [row for name in picked for row in workbook[name]]


# ---------------------------------------------------------------------------
# Insert
# ---------------------------------------------------------------------------

def _insert_ignoring_duplicates(db: Session, channel: ChannelConfig, rows: List[Dict[str, Any]]) -> int:
    dialect = db.bind.dialect.name if db.bind is not None else ""
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    stmt = insert(channel.model).values(rows).on_conflict_do_nothing(index_elements=["row_hash"])
    result = db.execute(stmt)
    return int(result.rowcount or 0)


def import_rows(
    db: Session,
    channel: ChannelConfig,
    rows: Iterable[Dict[str, Any]],
    *,
    chunk_size: int = 500,
) -> ImportStats:
    """
    Map raw rows into ``channel``'s table, skipping ones already imported.

    Rows whose ``row_hash`` already exists, either in the table or earlier in
    this same input, are counted as duplicates and not written. A row that
    fails to map is counted and reported as a warning; it does not stop the
    import.
    """
    stats = ImportStats(channel=channel.key)
    seen: set[str] = set()
    buffer: List[Dict[str, Any]] = []

    def flush() -> None:
        nonlocal buffer
        if not buffer:
            return
        inserted = _insert_ignoring_duplicates(db, channel, buffer)
        stats.inserted += inserted
        stats.duplicates += len(buffer) - inserted
        logger.info("import.chunk", channel=channel.key, size=len(buffer), inserted=inserted)
        buffer = []

    trans_ctx = db.begin_nested() if db.in_transaction() else db.begin()
    with trans_ctx:
        for index, raw in enumerate(rows):
            stats.rows_seen += 1
            try:
                mapped = map_row(raw, channel)
            except (TypeError, ValueError, ArithmeticError, AttributeError) as exc:
                stats.failed += 1
                if len(stats.warnings) < MAX_WARNINGS:
                    stats.warnings.append(f"row {index}: {exc}")
                continue

            if mapped["row_hash"] in seen:
                stats.duplicates += 1
                continue
            seen.add(mapped["row_hash"])
            buffer.append(mapped)
            if len(buffer) >= chunk_size:
                flush()
        flush()

    if db.in_transaction():
        db.commit()

    IMPORT_ROWS.labels(channel=channel.key, outcome="inserted").inc(stats.inserted)
    IMPORT_ROWS.labels(channel=channel.key, outcome="duplicate").inc(stats.duplicates)
    IMPORT_ROWS.labels(channel=channel.key, outcome="failed").inc(stats.failed)
    logger.info("import.done", **stats.model_dump())
    return stats


def truncate_channels(db: Session, channels: Iterable[ChannelConfig]) -> List[Tuple[str, int]]:
    """Delete every row of the given channel tables, ahead of a clean re-import."""
    removed: List[Tuple[str, int]] = []
    for channel in channels:
        result = db.execute(delete(channel.model))
        removed.append((channel.key, int(result.rowcount or 0)))
        logger.info("truncate.ok", channel=channel.key, table=channel.table_name, rows=result.rowcount)
    db.commit()
    return removed


__all__ = [
    "MAX_WARNINGS",
    "import_rows",
    "iter_csv_bytes",
    "read_workbook",
    "rows_for_channel",
    "truncate_channels",
]
