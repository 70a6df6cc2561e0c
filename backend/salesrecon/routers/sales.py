# backend/salesrecon/routers/sales.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salesrecon.config import get_settings
from salesrecon.core.errors import ImportFileError
from salesrecon.db.session import get_db
from salesrecon.sales.channels import ChannelConfig, get_channel, iter_channels
from salesrecon.schemas.common import fail, meta_now, ok
from salesrecon.schemas.sales import ChannelOut, SaleItemOut, SalesPage
from salesrecon.services.aggregate import aggregate, resolve_date_range, summarize, summary_date_range
from salesrecon.services.importer import import_rows, iter_csv_bytes, read_workbook, rows_for_channel
from salesrecon.services.sales import fetch_for_aggregation, list_sales

router = APIRouter(prefix="/api/sales", tags=["sales"])
logger = structlog.get_logger(__name__)

CSV_MIME = {"text/csv", "application/csv", "application/vnd.ms-excel"}
XLSX_MIME = {"application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"}


def channel_dep(channel: str) -> ChannelConfig:
    return get_channel(channel)


def _storage_failure(what: str, cfg: ChannelConfig):
    logger.exception("sales.storage_error", channel=cfg.key, operation=what)
    return fail(
        code="STORAGE_ERROR",
        message=f"Failed to {what}",
        status_code=500,
        meta=meta_now(channel=cfg.key),
    )


@router.get("/channels")
def list_channels():
    data = [
        ChannelOut(
            key=c.key,
            label=c.label,
            table=c.table_name,
            key_fields=list(c.key_fields),
            discriminators=list(c.discriminators),
        ).dump()
        for c in iter_channels()
    ]
    return ok(data=data, meta=meta_now())


@router.get("/{channel}")
def list_channel_sales(
    cfg: ChannelConfig = Depends(channel_dep),
    limit: int = Query(200, ge=1, le=1000),
    cursor_id: Optional[int] = Query(None, alias="cursorId", ge=1),
    q: Optional[str] = Query(None, max_length=200),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    """Newest-first page of a channel's sales with cursor pagination."""
    rng = resolve_date_range(None, start_date, end_date)
    try:
        rows, next_cursor = list_sales(db, cfg, limit=limit, cursor_id=cursor_id, q=q, date_range=rng)
    except SQLAlchemyError:
        return _storage_failure("fetch sales", cfg)

    page = SalesPage(
        items=[SaleItemOut.from_row(r) for r in rows],
        next_cursor_id=str(next_cursor) if next_cursor is not None else None,
    )
    return ok(
        data=page.dump(),
        meta=meta_now(channel=cfg.key, limit=limit, cursorId=cursor_id, q=q, startDate=start_date, endDate=end_date),
    )


@router.get("/{channel}/counts")
def channel_counts(
    cfg: ChannelConfig = Depends(channel_dep),
    days: Optional[int] = Query(None, ge=0, description="Window ending now; ignored when startDate/endDate given"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    """
    Totals for a channel: row count, amount, unique customers, refunds.

    Rows with no resolvable date are always counted, whatever the window.
    """
    rng = resolve_date_range(days, start_date, end_date)
    try:
        scan = fetch_for_aggregation(db, cfg, get_settings().AGGREGATE_SCAN_CAP, report="counts")
    except SQLAlchemyError:
        return _storage_failure("fetch counts", cfg)

    data = aggregate(scan.rows, rng, cfg.aliases).to_dict()
    data["scanLimitReached"] = scan.truncated
    return ok(
        data=data,
        meta=meta_now(channel=cfg.key, days=days, startDate=rng.start, endDate=rng.end),
    )


@router.get("/{channel}/summary")
def channel_summary(
    cfg: ChannelConfig = Depends(channel_dep),
    days: Optional[int] = Query(None, ge=0, description="Look-back window when startDate is absent (default 90)"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    rng = summary_date_range(days, start_date, end_date)
    try:
        scan = fetch_for_aggregation(db, cfg, get_settings().AGGREGATE_SCAN_CAP, report="summary")
    except SQLAlchemyError:
        return _storage_failure("compute summary", cfg)

    data = summarize(scan.rows, rng, cfg.aliases).to_dict()
    data["scanLimitReached"] = scan.truncated
    return ok(
        data=data,
        meta=meta_now(channel=cfg.key, days=days, startDate=rng.start, endDate=rng.end),
    )


@router.post("/{channel}/import")
async def import_channel_file(
    cfg: ChannelConfig = Depends(channel_dep),
    file: UploadFile = File(..., description="CSV or .xlsx export"),
    sheet: Optional[str] = Query(None, description="Workbook sheet to import"),
    db: Session = Depends(get_db),
):
    """
    Import a spreadsheet into a channel table.

    Rows already present (same row hash) are skipped, so re-uploading the same
    export is a no-op.
    """
    name = (file.filename or "").lower()
    content_type = (file.content_type or "").lower()
    raw_bytes = await file.read()
    if not raw_bytes or not raw_bytes.strip():
        return fail(code="EMPTY_FILE", message="Uploaded file is empty.", status_code=400, meta=meta_now(channel=cfg.key))

    if name.endswith(".xlsx") or content_type in XLSX_MIME:
        try:
            rows = rows_for_channel(read_workbook(raw_bytes, sheet=sheet), cfg, sheet=sheet)
        except ImportFileError as exc:
            return fail(code=exc.code, message=str(exc), status_code=exc.status_code, meta=meta_now(channel=cfg.key))
    elif name.endswith(".csv") or content_type in CSV_MIME:
        rows = iter_csv_bytes(raw_bytes)
    else:
        return fail(
            code="UNSUPPORTED_MEDIA_TYPE",
            message=f"Upload expects .csv or .xlsx; got {content_type or 'unknown'}.",
            status_code=415,
            meta=meta_now(channel=cfg.key),
        )

    try:
        stats = import_rows(db, cfg, rows, chunk_size=get_settings().IMPORT_CHUNK_SIZE)
    except SQLAlchemyError:
        db.rollback()
        return _storage_failure("import sales", cfg)

    return ok(data=stats.dump(), meta=meta_now(channel=cfg.key, filename=file.filename, sheet=sheet))
