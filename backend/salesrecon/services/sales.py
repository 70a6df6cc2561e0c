# backend/salesrecon/services/sales.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

import structlog
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from salesrecon.observability.metrics import AGGREGATE_ROWS
from salesrecon.sales.channels import ChannelConfig
from salesrecon.services.aggregate import DateRange
from salesrecon.services.dates import resolve_date

logger = structlog.get_logger(__name__)

# Upper bound on rows fetched when a listing is filtered by resolved date.
LIST_SCAN_CEILING = 5000


@dataclass
class ScanResult:
    rows: List[Any]
    truncated: bool


def fetch_for_aggregation(db: Session, channel: ChannelConfig, cap: int, report: str = "counts") -> ScanResult:
    """
    Load up to ``cap`` rows of a channel for in-process aggregation.

    ``cap`` is a deliberate ceiling; when it is reached the result says so and
    a warning is logged so callers never present a silently partial figure.
    """
    model = channel.model
    rows = db.execute(select(model).order_by(model.id.asc()).limit(cap)).scalars().all()
    truncated = len(rows) >= cap
    AGGREGATE_ROWS.labels(channel=channel.key, report=report).inc(len(rows))
    if truncated:
        logger.warning("sales.scan_cap_hit", channel=channel.key, report=report, cap=cap)
    return ScanResult(rows=list(rows), truncated=truncated)


def list_sales(
    db: Session,
    channel: ChannelConfig,
    *,
    limit: int = 200,
    cursor_id: Optional[int] = None,
    q: Optional[str] = None,
    date_range: Optional[DateRange] = None,
) -> tuple[List[Any], Optional[int]]:
    """
    Newest-first page of a channel's rows.

    ``cursor_id`` is the last id of the previous page. With a date range the
    query over-fetches and filters on the resolved date; rows without any
    resolvable date are left out of filtered listings.
    """
    model = channel.model
    stmt = select(model).order_by(model.id.desc())
    if cursor_id is not None:
        stmt = stmt.where(model.id < cursor_id)
    if q:
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(or_(model.title.ilike(pattern), model.customer_name.ilike(pattern)))

    filtering = date_range is not None and not date_range.is_open
    fetch = min(limit * 10, LIST_SCAN_CEILING) if filtering else limit
    rows = db.execute(stmt.limit(fetch)).scalars().all()

    if filtering:
        kept = []
        for row in rows:
            when = resolve_date(row, channel.aliases)
            if when is not None and date_range.contains(when):
                kept.append(row)
                if len(kept) >= limit:
                    break
        rows = kept

    next_cursor = rows[-1].id if rows else None
    return list(rows), next_cursor


__all__ = ["ScanResult", "fetch_for_aggregation", "list_sales", "LIST_SCAN_CEILING"]
