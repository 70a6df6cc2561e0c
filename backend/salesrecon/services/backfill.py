"""
Backfill of derived sale columns from stored ``raw_json``.

Earlier, looser imports left ``amount``/``date`` (and often ``rate``/``qty``)
null even though the raw row holds them. This job walks those rows in id
order and fills in whatever can be derived, leaving everything else alone.
Re-running it is safe: the same raw row always derives the same values.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Optional

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salesrecon.observability.metrics import BACKFILL_ROWS
from salesrecon.sales.channels import ChannelConfig
from salesrecon.services.dates import raw_date
from salesrecon.services.fields import DEFAULT_ALIASES, FieldAliases, as_decimal, to_int

logger = structlog.get_logger(__name__)

_CENTS = Decimal("0.01")
BACKFILL_COLUMNS = ("amount", "rate", "qty", "date")


@dataclass
class BackfillStats:
    channel: str
    processed: int = 0
    updated: int = 0
    failed: int = 0
    batches: int = 0
    last_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _money(value: Any) -> Optional[Decimal]:
    dec = as_decimal(value)
    return None if dec is None else dec.quantize(_CENTS, rounding=ROUND_HALF_UP)


def derive_fields(raw_json: Any, aliases: FieldAliases = DEFAULT_ALIASES) -> Dict[str, Any]:
    """
    Values derivable from a raw row, keyed by column; unresolved ones omitted.

    The date comes from the raw row itself. A Month/Year pair is not promoted
    to a day-precise date here; that fallback stays a read-time concern.
    """
    derived: Dict[str, Any] = {}
    rate = _money(aliases.pick(raw_json, "rate"))
    qty = to_int(aliases.pick(raw_json, "qty"))
    amount = _money(aliases.pick(raw_json, "amount"))
    if amount is None and rate is not None and qty is not None:
        amount = (rate * qty).quantize(_CENTS, rounding=ROUND_HALF_UP)
    when: Optional[datetime] = raw_date(raw_json, aliases)

    for name, value in (("amount", amount), ("rate", rate), ("qty", qty), ("date", when)):
        if value is not None:
            derived[name] = value
    return derived


def apply_backfill(row: Any, aliases: FieldAliases = DEFAULT_ALIASES) -> Dict[str, Any]:
    """Set derived values on ``row`` for columns that are currently null. Returns the changes."""
    changes = {
        name: value
        for name, value in derive_fields(row.raw_json, aliases).items()
        if getattr(row, name) is None
    }
    for name, value in changes.items():
        setattr(row, name, value)
    return changes


def _pending(channel: ChannelConfig, after_id: Optional[int], limit: int):
    model = channel.model
    stmt = select(model).where(or_(model.amount.is_(None), model.date.is_(None)))
    if after_id is not None:
        stmt = stmt.where(model.id > after_id)
    return stmt.order_by(model.id.asc()).limit(limit)


def backfill_channel(db: Session, channel: ChannelConfig, limit: int = 1000) -> BackfillStats:
    """
    Fill null ``amount``/``rate``/``qty``/``date`` of one channel from ``raw_json``.

    Batches of ``limit`` rows are selected by ascending id after the last id
    seen, so rows that stay unresolved are not revisited in the same run.
    Each row is written inside its own savepoint: a failing row is logged and
    skipped without losing the rest of its batch. Storage errors outside a
    row (selecting or committing a batch) propagate.
    """
    stats = BackfillStats(channel=channel.key)
    log = logger.bind(channel=channel.key)

    while True:
        batch = db.execute(_pending(channel, stats.last_id, limit)).scalars().all()
        if not batch:
            break

        for row in batch:
            stats.processed += 1
            row_id = row.id
            try:
                with db.begin_nested():
                    changes = apply_backfill(row, channel.aliases)
                    db.flush()
            except SQLAlchemyError as exc:
                stats.failed += 1
                BACKFILL_ROWS.labels(channel=channel.key, outcome="failed").inc()
                log.warning("backfill.row_failed", row_id=row_id, error=str(exc))
                continue
            outcome = "updated" if changes else "unresolved"
            if changes:
                stats.updated += 1
            BACKFILL_ROWS.labels(channel=channel.key, outcome=outcome).inc()

        stats.batches += 1
        stats.last_id = batch[-1].id
        db.commit()
        log.info(
            "backfill.batch",
            processed=stats.processed,
            updated=stats.updated,
            failed=stats.failed,
            last_id=stats.last_id,
        )

    log.info("backfill.done", **stats.to_dict())
    return stats


def backfill_channels(db: Session, channels: Iterable[ChannelConfig], limit: int = 1000) -> list[BackfillStats]:
    return [backfill_channel(db, channel, limit=limit) for channel in channels]


__all__ = [
    "BACKFILL_COLUMNS",
    "BackfillStats",
    "apply_backfill",
    "backfill_channel",
    "backfill_channels",
    "derive_fields",
]
