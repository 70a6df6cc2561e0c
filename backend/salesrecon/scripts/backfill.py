"""
Fill null amount/rate/qty/date columns from each row's stored raw_json.

    python -m salesrecon.scripts.backfill --channel online --limit 500
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError

from salesrecon.config import get_settings
from salesrecon.db.session import SessionLocal
from salesrecon.observability.instrument import log_job
from salesrecon.observability.logging import configure_logging
from salesrecon.sales.channels import CHANNELS, ChannelConfig, get_channel, iter_channels
from salesrecon.services.backfill import BackfillStats, backfill_channel

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="salesrecon.scripts.backfill", description=__doc__.strip().splitlines()[0])
    parser.add_argument("--channel", choices=[*CHANNELS, "all"], default="online")
    parser.add_argument("--limit", type=int, default=None, help="rows per batch (default BACKFILL_LIMIT)")
    return parser


def _selected(name: str) -> List[ChannelConfig]:
    return list(iter_channels()) if name == "all" else [get_channel(name)]


@log_job("backfill")
def run_backfill(channel: ChannelConfig, limit: int) -> BackfillStats:
    with SessionLocal() as db:
        return backfill_channel(db, channel, limit=limit)


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    limit = args.limit or get_settings().BACKFILL_LIMIT
    if limit <= 0:
        logger.error("backfill.bad_limit", limit=limit)
        return 2

    try:
        for channel in _selected(args.channel):
            stats = run_backfill(channel, limit)
            print(
                f"{channel.key}: processed={stats.processed} updated={stats.updated} "
                f"failed={stats.failed} batches={stats.batches}"
            )
    except SQLAlchemyError:
        logger.exception("backfill.aborted", channel=args.channel)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
