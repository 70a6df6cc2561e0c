"""
Import an .xlsx workbook or .csv export into the channel tables.

Workbook sheets are routed to channels by name (``Online...``, ``Offline...``,
``RajRadha...``, ``Lok...``) unless ``--channel`` forces one. Rows already
present are skipped, so re-running on the same file inserts nothing.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError

from salesrecon.config import get_settings
from salesrecon.core.errors import ImportFileError
from salesrecon.db.session import SessionLocal, init_db
from salesrecon.observability.instrument import log_job
from salesrecon.observability.logging import configure_logging
from salesrecon.sales.channels import CHANNELS, channel_for_sheet, get_channel
from salesrecon.schemas.sales import ImportStats
from salesrecon.services.importer import import_rows, iter_csv_bytes, read_workbook

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="salesrecon.scripts.import_sales", description="Import sales spreadsheets.")
    parser.add_argument("--file", required=True, type=Path, help=".xlsx or .csv file")
    parser.add_argument("--channel", choices=list(CHANNELS), help="import every row into this channel")
    parser.add_argument("--only", help="only sheets whose name contains this text (case-insensitive)")
    parser.add_argument("--chunk", type=int, default=None, help="rows per INSERT (default IMPORT_CHUNK_SIZE)")
    return parser


def plan_import(path: Path, channel: Optional[str], only: Optional[str]) -> Dict[str, List[dict]]:
    """Rows to import, grouped by channel key."""
    data = path.read_bytes()
    if path.suffix.lower() == ".csv":
        if not channel:
            raise ImportFileError("--channel is required for CSV files")
        return {channel: list(iter_csv_bytes(data))}

    plan: Dict[str, List[dict]] = {}
    for sheet, rows in read_workbook(data).items():
        if only and only.lower() not in sheet.lower():
            continue
        cfg = get_channel(channel) if channel else channel_for_sheet(sheet)
        if cfg is None:
            logger.info("import.sheet_skipped", sheet=sheet, rows=len(rows))
            continue
        plan.setdefault(cfg.key, []).extend(rows)
    return plan


@log_job("import_sales")
def run_import(channel_key: str, rows: List[dict], chunk_size: int) -> ImportStats:
    with SessionLocal() as db:
        return import_rows(db, get_channel(channel_key), rows, chunk_size=chunk_size)


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    chunk = args.chunk or get_settings().IMPORT_CHUNK_SIZE

    if not args.file.is_file():
        logger.error("import.file_missing", file=str(args.file))
        return 2
    try:
        plan = plan_import(args.file, args.channel, args.only)
    except ImportFileError as exc:
        logger.error("import.bad_file", file=str(args.file), error=str(exc))
        return 2
    if not plan:
        logger.warning("import.nothing_to_do", file=str(args.file))
        return 0

    try:
        init_db()
        for key, rows in plan.items():
            stats = run_import(key, rows, chunk)
            print(
                f"{key}: seen={stats.rows_seen} inserted={stats.inserted} "
                f"duplicates={stats.duplicates} failed={stats.failed}"
            )
            for warning in stats.warnings:
                print(f"  warning: {warning}")
    except SQLAlchemyError:
        logger.exception("import.aborted", file=str(args.file))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
