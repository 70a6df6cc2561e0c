"""Delete every row from selected channel tables ahead of a clean re-import."""
from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError

from salesrecon.db.session import SessionLocal
from salesrecon.observability.logging import configure_logging
from salesrecon.sales.channels import get_channel, iter_channels
from salesrecon.services.importer import truncate_channels

logger = structlog.get_logger(__name__)

FLAGS = {"online": "online", "offline": "offline", "raj": "rajradha", "lok": "lok"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="salesrecon.scripts.truncate_sales", description=__doc__)
    parser.add_argument("--all", action="store_true", help="every channel table")
    for flag, key in FLAGS.items():
        parser.add_argument(f"--{flag}", action="store_true", help=f"the {key} table")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    if args.all:
        channels = list(iter_channels())
    else:
        channels = [get_channel(key) for flag, key in FLAGS.items() if getattr(args, flag)]
    if not channels:
        build_parser().print_usage(sys.stderr)
        print("nothing selected; pass --all or a channel flag", file=sys.stderr)
        return 2

    try:
        with SessionLocal() as db:
            removed = truncate_channels(db, channels)
    except SQLAlchemyError:
        logger.exception("truncate.aborted")
        return 1
    for key, count in removed:
        print(f"{key}: deleted {count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
