"""Command line entrypoint.

Usage:
    mysql2mongo incremental [--tables tables.json]
    mysql2mongo fulltable <tableName> [--tables tables.json]
    mysql2mongo period [--from "2024-01-01 00:00:00"] [--to "2024-01-01 23:59:59"] [--tables tables.json]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime
from typing import List, Optional

from mysql2mongo.core.config import Settings, settings
from mysql2mongo.core.db import open_connections
from mysql2mongo.core.errors import SyncError
from mysql2mongo.core.logging import get_logger
from mysql2mongo.ingestion.copy_engine import CopyEngine
from mysql2mongo.schemas.tables import TableSpec, find_table, load_tables
from mysql2mongo.schemas.window import RunMode
from mysql2mongo.services.sync_service import SyncReport, SyncService

logger = get_logger("entrypoint")


def parse_datetime(value: str) -> datetime:
    """Accept ``YYYY-MM-DD`` or ``YYYY-MM-DD HH:MM:SS``."""
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid datetime: {value!r}") from exc


def build_parser(config: Settings = settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mysql2mongo", description="Copy MySQL tables into MongoDB collections.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    tables_help = "Json file with information about the tables it should copy data from."

    incremental = subparsers.add_parser("incremental", help="copy incremental data based on the last run")
    incremental.add_argument("--tables", default=config.TABLES_FILE, help=tables_help)

    fulltable = subparsers.add_parser("fulltable", help="copy the entire table")
    fulltable.add_argument("table_name", metavar="tableName", help="the name of the table to copy")
    fulltable.add_argument("--tables", default=config.TABLES_FILE, help=tables_help)

    period = subparsers.add_parser("period", help="copy all tables data from provided period")
    period.add_argument("--tables", default=config.TABLES_FILE, help=tables_help)
    period.add_argument("-f", "--from", dest="date_from", type=parse_datetime, default=None,
                        help="start of the period (default: yesterday 00:00:00)")
    period.add_argument("-t", "--to", dest="date_to", type=parse_datetime, default=None,
                        help="end of the period (default: yesterday 23:59:59)")

    return parser


def select_tables(args: argparse.Namespace) -> List[TableSpec]:
    """Load the table list; a full-table run narrows it to the named table."""
    tables = load_tables(args.tables)
    if args.command == RunMode.FULL_TABLE.value:
        return [find_table(tables, args.table_name, args.tables)]
    return tables


async def run_sync(args: argparse.Namespace, tables: List[TableSpec], config: Settings = settings) -> SyncReport:
    mode = RunMode(args.command)
    async with open_connections(config) as conn:
        engine = CopyEngine(
            conn.source,
            conn.sink,
            high_watermark=config.HIGH_WATERMARK,
            low_watermark=config.LOW_WATERMARK,
            write_failure_policy=config.WRITE_FAILURE_POLICY,
            progress_every=config.PROGRESS_EVERY,
            max_failure_samples=config.MAX_FAILURE_SAMPLES,
        )
        service = SyncService(engine, conn.checkpoints)
        return await service.run(
            mode,
            tables,
            explicit_from=getattr(args, "date_from", None),
            explicit_to=getattr(args, "date_to", None),
        )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    # Resolve tables before any connection is opened
    try:
        tables = select_tables(args)
    except SyncError as exc:
        logger.error(str(exc))
        return 1
    except (OSError, ValueError) as exc:
        logger.error(f"Could not load table list {args.tables}: {exc}")
        return 1

    try:
        report = asyncio.run(run_sync(args, tables))
    except SyncError as exc:
        logger.error(f"{args.command} failed: {exc}")
        return 1

    logger.info(f"{args.command} completed: rows={report.rows_copied} failed_rows={report.failed_rows}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
