"""CLI entry point: import, scheduler, status, schema."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from partner_import.config import load_config
from partner_import.db import Database
from partner_import.logging_config import configure_logging
from partner_import.models import CUSTOMER, USER
from partner_import.runner import ImportRunner
from partner_import.schema import schema_as_dict

logger = logging.getLogger("partner_import.cli")


def cmd_import(args: argparse.Namespace) -> None:
    """Run one complete import."""
    config = load_config()
    db = Database(config.database)

    try:
        results = ImportRunner(config, db).run_with_tracking()
        logger.info("Import results: %s", results)
    finally:
        db.close()


def cmd_scheduler(args: argparse.Namespace) -> None:
    """Start the APScheduler-based scheduling loop."""
    from partner_import.scheduler import start_scheduler

    config = load_config()
    db = Database(config.database)
    try:
        start_scheduler(config, db)
    finally:
        db.close()


def cmd_status(args: argparse.Namespace) -> None:
    """Show recent import runs."""
    config = load_config(with_connector=False)
    db = Database(config.database)

    try:
        runs = db.get_recent_runs(
            connector=ImportRunner.CONNECTOR_NAME,
            limit=args.limit,
        )
        counts = db.entry_counts(ImportRunner.CONNECTOR_NAME)
    finally:
        db.close()

    print("Connector space: {} customers, {} users".format(
        counts.get(CUSTOMER, 0), counts.get(USER, 0),
    ))
    if not runs:
        print("No import runs found.")
        return

    fmt = "{:<36}  {:<7}  {:<19}  {:<19}  {:>9}  {:>7}  {:>7}  {}"
    print(fmt.format(
        "RUN ID", "STATUS", "STARTED", "FINISHED",
        "CUSTOMERS", "USERS", "SKIPPED", "ERROR",
    ))
    print("-" * 132)
    for run in runs:
        print(fmt.format(
            str(run["id"]),
            run["status"],
            _timestamp(run["started_at"]),
            _timestamp(run["finished_at"]),
            run.get("customers_imported") or 0,
            run.get("users_imported") or 0,
            run.get("customers_skipped") or 0,
            (run.get("error_message") or "")[:40],
        ))


def _timestamp(value) -> str:
    return str(value)[:19] if value else ""


def cmd_schema(args: argparse.Namespace) -> None:
    """Print the declared schema, capabilities and parameters as JSON."""
    json.dump(schema_as_dict(), sys.stdout, indent=2)
    sys.stdout.write("\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="partner-import",
        description="Partner Center customer and user import",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Run one import")
    import_parser.set_defaults(func=cmd_import)

    sched_parser = subparsers.add_parser("scheduler", help="Start scheduled import loop")
    sched_parser.set_defaults(func=cmd_scheduler)

    status_parser = subparsers.add_parser("status", help="Show recent import runs")
    status_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=10,
        help="Number of runs to show (default: 10)",
    )
    status_parser.set_defaults(func=cmd_status)

    schema_parser = subparsers.add_parser("schema", help="Print the declared schema")
    schema_parser.set_defaults(func=cmd_schema)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
