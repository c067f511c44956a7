"""
Command line entry point.

Commands:
    migrate             Run all nine phases against the configured database
    verify              Compare a legacy collection with a migrated one
    optimize-indexes    Build the index plan on a collection and benchmark it
    rollback            Rename a backup collection back into place
    restore             Load a JSON backup artifact into a collection

Configuration comes from the environment (a ``.env`` file is loaded
first); flags override it. The process exits 0 only when the command
succeeded.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from dotenv import load_dotenv

from shadowswap.backup import BackupManager
from shadowswap.config import MigrationConfig
from shadowswap.exceptions import MigrationError, MigrationFailedError, StorageError
from shadowswap.indexes import IndexPlanner
from shadowswap.integrity import IntegrityVerifier
from shadowswap.orchestrator import MigrationOrchestrator, rollback_collection
from shadowswap.reports import FAILURE_REPORT, ReportWriter
from shadowswap.storage.interface import DocumentDatabase
from shadowswap.storage.mongo import MotorDatabase

logger = logging.getLogger("shadowswap")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shadowswap",
        description="Zero-downtime migration of the products collection.",
    )
    parser.add_argument("--env-file", default=None, help="Path to a .env file (default: ./.env)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    parser.add_argument("--database-url", default=None, help="MongoDB connection string")
    parser.add_argument("--database-name", default=None)
    parser.add_argument("--report-dir", default=None)

    commands = parser.add_subparsers(dest="command", required=True)

    migrate = commands.add_parser("migrate", help="Run the full migration")
    migrate.add_argument("--source-collection", default=None)
    migrate.add_argument("--shadow-collection", default=None)
    migrate.add_argument("--target-collection", default=None)
    migrate.add_argument("--batch-size", type=int, default=None)
    migrate.add_argument("--min-success-rate", type=float, default=None)
    migrate.add_argument("--performance-target-ms", type=float, default=None)
    migrate.add_argument("--max-downtime-ms", type=float, default=None)
    migrate.add_argument("--backup-dir", default=None)
    migrate.add_argument(
        "--rollback-on-post-validation-failure",
        action="store_true",
        default=None,
        help="Revert the switch when the live collection fails verification",
    )

    verify = commands.add_parser("verify", help="Verify a migrated collection")
    verify.add_argument("source", help="Collection holding the legacy documents")
    verify.add_argument("target", help="Collection holding the migrated documents")

    optimize = commands.add_parser("optimize-indexes", help="Create and benchmark indexes")
    optimize.add_argument("collection")

    rollback = commands.add_parser("rollback", help="Rename a backup collection into place")
    rollback.add_argument("backup_collection", help="e.g. products_backup_1700000000000")
    rollback.add_argument("--collection", default=None, help="Live collection name")

    restore = commands.add_parser("restore", help="Restore a JSON backup artifact")
    restore.add_argument("path")
    restore.add_argument("collection")
    restore.add_argument("--replace", action="store_true", help="Drop the collection first")

    return parser


def config_from_args(args: argparse.Namespace) -> MigrationConfig:
    overrides: dict[str, Any] = {
        "database_url": args.database_url,
        "database_name": args.database_name,
        "report_dir": args.report_dir,
    }
    for name in (
        "source_collection",
        "shadow_collection",
        "target_collection",
        "batch_size",
        "min_success_rate",
        "performance_target_ms",
        "max_downtime_ms",
        "backup_dir",
        "rollback_on_post_validation_failure",
    ):
        overrides[name] = getattr(args, name, None)
    return MigrationConfig.from_env(**overrides)


async def run_command(
    args: argparse.Namespace,
    config: MigrationConfig,
    database: DocumentDatabase,
) -> int:
    """Run one parsed command against an open database."""
    if args.command == "migrate":
        orchestrator = MigrationOrchestrator(database, config)
        try:
            report = await orchestrator.run()
        except MigrationFailedError as e:
            logger.error("%s", e.message)
            logger.error("Failure report: %s", config.report_path / FAILURE_REPORT)
            return EXIT_FAILED
        return EXIT_OK if report.get("success") else EXIT_FAILED

    if args.command == "verify":
        verifier = IntegrityVerifier()
        report = await verifier.verify(database[args.source], database[args.target])
        path = ReportWriter(config.report_dir).write_verification_report(report.to_dict())
        logger.info("Verification report: %s", path)
        for issue in report.critical_issues:
            logger.error("Critical issue: %s", issue)
        return EXIT_OK if report.overall_success else EXIT_FAILED

    if args.command == "optimize-indexes":
        planner = IndexPlanner()
        report = await planner.optimize(database[args.collection])
        path = ReportWriter(config.report_dir).write_optimization_report(
            {"timestamp": datetime.now(timezone.utc).isoformat(), **report.to_dict()}
        )
        logger.info("Index optimization report: %s", path)
        return EXIT_OK if report.passed else EXIT_FAILED

    if args.command == "rollback":
        live = args.collection or config.source_collection
        await rollback_collection(database, args.backup_collection, live)
        return EXIT_OK

    if args.command == "restore":
        restored = await BackupManager(config.backup_dir).restore_backup(
            database, args.path, args.collection, replace=args.replace
        )
        logger.info("Restored %d products into %s", restored, args.collection)
        return EXIT_OK

    raise ValueError(f"Unknown command: {args.command}")


async def _main(args: argparse.Namespace, config: MigrationConfig) -> int:
    database = MotorDatabase.connect(config.database_url, config.database_name)
    try:
        return await run_command(args, config, database)
    finally:
        database.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    load_dotenv(args.env_file)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_USAGE

    try:
        return asyncio.run(_main(args, config))
    except MigrationError as e:
        logger.error("%s", e)
        logger.error("Suggested action: %s", e.suggested_action)
        return EXIT_FAILED
    except StorageError as e:
        logger.error("Database error: %s", e)
        return EXIT_FAILED


__all__ = ["build_parser", "config_from_args", "run_command", "main"]
