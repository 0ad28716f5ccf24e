"""
docsync command line

Replicate upstream documents into a warehouse and maintain relational views.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from docsync import __version__
from docsync.config import SyncSettings, reset_config
from docsync.exceptions import ConfigError, SyncError
from docsync.logging_config import LOG_LEVELS, configure_logging, get_logger
from docsync.replication.api_client import DocumentApiClient
from docsync.replication.cursor import CursorStore
from docsync.replication.sync_manager import IterationResult, SyncConfig, SyncManager
from docsync.views.compiler import ViewCompiler
from docsync.warehouses.base import Warehouse, create_warehouse

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="docsync",
        description="Replicate upstream documents into a relational warehouse.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the resolved configuration
  docsync config

  # Pull new updates once and exit
  docsync push

  # Full refresh
  docsync push --force

  # Keep syncing every 5 minutes
  docsync sync --wait 300

  # Print the view plan without touching the warehouse
  docsync create-views --dry-run
""",
    )

    parser.add_argument("--config", type=Path, help="TOML settings file (default: docsync.toml)")
    parser.add_argument("--env-file", type=Path, help="dotenv file to load (default: ./.env)")
    parser.add_argument("--execute-url", help="Base URL of the upstream API")
    parser.add_argument("--state-dir", help="Directory holding the sync cursor")
    parser.add_argument("--database-type", help="Warehouse type (SQLITE, POSTGRES)")
    parser.add_argument("--database-dsn", help="Warehouse connection string or file")
    parser.add_argument("--max-documents", type=int, help="Documents per page")
    parser.add_argument("--chunk-size", type=int, help="Maximum array items per chunk")
    parser.add_argument(
        "--include-calcs",
        action="store_true",
        default=None,
        help="Include calculated fields",
    )
    parser.add_argument("--log-level", choices=sorted(LOG_LEVELS), help="Log verbosity")
    parser.add_argument("--log-file", help="Also write JSON logs to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("config", help="Show the resolved configuration")

    sync_parser = subparsers.add_parser("sync", help="Periodically sync new updates to the warehouse")
    sync_parser.add_argument("--wait", "-w", type=int, help="Seconds between sync iterations")
    sync_parser.add_argument(
        "--prune-every",
        type=int,
        help="Prune after every N successful iterations (0 disables)",
    )

    push_parser = subparsers.add_parser("push", help="One-time push of new updates to the warehouse")
    push_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        default=None,
        help="Force a complete data refresh",
    )

    views_parser = subparsers.add_parser("create-views", help="Create relational views from the schema")
    views_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the compiled plan and SQL instead of creating views",
    )

    subparsers.add_parser("prune", help="Delete superseded batches from the warehouse")
    subparsers.add_parser("clone", help="Create views, then run a full refresh")
    subparsers.add_parser("version", help="Print the version")

    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    names = (
        "execute_url",
        "state_dir",
        "database_type",
        "database_dsn",
        "max_documents",
        "chunk_size",
        "include_calcs",
        "log_level",
        "log_file",
        "wait",
        "prune_every",
        "force",
    )
    return {name: getattr(args, name, None) for name in names}


def _api_client(settings: SyncSettings, logger: logging.Logger) -> DocumentApiClient:
    return DocumentApiClient(
        base_url=settings.execute_url,
        key_id=settings.api_key_id,
        key_secret=settings.api_key_secret,
        timeout=settings.timeout,
        logger=logger,
    )


def _sync_manager(
    settings: SyncSettings,
    warehouse: Warehouse,
    logger: logging.Logger,
) -> SyncManager:
    return SyncManager(
        source=_api_client(settings, logger),
        warehouse=warehouse,
        cursor_store=CursorStore(Path(settings.state_dir), logger),
        config=SyncConfig.from_settings(settings),
        logger=logger,
    )


def _log_result(result: IterationResult, logger: logging.Logger) -> None:
    logger.info(f"Sync {result.status.lower()}: {result.documents_processed:,} documents")
    for error in result.errors[:5]:
        logger.warning(f"  {error}")


async def show_config(settings: SyncSettings) -> int:
    print(json.dumps(settings.redacted(), indent=2))
    try:
        settings.validate()
    except ConfigError as e:
        print(f"\n{e}", file=sys.stderr)
        return EXIT_CONFIG
    return EXIT_OK


async def create_views(
    settings: SyncSettings,
    warehouse: Warehouse,
    logger: logging.Logger,
    dry_run: bool = False,
) -> int:
    client = _api_client(settings, logger)
    schema = await client.fetch_schema(include_calcs=settings.include_calcs)
    plan = ViewCompiler(logger).compile(schema)

    if dry_run:
        output = plan.to_dict()
        output["sql"] = warehouse.render_view_plan(plan)
        print(json.dumps(output, indent=2))
        return EXIT_OK

    created = await warehouse.apply_view_plan(plan)
    logger.info(f"Views created: {len(created)} of {len(plan.view_names)}")
    return EXIT_OK if len(created) == len(plan.view_names) else EXIT_FAILED


async def run_command(args: argparse.Namespace, settings: SyncSettings) -> int:
    logger = get_logger("docsync.cli")

    if args.command == "config":
        return await show_config(settings)

    settings.validate()
    warehouse = create_warehouse(settings, logger=logger)

    if args.command == "create-views":
        return await create_views(settings, warehouse, logger, dry_run=args.dry_run)

    if args.command == "prune":
        deleted = await warehouse.prune()
        logger.info(f"Pruning completed ({deleted:,} rows removed)")
        return EXIT_OK

    if args.command == "clone":
        status = await create_views(settings, warehouse, logger)
        settings.force = True
        results = await _sync_manager(settings, warehouse, logger).run(once=True)
        _log_result(results[-1], logger)
        logger.info("Clone completed")
        return status

    if args.command == "push":
        results = await _sync_manager(settings, warehouse, logger).run(once=True)
        _log_result(results[-1], logger)
        return EXIT_OK

    if args.command == "sync":
        await _sync_manager(settings, warehouse, logger).run(once=False)
        return EXIT_OK

    raise ConfigError(f"unknown command: {args.command}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.command == "version":
        print(f"docsync {__version__}")
        return EXIT_OK

    if args.config:
        os.environ["DOCSYNC_CONFIG_PATH"] = str(args.config)
        reset_config()

    try:
        settings = SyncSettings.resolve(
            overrides=_overrides(args),
            env_file=args.env_file,
            validate=False,
        )
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings.log_level, settings.log_file)
    logger = get_logger("docsync.cli")

    try:
        return asyncio.run(run_command(args, settings))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG
    except SyncError as e:
        logger.error(f"{args.command} failed: {e}")
        return EXIT_FAILED
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
