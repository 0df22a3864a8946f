#!/usr/bin/env python3
"""
Inventory snapshot command line.

Generates, inspects, locks and annotates period snapshots, and maintains
the component update history.  Output is JSON on stdout; structured logs
go to stderr (and to the configured log file).

Usage:
    python3 scripts/inventory_cli.py [--config FILE] [--database-url URL] <command> [options]

Examples:
    # Generate (or refresh) the current month
    python3 scripts/inventory_cli.py --config inventory.yaml generate

    # Regenerate a locked month
    python3 scripts/inventory_cli.py generate --period 2024-03 --force

    # Show only updated components
    python3 scripts/inventory_cli.py show --period 2024-03 --classification updated

    # Annotate a row
    python3 scripts/inventory_cli.py annotate --period 2024-03 --slug akismet --category security

    # Run the monthly automation in the foreground
    python3 scripts/inventory_cli.py schedule
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from dataclasses import asdict, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from inventory_batch.trigger import GenerationTrigger, ScheduledGenerationRunner  # noqa: E402
from inventory_config import AuditSettings, default_settings, load_settings  # noqa: E402
from inventory_kernel.db.engine import create_tables, init_engine_from_url  # noqa: E402
from inventory_kernel.domain.clock import SystemClock  # noqa: E402
from inventory_kernel.domain.dtos import Classification  # noqa: E402
from inventory_kernel.domain.periods import current_period_key  # noqa: E402
from inventory_kernel.exceptions import InventoryKernelError  # noqa: E402
from inventory_kernel.logging_config import (  # noqa: E402
    configure_file_logging,
    configure_logging,
    get_logger,
)
from inventory_kernel.models.update_history import UpdateSource  # noqa: E402
from inventory_services.factory import build_lifecycle_manager  # noqa: E402

logger = get_logger("cli")

CONFIG_ENV = "INVENTORY_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Periodic inventory snapshots: generate, inspect, lock, annotate.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=os.environ.get(CONFIG_ENV),
        help=f"Settings YAML (default: ${CONFIG_ENV}, else built-in defaults).",
    )
    parser.add_argument(
        "--database-url",
        default=os.environ.get(DATABASE_URL_ENV),
        help=f"Snapshot store URL; overrides the settings file (default: ${DATABASE_URL_ENV}).",
    )
    parser.add_argument("--actor", type=UUID, default=None, help="Actor UUID recorded on writes.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("generate", help="Generate or refresh a period snapshot.")
    p.add_argument("--period", help="YYYY-MM (default: current month, UTC).")
    p.add_argument("--force", action="store_true", help="Regenerate even if locked.")
    p.add_argument("--no-wait", action="store_true", help="Fail if the period is busy.")

    for name, help_text in (("lock", "Lock a period snapshot."), ("unlock", "Unlock a period snapshot.")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--period", required=True)

    p = sub.add_parser("show", help="Print a snapshot and its rows.")
    p.add_argument("--period", help="YYYY-MM (default: current month, UTC).")
    p.add_argument("--classification", choices=[c.value for c in Classification])

    p = sub.add_parser("list", help="List snapshots, newest first.")
    p.add_argument("--limit", type=int, default=None)

    p = sub.add_parser("annotate", help="Set category/notes/comments on one row.")
    p.add_argument("--period", required=True)
    p.add_argument("--slug", required=True)
    p.add_argument("--category")
    p.add_argument("--notes")
    p.add_argument("--comments")

    p = sub.add_parser("notes", help="Set the snapshot's report notes.")
    p.add_argument("--period", required=True)
    p.add_argument("--text", required=True)

    p = sub.add_parser("record-update", help="Add a component update to the history.")
    p.add_argument("--slug", required=True)
    p.add_argument("--name", default="")
    p.add_argument("--from", dest="version_from", default="")
    p.add_argument("--to", dest="version_to", required=True)
    p.add_argument("--at", type=datetime.fromisoformat, default=None, help="ISO timestamp (default: now).")
    p.add_argument("--source", choices=[s.value for s in UpdateSource], default=UpdateSource.MANUAL.value)

    p = sub.add_parser("history", help="List update history entries for a period.")
    p.add_argument("--period", help="YYYY-MM (default: current month, UTC).")

    p = sub.add_parser("prune-history", help="Delete update history older than N days.")
    p.add_argument("--days", type=int, default=None, help="Default: retention.update_history_days.")

    p = sub.add_parser("schedule", help="Run the monthly automation.")
    p.add_argument("--once", action="store_true", help="Evaluate one tick and exit.")

    return parser.parse_args(argv)


def _to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, list):
        return [_to_jsonable(v) for v in value]
    return value


def _emit(value: Any) -> None:
    print(json.dumps(_to_jsonable(value), indent=2, sort_keys=True, default=str))


def _load(args: argparse.Namespace) -> AuditSettings:
    return load_settings(args.config) if args.config else default_settings()


def _setup_logging(settings: AuditSettings) -> None:
    configure_logging(level=getattr(logging, settings.logging.level))
    if settings.logging.file:
        configure_file_logging(
            settings.logging.file,
            retention_days=settings.retention.log_retention_days,
        )


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = _load(args)
    _setup_logging(settings)

    engine = init_engine_from_url(args.database_url or settings.database.url, echo=settings.database.echo)
    create_tables(engine)

    clock = SystemClock()
    base_dir = args.config.resolve().parent if args.config else Path.cwd()
    manager = build_lifecycle_manager(settings, engine, clock=clock, base_dir=base_dir)
    trigger = GenerationTrigger(manager, clock=clock, tracking=settings.tracking)

    try:
        if args.command == "generate":
            _emit(trigger.run(args.period, force=args.force, actor_id=args.actor, wait=not args.no_wait))
        elif args.command == "lock":
            _emit(manager.lock(args.period, actor_id=args.actor))
        elif args.command == "unlock":
            _emit(manager.unlock(args.period, actor_id=args.actor))
        elif args.command == "show":
            period = args.period or current_period_key(clock)
            classification = Classification(args.classification) if args.classification else None
            _emit({
                "snapshot": _to_jsonable(manager.get_snapshot(period)),
                "rows": _to_jsonable(manager.get_rows(period, classification)),
            })
        elif args.command == "list":
            _emit(manager.list_snapshots(args.limit))
        elif args.command == "annotate":
            fields = {
                name: value
                for name in ("category", "notes", "comments")
                if (value := getattr(args, name)) is not None
            }
            _emit(manager.set_annotation(args.period, args.slug, fields, actor_id=args.actor))
        elif args.command == "notes":
            _emit(manager.set_snapshot_notes(args.period, args.text, actor_id=args.actor))
        elif args.command == "record-update":
            record = manager.record_update(
                slug=args.slug,
                name=args.name or args.slug,
                previous_version=args.version_from,
                new_version=args.version_to,
                updated_on=args.at,
                source=args.source,
            )
            _emit(record if record is not None else {"duplicate": True})
        elif args.command == "history":
            _emit(manager.get_update_history(args.period or current_period_key(clock)))
        elif args.command == "prune-history":
            days = args.days if args.days is not None else settings.retention.update_history_days
            _emit({"removed": manager.prune_update_history(days)})
        elif args.command == "schedule":
            runner = ScheduledGenerationRunner(
                trigger,
                settings.automation,
                clock=clock,
                retention=settings.retention,
                actor_id=args.actor,
            )
            if args.once:
                _emit(runner.tick())
            else:
                runner.start()
                try:
                    while runner.is_running:
                        time.sleep(1.0)
                except KeyboardInterrupt:
                    runner.stop()
    except InventoryKernelError as exc:
        logger.warning("cli_command_failed", extra={"command": args.command, "code": exc.code})
        print(json.dumps({"error": exc.code, "message": str(exc)}), file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
