#!/usr/bin/env python3
"""Command-line interface for event ingestion.

Runs every enabled source adapter concurrently, then deduplicates and
persists the merged records.

Typical usage:
  event-ingest
  event-ingest --only ebilet --dump merged.json
  event-ingest --fetch-only --dump merged.json
  event-ingest --init-db
  event-ingest --list-sources
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from event_ingest.monitoring.logging import LoggingOptions, setup_logging
from event_ingest.schemas.event import CanonicalRecord
from event_ingest.storage import StorageError


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="event-ingest", description="Multi-source event ingestion")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    p.add_argument("--config", "-c", default=None, help="Path to ingestion YAML config")
    p.add_argument("--only", nargs="+", default=None, help="Run only these sources")
    p.add_argument("--list-sources", action="store_true", help="List configured sources and exit")
    p.add_argument(
        "--fetch-only",
        action="store_true",
        help="Fetch and normalize without touching the database",
    )
    p.add_argument("--dump", default=None, help="Write merged records to this JSON file")
    p.add_argument("--init-db", action="store_true", help="Create missing tables and exit")
    p.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    p.add_argument("--json-logs", action="store_true", help="Emit JSON logs")
    p.add_argument("--log-file", default=None, help="Also write logs to this file")
    return p.parse_args(argv)


def _dump_records(records: list[CanonicalRecord], path: str) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump([r.model_dump() for r in records], f, indent=2, ensure_ascii=False)
    print(f"Wrote {len(records)} records to {out}")


def main(argv: list[str] | None = None) -> int:
    """Run the CLI with the given arguments."""
    try:
        return _main_impl(argv)
    except StorageError as e:
        print(f"Storage error: {e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _main_impl(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.version:
        from event_ingest import __version__

        print(f"event-ingest version {__version__}")
        return 0

    from event_ingest.configs.config import Config
    from event_ingest.configs.settings import get_settings
    from event_ingest.ingestion.sources import build_adapters, list_sources

    settings = get_settings()
    setup_logging(
        LoggingOptions(
            level=args.log_level or settings.LOG_LEVEL,
            json_logs=args.json_logs or settings.JSON_LOGS,
            log_file=Path(args.log_file) if args.log_file else None,
        )
    )

    config = Config.load_ingestion_config(args.config, settings=settings)

    if args.list_sources:
        print(f"{'SOURCE':<20} {'TYPE':<10} {'ENABLED':<8} {'REGISTERED'}")
        print("-" * 50)
        for name, info in list_sources(config).items():
            print(f"{name:<20} {info['type']:<10} {str(info['enabled']):<8} {info['registered']}")
        return 0

    from event_ingest.ingestion.pipeline import IngestionRun
    from event_ingest.storage import create_session_factory, engine_from_settings, init_schema

    if args.init_db:
        init_schema(engine_from_settings(settings))
        print("Database schema ready.")
        return 0

    adapters = build_adapters(config, only=args.only)
    if args.fetch_only:
        run = IngestionRun(adapters, settings=settings)
        records = run.fetch()
        run.log_summary()
        if args.dump:
            _dump_records(records, args.dump)
        return 0

    session_factory = create_session_factory(engine_from_settings(settings))
    run = IngestionRun(adapters, session_factory=session_factory, settings=settings)
    try:
        records = run.fetch()
        if args.dump:
            _dump_records(records, args.dump)
        run.ingest(records)
    finally:
        run.log_summary()

    stats = run.report.stats
    print(
        f"Processed {stats.processed} records: {stats.success} saved, "
        f"{stats.skipped} skipped, {stats.errors} errors"
    )
    return 0
