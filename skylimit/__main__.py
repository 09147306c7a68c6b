"""CLI entrypoint: python -m skylimit {run|init-db|import|show|stats}."""

from __future__ import annotations

import argparse
import asyncio
import inspect
import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path

import yaml

from skylimit.config import get_curation_settings, get_db_path, load_config
from skylimit.db import (
    count_events,
    get_all_follows,
    get_connection,
    get_snapshot_with_timestamp,
    init_db,
    insert_events,
    upsert_follow,
)
from skylimit.models import Event, TrackedSource


def setup_logging(config: dict) -> None:
    """Configure logging with console + rotating file output."""
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    # File handler (rotate at 5MB, keep 3 backups)
    db_path = get_db_path(config)
    log_dir = Path(db_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "skylimit.log"

    file_handler = logging.handlers.RotatingFileHandler(
        str(log_file), maxBytes=5 * 1024 * 1024, backupCount=3,
    )
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)


logger = logging.getLogger("skylimit")


def cmd_init_db(config: dict, args: argparse.Namespace) -> None:
    """Initialize the SQLite database."""
    db_path = get_db_path(config)
    init_db(db_path)
    print(f"Database initialized at {db_path}")


async def cmd_run(config: dict, args: argparse.Namespace) -> None:
    """Compute and save a fresh snapshot."""
    from skylimit.pipeline import run_pipeline

    init_db(get_db_path(config))
    snapshot = await run_pipeline(config)
    if snapshot is None:
        print("Not enough data for a snapshot; previous snapshot kept.")
        return
    print(
        f"Quota number {snapshot.quota_number:.2f} "
        f"for {len(snapshot.entries)} sources"
    )


def _read_events(path: str) -> list[Event]:
    events = []
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                events.append(Event.from_dict(json.loads(line)))
            except (ValueError, KeyError) as exc:
                raise ValueError(f"{path}:{lineno}: invalid event ({exc})") from exc
    return events


def _read_follows(path: str) -> list[TrackedSource]:
    with open(path) as f:
        raw = yaml.safe_load(f) or []
    if isinstance(raw, dict):
        raw = raw.get("follows", [])
    return [TrackedSource.from_dict(item) for item in raw]


def cmd_import(config: dict, args: argparse.Namespace) -> None:
    """Load events (JSON lines) and optionally follows (YAML/JSON) into the store."""
    db_path = get_db_path(config)
    init_db(db_path)
    try:
        events = _read_events(args.events)
        follows = _read_follows(args.follows) if args.follows else []
    except (OSError, ValueError, KeyError) as exc:
        logger.error("Import failed: %s", exc)
        sys.exit(1)

    conn = get_connection(db_path)
    try:
        added = insert_events(conn, events)
        for source in follows:
            upsert_follow(conn, source)
    finally:
        conn.close()

    print(f"Imported {added} new events ({len(events) - added} already stored)")
    if follows:
        print(f"Imported {len(follows)} follows")


def cmd_show(config: dict, args: argparse.Namespace) -> None:
    """Print the current snapshot as a per-source table."""
    settings = get_curation_settings(config)
    conn = get_connection(get_db_path(config))
    try:
        result = get_snapshot_with_timestamp(conn)
    finally:
        conn.close()

    if result is None:
        print("No snapshot computed yet.")
        return

    snapshot, saved_at = result
    print(
        f"Quota number: {snapshot.quota_number:.2f} "
        f"(computed {saved_at:%Y-%m-%d %H:%M} UTC)"
    )
    header = (
        f"{'Source':<28} {'Wt':>6} {'Posts/d':>8} {'Reposts/d':>9} "
        f"{'Net':>6} {'Prio':>6} {'Reg':>6} {'Since':>10}"
    )
    print(header)
    print("-" * len(header))
    entries = sorted(
        snapshot.entries.values(), key=lambda e: e.total_daily, reverse=True,
    )
    for e in entries:
        name = e.display_name(settings.anonymize_usernames)
        print(
            f"{name[:28]:<28} {e.weight:>6.3g} "
            f"{e.total_daily - e.repost_daily:>8.1f} {e.repost_daily:>9.1f} "
            f"{e.net_prob:>6.0%} {e.priority_prob:>6.0%} {e.regular_prob:>6.0%} "
            f"{(e.tracked_since or '-')[:10]:>10}"
        )


def cmd_stats(config: dict, args: argparse.Namespace) -> None:
    """Show store counts and global diagnostics of the current snapshot."""
    conn = get_connection(get_db_path(config))
    try:
        n_events = count_events(conn)
        n_follows = len(get_all_follows(conn))
        result = get_snapshot_with_timestamp(conn)
    finally:
        conn.close()

    print(f"Events stored:  {n_events}")
    print(f"Follows stored: {n_follows}")
    if result is None:
        print("No snapshot computed yet.")
        return

    stats = result[0].stats
    print(f"Analysis window: {stats.analysis_start} -> {stats.analysis_end}")
    print(
        f"Intervals: {stats.intervals_complete} complete / "
        f"{stats.intervals_processed} non-empty / {stats.intervals_expected} expected "
        f"({stats.intervals_sparse} sparse)"
    )
    print(
        f"Events: {stats.events_accumulated} accumulated, "
        f"{stats.events_skipped} skipped, {stats.events_dropped_cached} dropped"
    )
    print(
        f"Daily: {stats.status_daily:.1f} posts "
        f"({stats.original_posts_daily:.1f} original, {stats.reposts_daily:.1f} reposts), "
        f"budget {stats.views_per_day:.0f}"
    )
    print(
        f"Reposted originals: {stats.reposted_originals} "
        f"({stats.reposted_by_followed} reposted by followed sources)"
    )
    print(f"Filter fraction: {stats.filter_frac:.2f}")


COMMANDS = {
    "run": cmd_run,
    "init-db": cmd_init_db,
    "import": cmd_import,
    "show": cmd_show,
    "stats": cmd_stats,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="skylimit")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="Compute and save a fresh snapshot")
    sub.add_parser("init-db", help="Create the SQLite schema")
    imp = sub.add_parser("import", help="Load events and follows into the store")
    imp.add_argument("events", help="Events file, one JSON object per line")
    imp.add_argument("--follows", help="Follows file (YAML or JSON list)")
    sub.add_parser("show", help="Print the current snapshot")
    sub.add_parser("stats", help="Print store and snapshot diagnostics")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)

    config = load_config(os.environ.get("CONFIG_PATH", "config.yaml"))
    setup_logging(config)
    handler = COMMANDS[args.command]

    if inspect.iscoroutinefunction(handler):
        asyncio.run(handler(config, args))
    else:
        handler(config, args)


if __name__ == "__main__":
    main()
