"""Pipeline orchestrator: events -> intervals -> accumulation -> quota -> snapshot."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from skylimit.config import CurationSettings, get_curation_settings, get_db_path, get_self_id
from skylimit.db import get_all_events, get_all_follows, get_connection, save_snapshot
from skylimit.models import Event, RunContext, Snapshot, TrackedSource
from skylimit.stats import (
    accumulate,
    allocate,
    assemble_snapshot,
    classify_intervals,
    compute_daily_rates,
    day_total,
    derive_probabilities,
)

logger = logging.getLogger(__name__)


def build_snapshot(
    events: list[Event],
    follows: dict[str, TrackedSource],
    settings: CurationSettings,
    self_id: str,
    now: datetime | None = None,
) -> Snapshot | None:
    """Run every stage over an in-memory history. Returns None when there is no data."""
    ctx = RunContext(
        settings=settings,
        self_id=self_id,
        follows=follows,
        now=now or datetime.now(timezone.utc),
    )

    if not events:
        logger.warning("No events stored, skipping snapshot")
        return None

    report = classify_intervals(events, settings.interval_hours, settings.days_of_data)
    if not report.has_data:
        logger.warning(
            "No complete intervals among %d non-empty, skipping snapshot",
            report.processed_non_empty,
        )
        return None

    accumulation = accumulate(events, report, ctx)
    days = day_total(report)
    compute_daily_rates(accumulation.accumulators, days)
    quota = allocate(accumulation.accumulators, settings.views_per_day)
    entries = derive_probabilities(accumulation.accumulators, quota, ctx.self_id)
    return assemble_snapshot(report, accumulation, entries, quota, days, ctx)


async def run_pipeline(config: dict) -> Snapshot | None:
    """Compute a fresh snapshot from the store and replace the current one."""
    settings = get_curation_settings(config)
    self_id = get_self_id(config)
    conn = get_connection(get_db_path(config))
    try:
        events = get_all_events(conn)
        follows = get_all_follows(conn)
        logger.info("Loaded %d events and %d follows", len(events), len(follows))

        snapshot = build_snapshot(events, follows, settings, self_id)
        if snapshot is None:
            return None

        try:
            save_snapshot(conn, snapshot)
        except Exception:
            logger.exception("Saving snapshot failed, keeping previous snapshot")
            raise

        logger.info(
            "Snapshot saved: quota %.3f, %d sources, %.2f days of data",
            snapshot.quota_number, len(snapshot.entries), snapshot.stats.day_total,
        )
        return snapshot
    finally:
        conn.close()
