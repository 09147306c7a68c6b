"""Snapshot assembler: package global diagnostics and per-source entries."""

from __future__ import annotations

from datetime import datetime

from skylimit.models import GlobalStats, IntervalReport, RunContext, Snapshot, UserEntry
from skylimit.numeric import safe_div
from skylimit.stats.accumulate import AccumulationResult
from skylimit.stats.probability import filter_fraction


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def assemble_snapshot(
    report: IntervalReport,
    accumulation: AccumulationResult,
    entries: dict[str, UserEntry],
    quota: float,
    days: float,
    ctx: RunContext,
) -> Snapshot:
    accums = accumulation.accumulators.values()
    status_total = sum(a.status_total for a in accums)
    original_total = sum(a.original_total for a in accums)
    repost_total = status_total - original_total

    stats = GlobalStats(
        quota_number=quota,
        views_per_day=ctx.settings.views_per_day,
        day_total=days,
        status_total=status_total,
        status_daily=safe_div(status_total, days),
        original_posts_daily=safe_div(original_total, days),
        reposts_daily=safe_div(repost_total, days),
        intervals_expected=report.expected,
        intervals_processed=report.processed_non_empty,
        intervals_complete=report.complete_count,
        intervals_incomplete=report.incomplete_count,
        intervals_sparse=report.sparse,
        posts_per_interval_avg=report.avg_per_complete,
        posts_per_interval_max=report.max_per_complete,
        complete_intervals_days=safe_div(
            report.complete_count, ctx.settings.intervals_per_day,
        ),
        interval_length_hours=report.interval_hours,
        days_of_data=ctx.settings.days_of_data,
        analysis_start=_iso(report.start),
        analysis_end=_iso(report.end),
        events_total_cached=sum(report.counts.values()),
        events_dropped_cached=report.dropped,
        events_total=accumulation.total,
        events_accumulated=accumulation.accumulated,
        events_skipped=accumulation.skipped,
        events_oldest=_iso(accumulation.oldest),
        events_newest=_iso(accumulation.newest),
        filter_frac=filter_fraction(entries),
        reposted_originals=len(accumulation.reposted),
        reposted_by_followed=sum(
            1 for s in accumulation.reposted.values() if s.followed_repost_count
        ),
    )
    return Snapshot(stats=stats, entries=dict(entries), timestamp=ctx.now)
