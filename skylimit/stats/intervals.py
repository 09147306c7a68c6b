"""Interval grouper: bucket events into fixed windows and flag complete ones."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import numpy as np

from skylimit.models import Event, IntervalReport

logger = logging.getLogger(__name__)

# Complete intervals below this fraction of the average count are "sparse"
SPARSE_FRACTION = 0.1


def interval_key(ts: datetime, hours: int) -> str:
    """UTC ``YYYY-MM-DD-HH`` key with the hour floored to a multiple of ``hours``."""
    ts = ts.astimezone(timezone.utc)
    hour = (ts.hour // hours) * hours
    return f"{ts.year:04d}-{ts.month:02d}-{ts.day:02d}-{hour:02d}"


def parse_interval_key(key: str) -> datetime:
    """Start time of the interval named by ``key``."""
    year, month, day, hour = (int(part) for part in key.split("-"))
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def next_interval(key: str, hours: int) -> str:
    return interval_key(parse_interval_key(key) + timedelta(hours=hours), hours)


def oldest_interval(last_key: str, days: int, hours: int) -> str:
    """Key of the interval ``days`` days before ``last_key``."""
    return interval_key(parse_interval_key(last_key) - timedelta(days=days), hours)


def group_events(events: list[Event], hours: int) -> dict[str, list[Event]]:
    """Group events by interval key (reposts land in their repost-time window)."""
    grouped: dict[str, list[Event]] = defaultdict(list)
    for event in events:
        grouped[interval_key(event.timestamp, hours)].append(event)
    return dict(grouped)


def complete_mask(counts: np.ndarray) -> np.ndarray:
    """Boolean mask of complete intervals.

    Complete means non-empty, not the first or last interval, and both
    neighbours non-empty.
    """
    counts = np.asarray(counts)
    mask = np.zeros(counts.shape, dtype=bool)
    if counts.size < 3:
        return mask
    nonzero = counts > 0
    mask[1:-1] = nonzero[1:-1] & nonzero[:-2] & nonzero[2:]
    return mask


def classify_intervals(
    events: list[Event], interval_hours: int, days_of_data: int,
) -> IntervalReport:
    """Classify every interval in the lookback window ending at the newest event."""
    if not events:
        return _empty_report(interval_hours)

    grouped = group_events(events, interval_hours)
    last_key = max(grouped)
    final_end = next_interval(last_key, interval_hours)
    key = oldest_interval(last_key, days_of_data, interval_hours)

    keys: list[str] = []
    while key < final_end:
        keys.append(key)
        key = next_interval(key, interval_hours)

    counts = np.array([len(grouped.get(k, ())) for k in keys], dtype=np.int64)
    mask = complete_mask(counts)
    nonzero = counts > 0

    complete_counts = counts[mask]
    if complete_counts.size:
        avg = float(complete_counts.mean())
        peak = int(complete_counts.max())
        sparse = int(np.count_nonzero(complete_counts < avg * SPARSE_FRACTION))
    else:
        avg, peak, sparse = 0.0, 0, 0

    dropped = sum(
        1 for k in keys for event in grouped.get(k, ()) if event.dropped
    )

    report = IntervalReport(
        keys=tuple(keys),
        counts={k: int(c) for k, c in zip(keys, counts)},
        complete=frozenset(k for k, m in zip(keys, mask) if m),
        expected=len(keys),
        processed_non_empty=int(np.count_nonzero(nonzero)),
        complete_count=int(np.count_nonzero(mask)),
        incomplete_count=int(np.count_nonzero(nonzero & ~mask)),
        avg_per_complete=avg,
        max_per_complete=peak,
        sparse=sparse,
        dropped=dropped,
        start=parse_interval_key(keys[0]),
        end=parse_interval_key(final_end),
        interval_hours=interval_hours,
    )
    logger.info(
        "Intervals: %d expected, %d non-empty, %d complete, %d incomplete",
        report.expected, report.processed_non_empty,
        report.complete_count, report.incomplete_count,
    )
    return report


def _empty_report(interval_hours: int) -> IntervalReport:
    return IntervalReport(
        keys=(),
        counts={},
        complete=frozenset(),
        expected=0,
        processed_non_empty=0,
        complete_count=0,
        incomplete_count=0,
        avg_per_complete=0.0,
        max_per_complete=0,
        sparse=0,
        dropped=0,
        start=None,
        end=None,
        interval_hours=interval_hours,
    )


def events_in(events: list[Event], report: IntervalReport) -> list[Event]:
    """Events whose interval is complete."""
    hours = report.interval_hours
    return [e for e in events if interval_key(e.timestamp, hours) in report.complete]
