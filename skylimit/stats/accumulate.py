"""Per-source accumulator: tally category counts over complete intervals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from skylimit.anonymize import SELF_ALIAS, alias_for
from skylimit.models import (
    HASHTAG_PREFIX,
    PRIORITY_TAG,
    TOP_TAGS,
    Accumulator,
    Category,
    Event,
    IntervalReport,
    RepostStats,
    RunContext,
    TrackedSource,
    UserEntry,
)
from skylimit.numeric import clamp
from skylimit.stats.intervals import events_in

logger = logging.getLogger(__name__)


@dataclass
class AccumulationResult:
    """Accumulators plus the bookkeeping gathered while building them."""

    accumulators: dict[str, Accumulator]
    accumulated: int = 0
    skipped: int = 0
    total: int = 0
    oldest: datetime | None = None
    newest: datetime | None = None
    reposted: dict[str, RepostStats] = field(default_factory=dict)


def categorize(event: Event, topics: frozenset[str]) -> Category:
    """Single category of ``event`` for a source following ``topics``."""
    if event.is_repost:
        return Category.REPOST
    if event.tags & TOP_TAGS:
        return Category.TOP
    if PRIORITY_TAG in event.tags or event.tags & topics:
        return Category.PRIORITY
    return Category.REGULAR


def _new_accumulator(source: TrackedSource, ctx: RunContext) -> Accumulator:
    settings = ctx.settings
    alias = source.id if source.is_hashtag else alias_for(settings.secret_key, source.id)
    weight = clamp(source.weight, settings.min_weight, settings.max_weight)
    entry = UserEntry.new(
        source.id, alias, weight, source.topics,
        name=source.display_name, tracked_since=source.tracked_since,
    )
    return Accumulator.for_entry(entry, followed=True)


def _self_accumulator(ctx: RunContext) -> Accumulator:
    entry = UserEntry.new(ctx.self_id, SELF_ALIAS, 1.0)
    return Accumulator.for_entry(entry)


def _resolve(
    event: Event, accumulators: dict[str, Accumulator], ctx: RunContext,
) -> list[str]:
    """Ids of the tracked sources this event is attributed to."""
    if event.source_id in accumulators:
        return [event.source_id]

    follow = ctx.follows.get(event.source_id)
    if follow is not None and not follow.is_hashtag:
        accumulators[follow.id] = _new_accumulator(follow, ctx)
        return [follow.id]

    tracked = []
    for tag in sorted(event.tags):
        track_id = HASHTAG_PREFIX + tag
        tag_follow = ctx.follows.get(track_id)
        if tag_follow is None:
            continue
        if track_id not in accumulators:
            accumulators[track_id] = _new_accumulator(tag_follow, ctx)
        tracked.append(track_id)
    return tracked


def accumulate(
    events: list[Event], report: IntervalReport, ctx: RunContext,
) -> AccumulationResult:
    """Walk events in complete intervals and tally them per tracked source."""
    accumulators: dict[str, Accumulator] = {}
    if ctx.self_id:
        accumulators[ctx.self_id] = _self_accumulator(ctx)

    result = AccumulationResult(accumulators=accumulators)
    reposts: dict[str, list[int]] = {}

    for event in sorted(events_in(events, report), key=lambda e: (e.timestamp, e.id)):
        result.total += 1
        if result.oldest is None or event.timestamp < result.oldest:
            result.oldest = event.timestamp
        if result.newest is None or event.timestamp > result.newest:
            result.newest = event.timestamp

        if event.is_repost:
            stats = reposts.setdefault(event.repost_of_id, [0, 0])
            stats[0] += 1
            if event.source_id in ctx.follows:
                stats[1] += 1

        track_ids = _resolve(event, accumulators, ctx)
        if not track_ids:
            result.skipped += 1
            continue

        result.accumulated += 1
        # One event split evenly across multiple matching hashtag follows
        share = 1.0 / len(track_ids)
        for track_id in track_ids:
            accum = accumulators[track_id]
            accum.add(categorize(event, frozenset(accum.entry.topics)), share)
            if event.engaged:
                accum.engaged_total += share

    result.reposted = {
        uri: RepostStats(repost_count=c[0], followed_repost_count=c[1])
        for uri, c in reposts.items()
    }
    logger.info(
        "Accumulated %d events for %d sources (%d skipped)",
        result.accumulated, len(accumulators), result.skipped,
    )
    return result
