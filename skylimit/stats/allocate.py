"""Quota allocator: normalize daily rates and water-fill the view budget."""

from __future__ import annotations

import logging
import math

from skylimit.models import Accumulator, Category, IntervalReport
from skylimit.numeric import finite_or_zero, safe_div

logger = logging.getLogger(__name__)

# Four hours, used when the complete intervals cover no measurable time
MIN_DAY_TOTAL = 4 / 24
# Floor for the per-source daily-rate denominator
MIN_RATE_DENOMINATOR = 0.1


def day_total(report: IntervalReport) -> float:
    """Days of data represented by the complete intervals."""
    days = safe_div(report.complete_count * report.interval_hours, 24.0)
    if not math.isfinite(days) or days <= 0:
        logger.warning("Invalid day total %r, using %.3f days", days, MIN_DAY_TOTAL)
        return MIN_DAY_TOTAL
    return days


def compute_daily_rates(accumulators: dict[str, Accumulator], days: float) -> None:
    """Fill each entry's ``*_daily`` rates and the accumulator's normalized rate.

    Only followed sources carry weight; self and other untracked
    accumulators get weight 0 and are left out of allocation.
    """
    for accum in accumulators.values():
        entry = accum.entry
        accum.weight = entry.weight if accum.followed else 0.0
        accum.follow_weight = 1.0

        denominator = max(MIN_RATE_DENOMINATOR, accum.follow_weight * days)
        entry.top_daily = safe_div(accum.totals[Category.TOP], denominator)
        entry.priority_daily = safe_div(accum.totals[Category.PRIORITY], denominator)
        entry.regular_daily = safe_div(accum.totals[Category.REGULAR], denominator)
        entry.repost_daily = safe_div(accum.totals[Category.REPOST], denominator)
        entry.engaged_daily = safe_div(accum.engaged_total, denominator)
        entry.total_daily = finite_or_zero(
            entry.top_daily + entry.priority_daily
            + entry.regular_daily + entry.repost_daily
        )

        accum.normalized_daily = (
            safe_div(entry.total_daily, accum.weight) if accum.weight else 0.0
        )


def water_fill(demands: list[tuple[str, float, float]], budget: float) -> float:
    """Water level for ``(source_id, normalized_rate, weight)`` demands.

    Sources are visited in ascending rate order. Each takes the smaller of
    its own rate and an equal per-weight share of what is left. The highest
    such share is the quota number.
    """
    weighted = sorted(
        ((rate, source_id, weight) for source_id, rate, weight in demands if weight > 0),
        key=lambda d: (d[0], d[1]),
    )
    remaining_budget = max(0.0, finite_or_zero(budget))
    remaining_weight = sum(weight for _, _, weight in weighted)

    level = 0.0
    for rate, _source_id, weight in weighted:
        share = safe_div(remaining_budget, remaining_weight)
        candidate = max(0.0, min(finite_or_zero(rate), share))
        level = max(level, candidate)
        remaining_budget -= candidate * weight
        remaining_weight -= weight

    return level


def allocate(accumulators: dict[str, Accumulator], views_per_day: float) -> float:
    """Compute the global quota number from already-normalized accumulators."""
    demands = [
        (source_id, accum.normalized_daily, accum.weight)
        for source_id, accum in accumulators.items()
    ]
    quota = water_fill(demands, views_per_day)
    logger.info(
        "Quota number %.3f over %d weighted sources (budget %.1f views/day)",
        quota, sum(1 for _, _, w in demands if w > 0), views_per_day,
    )
    return quota
