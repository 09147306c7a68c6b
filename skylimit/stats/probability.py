"""Probability deriver: per-source, per-category display probabilities."""

from __future__ import annotations

import logging
import math

from skylimit.models import HASHTAG_PREFIX, Accumulator, UserEntry
from skylimit.numeric import clamp, finite_or_zero, safe_div

logger = logging.getLogger(__name__)

# Personal quota below which top-tier content only gets a fixed allowance
MIN_QUOTA_FOR_TOP = 1.0
# One daily + one weekly + one monthly must-show post, roughly
TOP_ALLOWANCE = 1 / 7 + 1 / 30

DEFAULT_FILTER_FRAC = 0.5
MIN_FILTER_FRAC = 0.01


def category_probabilities(
    source_quota: float, top: float, priority: float, regular_plus_reposts: float,
) -> tuple[float, float]:
    """``(priority_prob, regular_prob)`` for a personal quota and daily rates."""
    if source_quota < MIN_QUOTA_FOR_TOP:
        available = source_quota - min(TOP_ALLOWANCE, top)
    else:
        available = source_quota - top

    if available <= 0:
        return 0.0, 0.0
    if priority >= available:
        return clamp(safe_div(available, priority), 0.0, 1.0), 0.0
    regular = safe_div(available - priority, max(1.0, regular_plus_reposts))
    return 1.0, clamp(regular, 0.0, 1.0)


def derive_entry(accum: Accumulator, quota: float, is_self: bool) -> UserEntry:
    """Fill the probabilities on one accumulator's entry and return it."""
    entry = accum.entry
    net_count = entry.total_daily if is_self else accum.normalized_daily
    entry.net_prob = clamp(safe_div(quota, max(1.0, net_count)), 0.0, 1.0)

    source_quota = finite_or_zero(quota * (accum.weight or 1.0))
    entry.priority_prob, entry.regular_prob = category_probabilities(
        source_quota,
        entry.top_daily,
        entry.priority_daily,
        entry.regular_daily + entry.repost_daily,
    )
    return entry


def derive_probabilities(
    accumulators: dict[str, Accumulator], quota: float, self_id: str,
) -> dict[str, UserEntry]:
    """Populate every entry and return them keyed (and ordered) by source id."""
    entries = {
        source_id: derive_entry(accumulators[source_id], quota, source_id == self_id)
        for source_id in sorted(accumulators)
    }
    logger.info("Derived probabilities for %d sources", len(entries))
    return entries


def filter_fraction(entries: dict[str, UserEntry]) -> float:
    """Average regular-post survival probability, weighted by posting volume.

    Hashtag follows are excluded. Defaults to 0.5 without data.
    """
    total_weight = 0.0
    weighted_sum = 0.0
    for source_id, entry in entries.items():
        if source_id.startswith(HASHTAG_PREFIX):
            continue
        weight = entry.total_daily
        if weight > 0 and math.isfinite(weight):
            total_weight += weight
            weighted_sum += finite_or_zero(entry.regular_prob) * weight

    if total_weight <= 0:
        return DEFAULT_FILTER_FRAC
    frac = safe_div(weighted_sum, total_weight)
    return clamp(frac, MIN_FILTER_FRAC, 1.0)
