"""Quota engine stages, in pipeline order."""

from __future__ import annotations

from skylimit.stats.intervals import classify_intervals  # noqa: F401
from skylimit.stats.accumulate import AccumulationResult, accumulate  # noqa: F401
from skylimit.stats.allocate import allocate, compute_daily_rates, day_total  # noqa: F401
from skylimit.stats.probability import derive_probabilities  # noqa: F401
from skylimit.stats.snapshot import assemble_snapshot  # noqa: F401
