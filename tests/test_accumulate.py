"""Tests for per-source accumulation and categorization."""

from __future__ import annotations

from datetime import timedelta

import pytest

from skylimit.anonymize import SELF_ALIAS, alias_for
from skylimit.config import get_curation_settings
from skylimit.models import Category, Event, RunContext, TrackedSource
from skylimit.stats.accumulate import accumulate, categorize
from skylimit.stats.intervals import classify_intervals
from tests.conftest import BASE_TIME, SELF_ID


def _mid(i: int, source_id: str = "alice.example.social", **kwargs) -> Event:
    """An event in the 08:00 window, which is complete in the sample history."""
    return Event(
        id=f"extra/{source_id}/{i}",
        source_id=source_id,
        timestamp=BASE_TIME + timedelta(hours=8, minutes=40 + i),
        **kwargs,
    )


def _run(events, ctx):
    report = classify_intervals(events, ctx.settings.interval_hours, ctx.settings.days_of_data)
    return accumulate(events, report, ctx)


def test_categorize_repost_wins():
    event = _mid(0, tags=frozenset({"motd", "priority"}), repost_of_id="orig/1")
    assert categorize(event, frozenset()) is Category.REPOST


def test_categorize_top_before_priority():
    event = _mid(0, tags=frozenset({"motw", "priority"}))
    assert categorize(event, frozenset()) is Category.TOP


def test_categorize_priority_tag_and_topics():
    assert categorize(_mid(0, tags=frozenset({"priority"})), frozenset()) is Category.PRIORITY
    assert categorize(_mid(0, tags=frozenset({"python"})), frozenset({"python"})) is Category.PRIORITY
    assert categorize(_mid(0, tags=frozenset({"python"})), frozenset()) is Category.REGULAR


def test_categorize_topics_case_insensitive():
    event = Event.from_dict({
        "id": "x", "source_id": "bob", "timestamp": BASE_TIME.isoformat(),
        "tags": ["#PyThOn"],
    })
    source = TrackedSource(id="bob", topics=frozenset({"Python"}))
    assert categorize(event, source.topics) is Category.PRIORITY


def test_directly_built_event_tags_normalized():
    event = _mid(0, tags=frozenset({"Python", "#MOTD"}))
    assert event.tags == frozenset({"python", "motd"})
    assert categorize(_mid(0, tags=frozenset({"PyThOn"})), frozenset({"python"})) is Category.PRIORITY
    assert categorize(event, frozenset()) is Category.TOP


def test_accumulate_sample(sample_events, run_ctx):
    result = _run(sample_events, run_ctx)
    accums = result.accumulators

    assert set(accums) == {SELF_ID, "alice.example.social", "bob.example.social"}
    assert accums["alice.example.social"].totals[Category.REGULAR] == 24
    assert accums["bob.example.social"].totals[Category.REGULAR] == 8
    assert accums[SELF_ID].totals[Category.REGULAR] == 8
    assert result.accumulated == 40
    assert result.skipped == 0
    assert result.total == 40
    assert result.oldest == BASE_TIME + timedelta(hours=2, minutes=10)
    assert result.newest == BASE_TIME + timedelta(hours=16, minutes=12)


def test_self_is_seeded_before_any_event(sample_events, run_ctx):
    report = classify_intervals(sample_events, 2, 1)
    result = accumulate([], report, run_ctx)
    assert list(result.accumulators) == [SELF_ID]
    entry = result.accumulators[SELF_ID].entry
    assert entry.alias == SELF_ALIAS
    assert not result.accumulators[SELF_ID].followed


def test_self_wins_over_follow_entry(sample_events, settings, sample_follows):
    follows = dict(sample_follows)
    follows[SELF_ID] = TrackedSource(id=SELF_ID, weight=2.0)
    ctx = RunContext(settings=settings, self_id=SELF_ID, follows=follows)
    result = _run(sample_events, ctx)
    assert result.accumulators[SELF_ID].entry.alias == SELF_ALIAS
    assert not result.accumulators[SELF_ID].followed


def test_unregistered_source_is_skipped(sample_events, run_ctx):
    stranger = [_mid(i, source_id="stranger") for i in range(3)]
    result = _run(sample_events + stranger, run_ctx)
    assert "stranger" not in result.accumulators
    assert result.skipped == 3
    assert result.accumulated == 40


def test_events_outside_complete_intervals_ignored(sample_events, run_ctx):
    boundary = Event(
        id="late", source_id="alice.example.social",
        timestamp=BASE_TIME + timedelta(hours=18, minutes=50),
    )
    result = _run(sample_events + [boundary], run_ctx)
    assert result.accumulators["alice.example.social"].totals[Category.REGULAR] == 24


def test_hashtag_follow_tracks_untracked_author(sample_events, run_ctx):
    event = _mid(0, source_id="stranger", tags=frozenset({"birds"}))
    result = _run(sample_events + [event], run_ctx)
    accum = result.accumulators["#birds"]
    assert accum.entry.alias == "#birds"
    assert accum.totals[Category.REGULAR] == 1
    assert result.skipped == 0


def test_hashtag_event_split_across_follows(sample_events, settings, sample_follows):
    follows = dict(sample_follows)
    follows["#cats"] = TrackedSource(id="#Cats", weight=1.0)
    ctx = RunContext(settings=settings, self_id=SELF_ID, follows=follows)
    event = _mid(0, source_id="stranger", tags=frozenset({"birds", "cats"}), engaged=True)
    result = _run(sample_events + [event], ctx)
    for track_id in ("#birds", "#cats"):
        accum = result.accumulators[track_id]
        assert accum.totals[Category.REGULAR] == pytest.approx(0.5)
        assert accum.engaged_total == pytest.approx(0.5)
    assert result.accumulated == 41


def test_followed_author_not_counted_under_hashtag(sample_events, run_ctx):
    event = _mid(0, tags=frozenset({"birds"}))
    result = _run(sample_events + [event], run_ctx)
    assert "#birds" not in result.accumulators
    assert result.accumulators["alice.example.social"].totals[Category.REGULAR] == 25


def test_categories_are_exclusive_and_engagement_overlays(sample_events, run_ctx):
    extra = [
        _mid(0, tags=frozenset({"motd"}), engaged=True),
        _mid(1, tags=frozenset({"priority"})),
        _mid(2, repost_of_id="orig/9", engaged=True),
        _mid(3, source_id="bob.example.social", tags=frozenset({"python"})),
    ]
    result = _run(sample_events + extra, run_ctx)
    alice = result.accumulators["alice.example.social"]
    assert alice.totals[Category.TOP] == 1
    assert alice.totals[Category.PRIORITY] == 1
    assert alice.totals[Category.REPOST] == 1
    assert alice.totals[Category.REGULAR] == 24
    assert alice.status_total == 27
    assert alice.original_total == 26
    assert alice.engaged_total == 2
    assert result.accumulators["bob.example.social"].totals[Category.PRIORITY] == 1


def test_new_source_entry(sample_events, run_ctx):
    result = _run(sample_events, run_ctx)
    bob = result.accumulators["bob.example.social"]
    assert bob.entry.alias == alias_for("test-secret", "bob.example.social")
    assert bob.entry.topics == ["python"]
    assert bob.followed


def test_weight_clamped_to_settings(sample_events):
    settings = get_curation_settings({"curation": {"max_weight": 4.0, "days_of_data": 1}})
    follows = {
        "alice.example.social": TrackedSource(id="alice.example.social", weight=100),
        "bob.example.social": TrackedSource(id="bob.example.social", weight=0.0001),
    }
    ctx = RunContext(settings=settings, self_id=SELF_ID, follows=follows)
    result = _run(sample_events, ctx)
    assert result.accumulators["alice.example.social"].entry.weight == 4.0
    assert result.accumulators["bob.example.social"].entry.weight == 0.125


def test_wider_weight_bounds_from_settings(sample_events):
    settings = get_curation_settings({
        "curation": {"min_weight": 0.01, "max_weight": 16.0, "days_of_data": 1},
    })
    follows = {
        "alice.example.social": TrackedSource(id="alice.example.social", weight=12.0),
        "bob.example.social": TrackedSource(id="bob.example.social", weight=0.05),
    }
    # registry keeps the weight exactly as configured
    assert follows["alice.example.social"].weight == 12.0
    ctx = RunContext(settings=settings, self_id=SELF_ID, follows=follows)
    result = _run(sample_events, ctx)
    assert result.accumulators["alice.example.social"].entry.weight == 12.0
    assert result.accumulators["bob.example.social"].entry.weight == 0.05


def test_registry_details_carried_to_entry(sample_events, settings):
    since = BASE_TIME - timedelta(days=3)
    follows = {
        "alice.example.social": TrackedSource(
            id="alice.example.social", display_name="Alice", tracked_since=since,
        ),
    }
    ctx = RunContext(settings=settings, self_id=SELF_ID, follows=follows)
    entry = _run(sample_events, ctx).accumulators["alice.example.social"].entry
    assert entry.name == "Alice"
    assert entry.tracked_since == since.isoformat()
    assert entry.display_name(anonymize=False) == "Alice"
    assert entry.display_name(anonymize=True) == entry.alias


def test_repost_bookkeeping(sample_events, run_ctx):
    extra = [
        _mid(0, repost_of_id="orig/1"),
        _mid(1, source_id="bob.example.social", repost_of_id="orig/1"),
        _mid(2, source_id="stranger", repost_of_id="orig/1"),
    ]
    result = _run(sample_events + extra, run_ctx)
    stats = result.reposted["orig/1"]
    assert stats.repost_count == 3
    assert stats.followed_repost_count == 2
