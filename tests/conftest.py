"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from skylimit.config import get_curation_settings, load_config
from skylimit.db import get_connection, init_db
from skylimit.models import Event, RunContext, TrackedSource

BASE_TIME = datetime(2026, 3, 1, 0, 0, tzinfo=timezone.utc)
SELF_ID = "me.example.social"


def spread_events(
    source_id: str,
    per_interval: int,
    n_intervals: int,
    start: datetime = BASE_TIME,
    hours: int = 2,
    **kwargs,
) -> list[Event]:
    """``per_interval`` events in each of ``n_intervals`` consecutive windows."""
    events = []
    for i in range(n_intervals):
        for j in range(per_interval):
            ts = start + timedelta(hours=i * hours, minutes=10 + j)
            events.append(
                Event(
                    id=f"{source_id}/{i}/{j}",
                    source_id=source_id,
                    timestamp=ts,
                    **kwargs,
                )
            )
    return events


@pytest.fixture
def sample_config(tmp_path):
    """Minimal config for testing."""
    config_text = """
account:
  id: "me.example.social"

curation:
  views_per_day: 30
  days_of_data: 1
  interval_hours: 2
  secret_key: "test-secret"

database:
  path: "DB_PATH_PLACEHOLDER"
"""
    db_path = str(tmp_path / "test.db")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(config_text.replace("DB_PATH_PLACEHOLDER", db_path))
    return load_config(str(cfg_path))


@pytest.fixture
def settings(sample_config):
    return get_curation_settings(sample_config)


@pytest.fixture
def db_conn(sample_config):
    """Initialized test database connection."""
    db_path = sample_config["database"]["path"]
    init_db(db_path)
    conn = get_connection(db_path)
    yield conn
    conn.close()


@pytest.fixture
def sample_follows():
    """Two followed accounts and one followed hashtag."""
    since = BASE_TIME - timedelta(days=60)
    follows = [
        TrackedSource(id="alice.example.social", weight=1.0, tracked_since=since),
        TrackedSource(
            id="bob.example.social", weight=1.0,
            topics=frozenset({"Python"}), tracked_since=since,
        ),
        TrackedSource(id="#birds", weight=0.5, tracked_since=since),
    ]
    return {f.id: f for f in follows}


@pytest.fixture
def sample_events():
    """Ten 2-hour windows: alice posts 3 per window, bob 1, self 1."""
    return (
        spread_events("alice.example.social", 3, 10)
        + spread_events("bob.example.social", 1, 10)
        + spread_events(SELF_ID, 1, 10)
    )


@pytest.fixture
def run_ctx(settings, sample_follows):
    return RunContext(
        settings=settings,
        self_id=SELF_ID,
        follows=sample_follows,
        now=BASE_TIME + timedelta(days=1),
    )
