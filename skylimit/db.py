"""SQLite schema and helpers for the event store, follow registry and snapshots."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from skylimit.models import Event, Snapshot, TrackedSource, parse_timestamp

SCHEMA_VERSION = 1

CURRENT_SNAPSHOT_ID = "current"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    source_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    tags TEXT NOT NULL DEFAULT '[]',
    repost_of_id TEXT,
    engaged INTEGER NOT NULL DEFAULT 0,
    dropped INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS follows (
    id TEXT PRIMARY KEY,
    weight REAL NOT NULL DEFAULT 1.0,
    topics TEXT NOT NULL DEFAULT '[]',
    tracked_since TEXT,
    display_name TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS snapshots (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    timestamp TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_timestamp ON events(timestamp);
CREATE INDEX IF NOT EXISTS idx_events_source_id ON events(source_id);
"""


def get_connection(db_path: str) -> sqlite3.Connection:
    """Get a SQLite connection with WAL mode enabled."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> None:
    """Create all tables and set schema version."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()
    finally:
        conn.close()


def _dt_str(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def _parse_dt(s: str | None) -> datetime | None:
    if s is None:
        return None
    return parse_timestamp(s)


# --- Event helpers ---


def _event_row(event: Event) -> tuple:
    return (
        event.id,
        event.source_id,
        _dt_str(event.timestamp),
        json.dumps(sorted(event.tags)),
        event.repost_of_id,
        int(event.engaged),
        int(event.dropped),
    )


_INSERT_EVENT_SQL = """INSERT OR IGNORE INTO events
   (id, source_id, timestamp, tags, repost_of_id, engaged, dropped)
   VALUES (?, ?, ?, ?, ?, ?, ?)"""


def insert_event(conn: sqlite3.Connection, event: Event) -> bool:
    """Insert an event. Returns False if the id was already stored."""
    cur = conn.execute(_INSERT_EVENT_SQL, _event_row(event))
    conn.commit()
    return cur.rowcount > 0


def insert_events(conn: sqlite3.Connection, events: list[Event]) -> int:
    """Insert many events in one transaction, returning how many were new."""
    before = conn.total_changes
    with conn:
        conn.executemany(_INSERT_EVENT_SQL, [_event_row(e) for e in events])
    return conn.total_changes - before


def get_all_events(conn: sqlite3.Connection) -> list[Event]:
    rows = conn.execute("SELECT * FROM events ORDER BY timestamp, id").fetchall()
    return [_row_to_event(row) for row in rows]


def count_events(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]


def _row_to_event(row: sqlite3.Row) -> Event:
    return Event(
        id=row["id"],
        source_id=row["source_id"],
        timestamp=parse_timestamp(row["timestamp"]),
        tags=frozenset(json.loads(row["tags"])),
        repost_of_id=row["repost_of_id"],
        engaged=bool(row["engaged"]),
        dropped=bool(row["dropped"]),
    )


# --- Follow helpers ---


def upsert_follow(conn: sqlite3.Connection, source: TrackedSource) -> None:
    """Insert or replace a followed source."""
    conn.execute(
        """INSERT OR REPLACE INTO follows
           (id, weight, topics, tracked_since, display_name)
           VALUES (?, ?, ?, ?, ?)""",
        (
            source.id,
            source.weight,
            json.dumps(sorted(source.topics)),
            _dt_str(source.tracked_since),
            source.display_name,
        ),
    )
    conn.commit()


def delete_follow(conn: sqlite3.Connection, source_id: str) -> None:
    conn.execute("DELETE FROM follows WHERE id = ?", (source_id,))
    conn.commit()


def get_all_follows(conn: sqlite3.Connection) -> dict[str, TrackedSource]:
    """The whole follow registry keyed by source id."""
    rows = conn.execute("SELECT * FROM follows").fetchall()
    follows = {}
    for row in rows:
        source = TrackedSource(
            id=row["id"],
            weight=row["weight"],
            topics=frozenset(json.loads(row["topics"])),
            tracked_since=_parse_dt(row["tracked_since"]),
            display_name=row["display_name"],
        )
        follows[source.id] = source
    return follows


# --- Snapshot helpers ---


def save_snapshot(conn: sqlite3.Connection, snapshot: Snapshot) -> None:
    """Atomically replace the current snapshot."""
    with conn:
        conn.execute(
            "INSERT OR REPLACE INTO snapshots (id, data, timestamp) VALUES (?, ?, ?)",
            (
                CURRENT_SNAPSHOT_ID,
                json.dumps(snapshot.to_dict(), sort_keys=True),
                _dt_str(snapshot.timestamp),
            ),
        )


def get_snapshot_with_timestamp(
    conn: sqlite3.Connection,
) -> tuple[Snapshot, datetime] | None:
    row = conn.execute(
        "SELECT data, timestamp FROM snapshots WHERE id = ?", (CURRENT_SNAPSHOT_ID,),
    ).fetchone()
    if row is None:
        return None
    return Snapshot.from_dict(json.loads(row["data"])), parse_timestamp(row["timestamp"])


def get_snapshot(conn: sqlite3.Connection) -> Snapshot | None:
    """The current snapshot, or None if no run has succeeded yet."""
    result = get_snapshot_with_timestamp(conn)
    return result[0] if result else None
