"""Core data models for the quota engine."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from skylimit.config import CurationSettings

DEFAULT_WEIGHT = 1.0

# Must-show tags (message of the day/week/month) and the explicit priority tag
TOP_TAGS = frozenset({"motd", "motw", "motm"})
PRIORITY_TAG = "priority"

HASHTAG_PREFIX = "#"


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO string, epoch seconds or datetime into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported timestamp: {value!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _normalize_tags(tags: Any) -> frozenset[str]:
    if not tags:
        return frozenset()
    if isinstance(tags, str):
        tags = tags.split()
    return frozenset(t.lower().lstrip("#") for t in tags if t)


@dataclass(frozen=True)
class Event:
    """A single post or repost observed in a followed feed."""

    id: str
    source_id: str
    timestamp: datetime  # repost time for reposts
    tags: frozenset[str] = frozenset()
    repost_of_id: str | None = None
    engaged: bool = False
    dropped: bool = False

    def __post_init__(self):
        object.__setattr__(self, "tags", _normalize_tags(self.tags))

    @property
    def is_repost(self) -> bool:
        return bool(self.repost_of_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        return cls(
            id=str(data["id"]),
            source_id=str(data["source_id"]),
            timestamp=parse_timestamp(data["timestamp"]),
            tags=_normalize_tags(data.get("tags")),
            repost_of_id=data.get("repost_of_id") or None,
            engaged=bool(data.get("engaged", False)),
            dropped=bool(data.get("dropped", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "timestamp": self.timestamp.isoformat(),
            "tags": sorted(self.tags),
            "repost_of_id": self.repost_of_id,
            "engaged": self.engaged,
            "dropped": self.dropped,
        }


@dataclass(frozen=True)
class TrackedSource:
    """A followed account (or ``#tag``) from the follow registry."""

    id: str
    weight: float = DEFAULT_WEIGHT
    topics: frozenset[str] = frozenset()
    tracked_since: datetime | None = None
    display_name: str = ""

    def __post_init__(self):
        # Raw weight; clamped against the configured bounds at accumulation time
        weight = DEFAULT_WEIGHT if self.weight is None else float(self.weight)
        object.__setattr__(self, "weight", weight)
        object.__setattr__(self, "topics", _normalize_tags(self.topics))
        if self.id.startswith(HASHTAG_PREFIX):
            object.__setattr__(self, "id", self.id.lower())

    @property
    def is_hashtag(self) -> bool:
        return self.id.startswith(HASHTAG_PREFIX)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrackedSource:
        since = data.get("tracked_since")
        return cls(
            id=str(data["id"]),
            weight=data.get("weight", DEFAULT_WEIGHT),
            topics=data.get("topics") or frozenset(),
            tracked_since=parse_timestamp(since) if since else None,
            display_name=data.get("display_name", "") or "",
        )


class Category(enum.Enum):
    """Mutually exclusive content category of an event for its source."""

    TOP = "top"
    PRIORITY = "priority"
    REGULAR = "regular"
    REPOST = "repost"


@dataclass
class UserEntry:
    """Per-source daily rates and display probabilities (persisted)."""

    source_id: str
    alias: str
    topics: list[str]
    weight: float
    top_daily: float
    priority_daily: float
    regular_daily: float
    repost_daily: float
    engaged_daily: float
    total_daily: float
    net_prob: float
    priority_prob: float
    regular_prob: float
    name: str = ""
    tracked_since: str | None = None

    @classmethod
    def new(
        cls, source_id: str, alias: str, weight: float, topics=(),
        name: str = "", tracked_since: datetime | None = None,
    ) -> UserEntry:
        """Fresh entry with every rate and probability at zero."""
        return cls(
            source_id=source_id,
            alias=alias,
            topics=sorted(topics),
            weight=weight,
            top_daily=0.0,
            priority_daily=0.0,
            regular_daily=0.0,
            repost_daily=0.0,
            engaged_daily=0.0,
            total_daily=0.0,
            net_prob=0.0,
            priority_prob=0.0,
            regular_prob=0.0,
            name=name,
            tracked_since=tracked_since.isoformat() if tracked_since else None,
        )

    def display_name(self, anonymize: bool) -> str:
        if anonymize:
            return self.alias
        return self.name or self.source_id

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserEntry:
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class Accumulator:
    """Running per-source totals for one computation pass."""

    entry: UserEntry
    totals: dict[Category, float]
    engaged_total: float = 0.0
    weight: float = 0.0
    follow_weight: float = 1.0
    normalized_daily: float = 0.0
    followed: bool = False

    @classmethod
    def for_entry(cls, entry: UserEntry, followed: bool = False) -> Accumulator:
        return cls(
            entry=entry,
            totals={category: 0.0 for category in Category},
            followed=followed,
        )

    def add(self, category: Category, amount: float = 1.0) -> None:
        self.totals[category] += amount

    @property
    def status_total(self) -> float:
        return sum(self.totals.values())

    @property
    def original_total(self) -> float:
        return self.status_total - self.totals[Category.REPOST]


@dataclass(frozen=True)
class IntervalReport:
    """Result of bucketing events into intervals and classifying them."""

    keys: tuple[str, ...]
    counts: dict[str, int]
    complete: frozenset[str]
    expected: int
    processed_non_empty: int
    complete_count: int
    incomplete_count: int
    avg_per_complete: float
    max_per_complete: int
    sparse: int
    dropped: int
    start: datetime | None
    end: datetime | None
    interval_hours: int

    @property
    def has_data(self) -> bool:
        return self.complete_count > 0


@dataclass(frozen=True)
class RepostStats:
    """How often one original post was reposted within complete intervals."""

    repost_count: int = 0
    followed_repost_count: int = 0


@dataclass
class GlobalStats:
    """Global quota and coverage diagnostics for one snapshot."""

    quota_number: float
    views_per_day: float
    day_total: float
    status_total: float
    status_daily: float
    original_posts_daily: float
    reposts_daily: float
    intervals_expected: int
    intervals_processed: int
    intervals_complete: int
    intervals_incomplete: int
    intervals_sparse: int
    posts_per_interval_avg: float
    posts_per_interval_max: int
    complete_intervals_days: float
    interval_length_hours: int
    days_of_data: int
    analysis_start: str | None
    analysis_end: str | None
    events_total_cached: int
    events_dropped_cached: int
    events_total: int
    events_accumulated: int
    events_skipped: int
    events_oldest: str | None
    events_newest: str | None
    filter_frac: float
    reposted_originals: int = 0
    reposted_by_followed: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GlobalStats:
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class Snapshot:
    """Immutable result of one successful run."""

    stats: GlobalStats
    entries: dict[str, UserEntry]
    timestamp: datetime

    @property
    def quota_number(self) -> float:
        return self.stats.quota_number

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": asdict(self.stats),
            "entries": {k: asdict(v) for k, v in self.entries.items()},
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        return cls(
            stats=GlobalStats.from_dict(data["stats"]),
            entries={
                k: UserEntry.from_dict(v) for k, v in data.get("entries", {}).items()
            },
            timestamp=parse_timestamp(data["timestamp"]),
        )


@dataclass
class RunContext:
    """Everything one computation pass needs, passed explicitly to each stage."""

    settings: CurationSettings
    self_id: str
    follows: dict[str, TrackedSource] = field(default_factory=dict)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
