#!/usr/bin/env python3
"""Generate a synthetic event history and follow list for local runs.

    python scripts/simulate_feed.py --out data/sim
    python -m skylimit import data/sim/events.jsonl --follows data/sim/follows.yaml
    python -m skylimit run && python -m skylimit show
"""

from __future__ import annotations

import argparse
import json
import os
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import yaml

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from skylimit.models import Event

TAGS = ["news", "python", "science", "art", "priority", "motd", "weekend"]


def simulate(n_sources: int, days: int, seed: int) -> tuple[list[Event], list[dict]]:
    rng = random.Random(seed)
    now = datetime.now(timezone.utc)
    start = now - timedelta(days=days)

    follows = []
    events = []
    for i in range(n_sources):
        source_id = f"poster{i:02d}.example.social"
        # Heavy-tailed posting rates: a few loud sources, many quiet ones
        per_day = rng.paretovariate(1.2) * 3
        follows.append({
            "id": source_id,
            "weight": rng.choice([0.5, 1.0, 1.0, 1.0, 2.0]),
            "topics": rng.sample(TAGS[:4], k=rng.randint(0, 2)),
            "tracked_since": start.isoformat(),
        })
        n_events = int(per_day * days)
        for j in range(n_events):
            ts = start + timedelta(seconds=rng.uniform(0, days * 86400))
            is_repost = rng.random() < 0.3
            events.append(Event(
                id=f"{source_id}/{j}",
                source_id=source_id,
                timestamp=ts,
                tags=frozenset(rng.sample(TAGS, k=rng.randint(0, 2))),
                repost_of_id=f"orig/{rng.randint(0, 500)}" if is_repost else None,
                engaged=rng.random() < 0.05,
            ))
    return events, follows


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate synthetic feed history")
    parser.add_argument("--out", default="data/sim", help="Output directory")
    parser.add_argument("--sources", type=int, default=40, help="Followed sources")
    parser.add_argument("--days", type=int, default=7, help="Days of history")
    parser.add_argument("--seed", type=int, default=1, help="Random seed")
    args = parser.parse_args()

    events, follows = simulate(args.sources, args.days, args.seed)

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    with open(out / "events.jsonl", "w") as f:
        for event in sorted(events, key=lambda e: e.timestamp):
            f.write(json.dumps(event.to_dict()) + "\n")
    with open(out / "follows.yaml", "w") as f:
        yaml.safe_dump({"follows": follows}, f, sort_keys=False)

    print(f"Wrote {len(events)} events and {len(follows)} follows to {out}")


if __name__ == "__main__":
    main()
