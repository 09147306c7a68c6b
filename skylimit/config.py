"""Load and validate configuration from YAML with env var substitution."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

# Defaults for the ``curation:`` section; every CurationSettings field is listed
CURATION_DEFAULTS: dict[str, Any] = {
    "views_per_day": 500.0,
    "days_of_data": 30,
    "interval_hours": 2,
    "secret_key": "default",
    "min_weight": 0.125,
    "max_weight": 8.0,
    "anonymize_usernames": False,
}


@dataclass(frozen=True)
class CurationSettings:
    """Validated settings for one quota computation."""

    views_per_day: float
    days_of_data: int
    interval_hours: int
    secret_key: str
    min_weight: float
    max_weight: float
    anonymize_usernames: bool

    def __post_init__(self):
        if self.interval_hours < 1 or 24 % self.interval_hours:
            raise ValueError(
                f"interval_hours must divide 24, got {self.interval_hours}"
            )
        if self.views_per_day < 0:
            raise ValueError(
                f"views_per_day must be non-negative, got {self.views_per_day}"
            )
        if self.days_of_data < 1:
            raise ValueError(
                f"days_of_data must be at least 1, got {self.days_of_data}"
            )
        if not 0 < self.min_weight <= self.max_weight:
            raise ValueError(
                f"invalid weight bounds [{self.min_weight}, {self.max_weight}]"
            )

    @property
    def intervals_per_day(self) -> int:
        return 24 // self.interval_hours


def _load_dotenv(path: str | Path = ".env") -> None:
    """Load a .env file into os.environ (without overwriting existing vars)."""
    env_path = Path(path)
    if not env_path.is_file():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and key not in os.environ:
                os.environ[key] = value


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} patterns in config values."""
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")
        match = pattern.search(value)
        if match:
            # A value that is exactly one ${VAR} resolves to that var
            if match.group(0) == value:
                return os.environ.get(match.group(1), "")
            return pattern.sub(lambda m: os.environ.get(m.group(1), ""), value)
        return value
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def load_config(path: str | Path = "config.yaml") -> dict[str, Any]:
    """Load config from YAML file and resolve environment variables."""
    _load_dotenv()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return _resolve_env_vars(raw)


def get_curation_settings(config: dict) -> CurationSettings:
    """Build CurationSettings from the ``curation:`` section over the defaults."""
    section = config.get("curation", {}) or {}
    unknown = set(section) - set(CURATION_DEFAULTS)
    if unknown:
        raise ValueError(f"Unknown curation settings: {', '.join(sorted(unknown))}")

    values = {**CURATION_DEFAULTS, **section}
    return CurationSettings(
        views_per_day=float(values["views_per_day"]),
        days_of_data=int(values["days_of_data"]),
        interval_hours=int(values["interval_hours"]),
        secret_key=str(values["secret_key"]),
        min_weight=float(values["min_weight"]),
        max_weight=float(values["max_weight"]),
        anonymize_usernames=bool(values["anonymize_usernames"]),
    )


def get_self_id(config: dict) -> str:
    """The viewer's own source id."""
    return str(config.get("account", {}).get("id", ""))


def get_db_path(config: dict) -> str:
    """Get database path from config."""
    return config.get("database", {}).get("path", "data/skylimit.db")
