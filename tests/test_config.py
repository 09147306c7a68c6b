"""Tests for config loading, env var resolution and curation settings."""

from __future__ import annotations

import pytest

from skylimit.config import (
    CURATION_DEFAULTS,
    get_curation_settings,
    get_db_path,
    get_self_id,
    load_config,
)


def test_load_config(sample_config):
    """Config loads and has expected structure."""
    assert "curation" in sample_config
    assert "database" in sample_config


def test_env_var_resolution(tmp_path, monkeypatch):
    """Environment variables in ${VAR} format are resolved."""
    monkeypatch.setenv("TEST_SECRET", "hunter2")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("""
curation:
  secret_key: "${TEST_SECRET}"
database:
  path: "/data/${TEST_SECRET}/db.sqlite"
""")
    config = load_config(str(cfg_path))
    assert config["curation"]["secret_key"] == "hunter2"
    assert config["database"]["path"] == "/data/hunter2/db.sqlite"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_settings_from_config(settings):
    assert settings.views_per_day == 30.0
    assert settings.days_of_data == 1
    assert settings.interval_hours == 2
    assert settings.secret_key == "test-secret"
    assert settings.intervals_per_day == 12


def test_settings_defaults():
    """An empty curation section yields the documented defaults."""
    s = get_curation_settings({})
    assert s.views_per_day == CURATION_DEFAULTS["views_per_day"] == 500.0
    assert s.days_of_data == 30
    assert s.interval_hours == 2
    assert s.min_weight == 0.125
    assert s.max_weight == 8.0
    assert s.anonymize_usernames is False


@pytest.mark.parametrize("hours", [5, 7, 0, 48])
def test_interval_hours_must_divide_day(hours):
    with pytest.raises(ValueError, match="interval_hours"):
        get_curation_settings({"curation": {"interval_hours": hours}})


def test_negative_budget_rejected():
    with pytest.raises(ValueError, match="views_per_day"):
        get_curation_settings({"curation": {"views_per_day": -1}})


def test_unknown_setting_rejected():
    with pytest.raises(ValueError, match="Unknown"):
        get_curation_settings({"curation": {"views_per_week": 10}})


def test_get_db_path(sample_config):
    assert get_db_path(sample_config).endswith("test.db")
    assert get_db_path({}) == "data/skylimit.db"


def test_get_self_id(sample_config):
    assert get_self_id(sample_config) == "me.example.social"
    assert get_self_id({}) == ""
