"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest

from freeslots.config import AppConfig, load_config


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        config = AppConfig()

        assert config.timezone == "Asia/Tokyo"
        assert config.working_hours.start == "09:00"
        assert config.working_hours.end == "18:00"
        assert config.min_duration_minutes == 30
        assert config.calendars == []
        assert config.exclude_days == []

    def test_load_from_yaml(self, tmp_path):
        path = _write(tmp_path, """
timezone: America/New_York
working_hours:
  start: "08:30"
  end: "17:00"
calendars: [main, block]
exclude_days: [6, 5, 6]
""")

        config = AppConfig.load_from_yaml(path)

        assert config.timezone == "America/New_York"
        assert str(config.working_hours.to_domain()) == "08:30-17:00"
        assert config.calendars == ["main", "block"]
        assert config.exclude_days == [6, 5]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_root_must_be_mapping(self, tmp_path):
        path = _write(tmp_path, "- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(path)

    def test_invalid_yaml(self, tmp_path):
        path = _write(tmp_path, "timezone: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(path)

    @pytest.mark.parametrize("data", [
        {"timezone": "Asia/Tokio"},
        {"working_hours": {"start": "18:00", "end": "09:00"}},
        {"min_duration_minutes": 0},
        {"fetch_timeout_seconds": 0},
        {"exclude_days": [7]},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ValueError):
            AppConfig(**data)

    def test_env_override(self):
        config = AppConfig().with_env_overrides({"FREESLOTS_TIMEZONE": "Europe/Berlin"})

        assert config.timezone == "Europe/Berlin"

    def test_env_override_is_validated(self):
        with pytest.raises(ValueError):
            AppConfig().with_env_overrides({"FREESLOTS_TIMEZONE": "Nowhere/Special"})

    def test_no_env_override(self):
        config = AppConfig(timezone="UTC")

        assert config.with_env_overrides({}) is config


def test_load_config_with_explicit_path(tmp_path):
    path = _write(tmp_path, "timezone: Europe/Paris\n")

    config = load_config(path, environ={})

    assert config.timezone == "Europe/Paris"


def test_load_config_explicit_path_must_exist(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml", environ={})
