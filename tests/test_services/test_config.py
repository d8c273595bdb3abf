"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from taskgraph.config import Settings


class TestSettings:
    def test_default_settings(self) -> None:
        s = Settings(_env_file=None)
        assert s.debug is False
        assert s.timezone == "UTC"
        assert s.duration_unit_hours == 24
        assert s.default_task_duration == 1
        assert s.tasks_file == Path("./tasks.toml")

    def test_custom_settings(self, tmp_path: Path) -> None:
        s = Settings(
            _env_file=None,
            debug=True,
            timezone="Europe/Warsaw",
            duration_unit_hours=8,
            tasks_file=tmp_path / "tasks.toml",
        )
        assert s.debug is True
        assert s.timezone == "Europe/Warsaw"
        assert s.duration_unit_hours == 8
        assert s.tasks_file == tmp_path / "tasks.toml"

    def test_settings_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DURATION_UNIT_HOURS", "12")
        monkeypatch.setenv("TIMEZONE", "America/New_York")
        s = Settings(_env_file=None)
        assert s.duration_unit_hours == 12
        assert s.timezone == "America/New_York"

    def test_settings_from_fixture(self, test_settings: Settings) -> None:
        assert test_settings.debug is True


class TestSettingsValidation:
    def test_rejects_zero_duration_unit(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, duration_unit_hours=0)

    def test_rejects_zero_default_duration(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_task_duration=0)

    def test_rejects_unknown_timezone(self) -> None:
        with pytest.raises(ValidationError, match="Unknown time zone"):
            Settings(_env_file=None, timezone="Mars/Olympus_Mons")
