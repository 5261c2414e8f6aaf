# tests/core/test_config.py
"""Tests for settings models and Dynaconf loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from rebound.contracts.policy import Policy
from rebound.core.config import LoggingSettings, PolicySettings, ReboundSettings, load_settings


class TestPolicySettings:
    def test_defaults(self) -> None:
        settings = PolicySettings()

        assert settings.max_attempts == 3
        assert settings.base_delay_seconds == 1.0
        assert settings.max_delay_seconds == 60.0
        assert settings.per_attempt_timeout_seconds is None
        assert settings.concurrency_limit == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_attempts": 0},
            {"base_delay_seconds": -1},
            {"backoff_multiplier": 0.9},
            {"per_attempt_timeout_seconds": 0},
            {"concurrency_limit": 0},
            {"jitter": 1.0},
        ],
    )
    def test_out_of_range_rejected(self, overrides: dict[str, float]) -> None:
        with pytest.raises(ValidationError):
            PolicySettings(**overrides)

    def test_max_delay_below_base_delay_rejected(self) -> None:
        with pytest.raises(ValidationError, match="cannot be less than"):
            PolicySettings(base_delay_seconds=10.0, max_delay_seconds=1.0)

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PolicySettings(max_retries=3)  # type: ignore[call-arg]

    def test_settings_are_frozen(self) -> None:
        settings = PolicySettings()

        with pytest.raises(ValidationError):
            settings.max_attempts = 9  # type: ignore[misc]


class TestLoggingSettings:
    def test_invalid_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoggingSettings(level="TRACE")  # type: ignore[arg-type]


class TestLoadSettings:
    def test_load_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(
            """
policy:
  max_attempts: 5
  base_delay_seconds: 0.1
  max_delay_seconds: 2.0
  concurrency_limit: 4
logging:
  level: DEBUG
"""
        )

        settings = load_settings(config_file)

        assert isinstance(settings, ReboundSettings)
        assert settings.policy.max_attempts == 5
        assert settings.policy.concurrency_limit == 4
        assert settings.logging.level == "DEBUG"
        assert settings.policy.to_policy() == Policy(
            max_attempts=5,
            base_delay=0.1,
            max_delay=2.0,
            concurrency_limit=4,
        )

    def test_empty_section_gives_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("policy: {}\n")

        settings = load_settings(config_file)

        assert settings == ReboundSettings()

    def test_environment_adds_to_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """REBOUND_ variables merge into the sections loaded from the file."""
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("policy:\n  max_attempts: 2\n  base_delay_seconds: 0.5\n")
        monkeypatch.setenv("REBOUND_POLICY__CONCURRENCY_LIMIT", "6")

        settings = load_settings(config_file)

        assert settings.policy.concurrency_limit == 6
        assert settings.policy.max_attempts == 2
        assert settings.policy.base_delay_seconds == 0.5

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_values_raise_validation_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("policy:\n  max_attempts: 0\n")

        with pytest.raises(ValidationError):
            load_settings(config_file)

    def test_unknown_section_rejected(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("landscape:\n  enabled: true\n")

        with pytest.raises(ValidationError):
            load_settings(config_file)
