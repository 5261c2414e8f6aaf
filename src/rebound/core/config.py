# src/rebound/core/config.py
"""Configuration schema and loading for rebound.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are the user-facing layer (explicit units in field names);
they are converted to the runtime Policy with Policy.from_settings().
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Self

from pydantic import BaseModel, Field, model_validator

from rebound.contracts.policy import Policy


class PolicySettings(BaseModel):
    """Retry, timeout and concurrency configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_attempts: int = Field(default=3, ge=1, description="Total attempts per operation (1 = no retry)")
    base_delay_seconds: float = Field(default=1.0, ge=0, description="Delay before the first retry")
    max_delay_seconds: float = Field(default=60.0, ge=0, description="Maximum delay between attempts")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, description="Exponential backoff growth factor")
    per_attempt_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Timeout for a single attempt (unset = unbounded)",
    )
    concurrency_limit: int = Field(default=1, ge=1, description="Concurrent workers for batch dispatch")
    jitter: float = Field(default=0.0, ge=0, lt=1, description="Random ± fraction applied to each delay")
    immediate_first_retry: bool = Field(default=False, description="Retry the first failure without delay")

    @model_validator(mode="after")
    def _validate_delay_bounds(self) -> Self:
        """Validate base_delay_seconds <= max_delay_seconds."""
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError(
                f"max_delay_seconds ({self.max_delay_seconds}) cannot be less than "
                f"base_delay_seconds ({self.base_delay_seconds})"
            )
        return self

    def to_policy(self) -> Policy:
        """Convert to the runtime Policy."""
        return Policy.from_settings(self)


class LoggingSettings(BaseModel):
    """Log output configuration (applied by the CLI or the host application)."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Render log events as JSON lines")


class ReboundSettings(BaseModel):
    """Top-level configuration.

    All sections are optional; an empty file yields the defaults.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    policy: PolicySettings = Field(default_factory=PolicySettings, description="Retry and dispatch policy")
    logging: LoggingSettings = Field(default_factory=LoggingSettings, description="Logging output")


def load_settings(config_path: Path) -> ReboundSettings:
    """Load settings from a YAML/TOML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (REBOUND_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: REBOUND_POLICY__MAX_ATTEMPTS=5 for nested keys.

    Args:
        config_path: Path to the configuration file

    Returns:
        Validated ReboundSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="REBOUND",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; Pydantic fields are lowercase.
    # Nested sections keep Dynaconf's key casing, so lower them recursively.
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {
        k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys
    }

    return ReboundSettings(**raw_config)


def _lower_keys(value: object) -> object:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value
