# tests/cli/conftest.py
"""CLI test fixtures."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """The CLI callback reconfigures logging; undo it after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(
        """
policy:
  max_attempts: 4
  base_delay_seconds: 0.1
  max_delay_seconds: 0.3
  backoff_multiplier: 2.0
  concurrency_limit: 2
"""
    )
    return path
