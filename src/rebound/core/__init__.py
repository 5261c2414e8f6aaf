# src/rebound/core/__init__.py
"""Core infrastructure: cancellation, configuration and logging."""

from rebound.core.cancellation import CancellationToken
from rebound.core.config import LoggingSettings, PolicySettings, ReboundSettings, load_settings
from rebound.core.logging import configure_logging, get_logger

__all__ = [
    "CancellationToken",
    "LoggingSettings",
    "PolicySettings",
    "ReboundSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
