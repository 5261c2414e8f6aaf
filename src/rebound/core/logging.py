# src/rebound/core/logging.py
"""Structured logging for rebound.

Library modules only call get_logger() and emit key/value events such as
``retry_scheduled`` or ``attempt_timed_out``. Nothing is printed until the
host application (or the rebound CLI) calls configure_logging().

configure_logging() takes the ``logging:`` section of the settings file and
optional explicit overrides, which win over the file:

    configure_logging(settings.logging, level="DEBUG")   # --verbose
    configure_logging(settings.logging, json_output=True)  # --json-logs

Both structlog events and plain stdlib records are rendered by the same
ProcessorFormatter on stderr, so an application that mixes the two gets a
single output format. stdout stays free for command results.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.stdlib import ProcessorFormatter

if TYPE_CHECKING:
    from rebound.core.config import LoggingSettings

DEFAULT_LEVEL = "INFO"

# Transports commonly wrapped by operations. Their DEBUG output drowns the
# retry events, so they never go below WARNING.
_HTTP_CLIENT_LOGGERS: tuple[str, ...] = (
    "urllib3",
    "urllib3.connectionpool",
    "httpx",
    "httpcore",
)


def _drop_formatter_keys(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Strip the ``_record``/``_from_structlog`` keys ProcessorFormatter adds."""
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)
    return event_dict


def _pre_chain() -> list[Any]:
    """Processors run on every event, whether it came from structlog or stdlib."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_chain(json_output: bool) -> list[Any]:
    if json_output:
        return [
            _drop_formatter_keys,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    return [
        _drop_formatter_keys,
        structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
    ]


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    settings: LoggingSettings | None = None,
    *,
    json_output: bool | None = None,
    level: str | None = None,
) -> tuple[str, bool]:
    """Route structlog and stdlib logging through one stderr handler.

    Args:
        settings: The ``logging:`` settings section (None: INFO, console)
        json_output: Overrides settings.json_output when not None
        level: Overrides settings.level when not None

    Returns:
        The effective (level, json_output) pair
    """
    effective_level = level or (settings.level if settings is not None else DEFAULT_LEVEL)
    effective_json = json_output if json_output is not None else (settings is not None and settings.json_output)
    numeric_level = _resolve_level(effective_level)

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # The CLI reconfigures once settings are loaded; cached loggers would miss that
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ProcessorFormatter(processors=_render_chain(effective_json), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)

    for name in _HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    return effective_level.upper(), effective_json


def get_logger(name: str, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Logger for a rebound module, optionally pre-bound with context."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name, **initial_values)
    return logger
