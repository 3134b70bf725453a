"""Process-wide logging setup.

Records carry simulation context through ``extra=``; the formatter appends the
known keys as ``key=value`` pairs so tick and broadcast lines stay greppable.
"""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Iterable, Sequence

from settings import get_settings

CONTEXT_KEYS = (
    "tick",
    "entity_id",
    "entity_kind",
    "status",
    "previous_status",
    "message_type",
    "subscriber_count",
    "delivered",
    "alarm_id",
    "alarm_level",
    "duration_ms",
    "reason",
)

# Per-request chatter from these libraries drowns out tick lines.
_QUIET_LOGGERS = ("httpx", "uvicorn.access")

_configured = False


def _render(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(getattr(value, "value", value))


class ContextualFormatter(logging.Formatter):

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._context_keys: Sequence[str] = tuple(context_keys or CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{key}={_render(getattr(record, key))}"
            for key in self._context_keys
            if getattr(record, key, None) is not None
        ]
        if context:
            return f"{message} | {' '.join(context)}"
        return message


def configure_logging(level: str | int | None = None) -> None:
    """Install the contextual handler on the root logger once per process."""
    global _configured
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "contextual": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "style": "%",
                    "context_keys": list(CONTEXT_KEYS),
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "contextual",
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
            "root": {"handlers": ["default"], "level": log_level},
        }
    )

    _configured = True
