"""Logging setup for the greenpass API and its scripts.

Everything goes to stdout. ``LOG_JSON=true`` switches to one JSON object
per line carrying the request and onboarding extras, so a single
account's path through the flow can be filtered by ``subject_id``.
Read from the environment, not Settings, so scripts can log before the
app is built.
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
import sys
from datetime import UTC, datetime
from typing import Any

# Attached by RequestLoggingMiddleware and the exception handlers.
HTTP_EXTRA_KEYS = (
    "request_id",
    "method",
    "path",
    "query",
    "status_code",
    "duration_ms",
    "client_ip",
    "user_agent",
    "error_type",
)

# Attached by the onboarding engine and the PayPal client.
WORKFLOW_EXTRA_KEYS = ("subject_id", "role", "step", "event", "order_id")

LOG_EXTRA_KEYS = HTTP_EXTRA_KEYS + WORKFLOW_EXTRA_KEYS


def env_flag(name: str, *, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(
            (key, record.__dict__[key])
            for key in LOG_EXTRA_KEYS
            if key in record.__dict__
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    """Install the stdout handler.

    Env vars:
    - LOG_LEVEL: root level (default INFO)
    - LOG_JSON: emit JSON lines (default false)
    - SQL_LOG_LEVEL: level for SQL statements (default WARNING)
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    formatter = "json" if env_flag("LOG_JSON", default=False) else "text"
    sql_level = os.getenv("SQL_LOG_LEVEL", "WARNING")

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "text": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                    "stream": sys.stdout,
                }
            },
            "root": {"handlers": ["console"], "level": level},
            "loggers": {
                # Requests are logged by RequestLoggingMiddleware.
                "uvicorn.access": {"level": "WARNING"},
                # httpx logs every PayPal call URL at INFO.
                "httpx": {"level": "WARNING"},
                "sqlalchemy.engine": {"level": sql_level},
            },
        }
    )
