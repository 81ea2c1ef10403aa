"""JSON-lines logging for the API, the report worker and scripts."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from imobipro.core.config import Config, get_config

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# Third-party loggers that drown out CRM events outside of debugging.
_CHATTY_LOGGERS = ("sqlalchemy.engine", "urllib3", "celery", "httpx")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; `extra=` fields land at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value) for key, value in vars(record).items() if key not in _RESERVED_ATTRS and key not in payload
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _handlers(config: Config) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.LOG_FILE:
        handlers.append(logging.FileHandler(config.LOG_FILE, encoding="utf-8"))
    return handlers


def configure_logging() -> None:
    """Install the JSON handlers on the root logger; later calls are no-ops."""
    root = logging.getLogger()
    if root.handlers:
        return
    config = get_config()
    root.setLevel(config.LOG_LEVEL)
    formatter = JsonFormatter()
    for handler in _handlers(config):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if config.LOG_LEVEL != "DEBUG":
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
