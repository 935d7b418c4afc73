"""
Logging for the API process.

One JSON line per event on stderr. Context passed through `extra=`
(query id, route, upstream path, status) becomes top-level keys, and
OpenWeather `appid=` keys are masked wherever they appear.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .settings import Settings, settings as default_settings

PACKAGE_LOGGER = "weatherlookup"

# Keys callers may attach with logger.info(..., extra={...}).
CONTEXT_FIELDS = ("query_id", "method", "route", "upstream", "status")

# httpx error messages echo the full URL, query string included.
_APPID_RE = re.compile(r"(appid=)[^&\s]+", re.IGNORECASE)


def redact(text: str) -> str:
    """Mask provider API keys embedded in URLs."""
    return _APPID_RE.sub(r"\1***", text)


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": redact(record.getMessage()),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                line[key] = value
        if record.exc_info:
            line["exc"] = redact(self.formatException(record.exc_info))
        return json.dumps(line, default=str)


def setup_logger(config: Optional[Settings] = None) -> logging.Logger:
    """
    Attach the JSON handler to the package logger at the configured level.
    Module loggers (weatherlookup.crud, ...) propagate up to it.
    """
    config = config or default_settings
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(config.log_level.upper())
    logger.propagate = False
    if not any(isinstance(h.formatter, JsonLineFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JsonLineFormatter())
        logger.addHandler(handler)
    return logger
