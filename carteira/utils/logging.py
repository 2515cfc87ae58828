# carteira/utils/logging.py
"""
Process-wide logging for the portfolio engine.

Every record leaving the root handler carries the correlation ID of the
unit of work that produced it (see carteira.utils.context), so a price
refresh or an evolution run can be followed across providers and worker
threads.

Two output formats:
    text  ->  2024-01-15 10:30:00 | INFO     | refresh-1a2b3c4d | carteira.services... | message
    json  ->  one object per line, for log shipping

Level conventions used across the services:
    DEBUG    cache hits, per-item provider results
    INFO     refresh started/finished, provider initialized
    WARNING  missing price or exchange rate, retries
    ERROR    a provider failed for one item
    CRITICAL startup data could not be loaded (holidays, ID maps)

Configured from LOG_LEVEL / LOG_FORMAT via settings, once, by
Application.start().
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from carteira.config import settings
from carteira.utils.context import get_correlation_id

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "-"

LOG_LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Market data and HTTP libraries log every request at INFO/DEBUG
NOISY_LOGGERS = (
    "yfinance",
    "peewee",
    "httpx",
    "httpcore",
    "urllib3",
    "bs4",
)

# LogRecord attributes that are not user-supplied ``extra`` fields
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "correlation_id",
    "message",
    "asctime",
}


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.correlation_id`` ("-" outside any correlation scope)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: timestamp, level, logger, correlation_id, message, plus
    "exception" when exc_info is set and "extra" for anything passed via
    ``logger.info(..., extra={...})``. Values that are not JSON
    serializable (Decimal, date) are written as strings.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


def resolve_level(name: str) -> int:
    """
    Map a level name (case-insensitive) to its logging constant.

    Raises:
        ValueError: For unknown names
    """
    key = name.strip().upper()
    if key not in LOG_LEVELS:
        raise ValueError(f"Invalid log level '{name}'; expected one of {', '.join(LOG_LEVELS)}")
    return LOG_LEVELS[key]


def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        suppress_noisy_loggers: bool = True,
) -> None:
    """
    Replace the root handlers with a single stdout handler.

    Args:
        level: Level name (default: settings.log_level)
        log_format: "text" or "json" (default: settings.log_format)
        suppress_noisy_loggers: Raise NOISY_LOGGERS to WARNING

    Raises:
        ValueError: If the level name is unknown
    """
    level_name = level or settings.log_level
    root_level = resolve_level(level_name)
    output = (log_format or settings.log_format).lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        JsonFormatter() if output == "json"
        else logging.Formatter(fmt=TEXT_FORMAT, datefmt=TEXT_DATE_FORMAT)
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(root_level)

    if suppress_noisy_loggers:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging ready (level={level_name.upper()}, format={output})")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
