"""
Structured Logging Setup

Every fleetsync component logs through a ServiceLoggerAdapter that tags
records with the component name. Output is one JSON object per line unless
FLEETSYNC_LOG_FORMAT=text.

Fields attached with log_scope() are carried by a context variable, so they
only reach records logged from the task (and its children) that opened the
scope.
"""

import contextvars
import json
import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord has; anything else was passed as an extra
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "service"}

_scoped_fields: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "fleetsync_log_fields", default={}
)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, extras included as top-level keys"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service", "unknown"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ServiceLoggerAdapter(logging.LoggerAdapter):
    """Adds the component name and any scoped fields to each record"""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = {**_scoped_fields.get(), **(kwargs.get("extra") or {})}
        extra["service"] = self.extra.get("service", "unknown")
        kwargs["extra"] = extra
        return msg, kwargs


@contextmanager
def log_scope(**fields: Any) -> Iterator[None]:
    """
    Attach fields to records logged from the current task.

    Usage:
        with log_scope(cycle=12):
            logger.info("Polling hub")
    """
    token = _scoped_fields.set({**_scoped_fields.get(), **fields})
    try:
        yield
    finally:
        _scoped_fields.reset(token)


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATE_FORMAT)


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """
    Configure the ``fleetsync.<service_name>`` logger with a stdout handler.

    Calling it again for the same name replaces the previous handler.
    """
    level = _level(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(_formatter(json_format))

    logger = logging.getLogger(f"fleetsync.{service_name}")
    logger.setLevel(level)
    logger.handlers[:] = [handler]
    # Root logger only sees records when FLEETSYNC_LOG_PROPAGATE=1
    logger.propagate = os.environ.get("FLEETSYNC_LOG_PROPAGATE", "0") == "1"

    return logger


def get_service_logger(service_name: str) -> ServiceLoggerAdapter:
    """
    Logger adapter for one component.

    Level and format come from FLEETSYNC_LOG_LEVEL and FLEETSYNC_LOG_FORMAT.
    """
    logger = setup_logging(
        service_name,
        log_level=os.environ.get("FLEETSYNC_LOG_LEVEL", "INFO"),
        json_format=os.environ.get("FLEETSYNC_LOG_FORMAT", "json").lower() == "json",
    )
    return ServiceLoggerAdapter(logger, {"service": service_name})


def set_log_level(log_level: str) -> None:
    """Apply a log level to every fleetsync logger created so far (used by --verbose)."""
    level = _level(log_level)
    os.environ["FLEETSYNC_LOG_LEVEL"] = log_level.upper()

    for name, logger in logging.Logger.manager.loggerDict.items():
        if not name.startswith("fleetsync.") or not isinstance(logger, logging.Logger):
            continue
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


def log_config_event(
    logger: logging.LoggerAdapter,
    event: str,
    config: Any,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Log a configuration lifecycle event with its version, target and interval"""
    logger.log(
        level,
        f"{event}: version={config.version}, target={config.target}, "
        f"interval={config.interval}s",
        extra={
            "event": event,
            "config_id": config.id,
            "version": config.version,
            "interval": config.interval,
            **fields,
        },
    )
