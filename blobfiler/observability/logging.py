"""
Log Rendering for the Filer

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers. This module decides how those records are rendered:

- JsonFormatter: one JSON object per line, for log shippers
- TextFormatter: aligned text lines with fields appended as key=value

Fields reach a line from two places: keyword arguments given to a
StructuredLogger call, and fields scoped to a block with
``StructuredLogger.context`` (the CLI scopes each command this way).
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, Iterator, Optional, TextIO


class LogLevel(IntEnum):
    """Log level enumeration."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def parse(cls, name: str) -> LogLevel:
        """Look up a level by case-insensitive name."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown log level: {name!r}") from None


_scoped_fields: ContextVar[Dict[str, Any]] = ContextVar("blobfiler_log_fields", default={})

# Attributes of a bare logging.LogRecord plus those set while formatting.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}

# Client libraries that log every request at DEBUG.
_CHATTY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Scoped fields overlaid with the ``extra`` fields of ``record``."""
    fields = dict(_scoped_fields.get())
    for key, value in vars(record).items():
        if key not in _STANDARD_ATTRS:
            fields[key] = value
    return fields


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "@timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(record_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``time | LEVEL | logger | message | key=value ...``"""

    def __init__(self) -> None:
        super().__init__("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        fields = record_fields(record)
        if fields:
            line += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
        return line


class StructuredLogger:
    """
    Logger whose keyword arguments become structured fields.

    Usage:
        logger = StructuredLogger("blobfiler.cli")

        with logger.context(command="put"):
            logger.info("Uploading", path="/data/a.bin")
    """

    __slots__ = ("_logger", "_bound")

    def __init__(self, name: str, **bound: Any) -> None:
        self._logger = logging.getLogger(name)
        self._bound = bound

    def log(self, level: LogLevel, message: str, **fields: Any) -> None:
        self._logger.log(level.value, message, extra={**self._bound, **fields})

    def debug(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.WARNING, message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.ERROR, message, **fields)

    def with_extra(self, **fields: Any) -> StructuredLogger:
        """Child logger that adds ``fields`` to every line."""
        return StructuredLogger(self._logger.name, **{**self._bound, **fields})

    @staticmethod
    @contextmanager
    def context(**fields: Any) -> Iterator[None]:
        """Add ``fields`` to every line logged inside the block."""
        token = _scoped_fields.set({**_scoped_fields.get(), **fields})
        try:
            yield
        finally:
            _scoped_fields.reset(token)


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    json_output: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Route all records to one handler on ``stream`` (default: stderr).

    Replaces any handlers already on the root logger.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if json_output else TextFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.value)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
