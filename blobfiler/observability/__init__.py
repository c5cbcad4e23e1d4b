"""
Observability module: structured logging.
"""

from blobfiler.observability.logging import (
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    TextFormatter,
    setup_logging,
)

__all__ = [
    "JsonFormatter",
    "LogLevel",
    "StructuredLogger",
    "TextFormatter",
    "setup_logging",
]
