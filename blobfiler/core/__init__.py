"""
Core module: Type definitions, error hierarchy, and configuration.

This module provides the foundational abstractions for the filer:
- Record value type and the no-file sentinel
- Error hierarchy separating unsupported operations from I/O faults
- Configuration management with validation
"""

from blobfiler.core.types import (
    Result,
    Ok,
    Err,
    Lazy,
    Record,
)
from blobfiler.core.errors import (
    ErrorCode,
    FilerError,
    StorageError,
    UnsupportedOperationError,
    ConfigurationError,
)
from blobfiler.core.config import FilerConfig, SecretProvider, prompt_secret

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Lazy",
    "Record",
    "ErrorCode",
    "FilerError",
    "StorageError",
    "UnsupportedOperationError",
    "ConfigurationError",
    "FilerConfig",
    "SecretProvider",
    "prompt_secret",
]
