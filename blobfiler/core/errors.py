"""
Error Hierarchy for the Object-Store Filer

Taxonomy:
- Absent: no matching entry. Represented by Record.no_file(), never raised.
- Unsupported: the operation has no mapping onto the backend family.
  Raised immediately as UnsupportedOperationError.
- TransientIO: a backend or network call failed. Raised as StorageError;
  a failed chunk upload aborts the whole multipart session.
- AbortFailure: the abort call itself failed. Logged only; the original
  StorageError is what the caller sees.

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause for root cause analysis
- Timestamp (epoch millis) for correlation with logs

Usage:
    try:
        filer.read_file("/reports/latest.csv")
    except StorageError as e:
        if e.is_not_found:
            ...
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Storage (transient I/O) errors
    - 2xxx: Capability errors
    - 9xxx: Internal/configuration errors
    """

    # Storage errors (1xxx)
    STORAGE_NOT_FOUND = 1001
    STORAGE_IO_FAILED = 1002
    STORAGE_UPLOAD_FAILED = 1003
    STORAGE_SPILL_FAILED = 1004

    # Capability errors (2xxx)
    OPERATION_UNSUPPORTED = 2001

    # Internal errors (9xxx)
    INTERNAL_CONFIGURATION_ERROR = 9002


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class FilerError(Exception):
    """
    Base class for all filer errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp of creation
    - Cause for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp_ms: int = field(default_factory=lambda: time.time_ns() // 1_000_000)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize error to dictionary for logging.

        The cause is rendered as text only; its traceback stays on the
        exception chain.
        """
        data: dict[str, Any] = {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_ms": self.timestamp_ms,
            "context": self.context,
        }
        if self.cause is not None:
            data["cause"] = repr(self.cause)
        return data

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# STORAGE ERRORS (TRANSIENT I/O)
# =============================================================================
@dataclass
class StorageError(FilerError):
    """
    Errors from object-store calls and the local spill directory.

    Worth retrying: nothing about the operation itself is invalid.
    """

    @classmethod
    def not_found(
        cls,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> StorageError:
        """Object does not exist."""
        return cls(
            code=ErrorCode.STORAGE_NOT_FOUND,
            message=f"No such object: {path}",
            cause=cause,
            context={"path": path},
        )

    @classmethod
    def io_failed(
        cls,
        operation: str,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> StorageError:
        """Backend call failed."""
        return cls(
            code=ErrorCode.STORAGE_IO_FAILED,
            message=f"Failed to {operation}: {path}",
            cause=cause,
            context={"operation": operation, "path": path},
        )

    @classmethod
    def upload_failed(
        cls,
        path: str,
        cause: Optional[BaseException] = None,
        part_number: Optional[int] = None,
    ) -> StorageError:
        """Multipart upload failed and was aborted."""
        return cls(
            code=ErrorCode.STORAGE_UPLOAD_FAILED,
            message=f"Failed to upload: {path}",
            cause=cause,
            context={"path": path, "part_number": part_number},
        )

    @classmethod
    def spill_failed(
        cls,
        path: str,
        temp_dir: str,
        cause: Optional[BaseException] = None,
    ) -> StorageError:
        """Chunk could not be written to the local temp directory."""
        return cls(
            code=ErrorCode.STORAGE_SPILL_FAILED,
            message=f"Failed to spill chunk of {path} to {temp_dir}",
            cause=cause,
            context={"path": path, "temp_dir": temp_dir},
        )

    @property
    def is_not_found(self) -> bool:
        return self.code == ErrorCode.STORAGE_NOT_FOUND


# =============================================================================
# CAPABILITY ERRORS
# =============================================================================
@dataclass
class UnsupportedOperationError(FilerError):
    """
    Operation has no mapping onto this backend family.

    Never worth retrying.
    """

    @classmethod
    def for_operation(cls, operation: str, backend: str) -> UnsupportedOperationError:
        return cls(
            code=ErrorCode.OPERATION_UNSUPPORTED,
            message=f"Operation '{operation}' is not supported by {backend}",
            context={"operation": operation, "backend": backend},
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass
class ConfigurationError(FilerError):
    """Invalid or incomplete configuration."""

    @classmethod
    def invalid(cls, reason: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.INTERNAL_CONFIGURATION_ERROR,
            message=f"Configuration error: {reason}",
            context={"reason": reason},
        )
