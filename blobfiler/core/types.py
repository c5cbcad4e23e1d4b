"""
Core Type Definitions for the Object-Store Filer

Provides the value types shared by every backend:
- Result/Either containers for configuration loading
- Lazy: compute-once memoized value
- Record: immutable metadata snapshot of one path entry

Design Principles:
- Records are transient value objects, rebuilt from every listing
- Absence is a value (the no-file sentinel), never an exception
- Directories exist only as a naming convention (trailing separator)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    Optional,
    TypeVar,
    Union,
)

from blobfiler.core import constants as C

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT CONTAINER
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Success variant of Result."""

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """Extract value. Safe to call after is_ok() check."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result.

    Carries the error description produced by the failing step.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant - propagates error unchanged."""
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# LAZY VALUE
# =============================================================================
class Lazy(Generic[T]):
    """
    Memoized value computed on first access.

    The factory runs at most once; later calls return the stored value.
    A factory that raises leaves the value unset so the next get() retries.

    Thread Safety:
        Check-then-set without locking. Owners must call get() from a
        single thread; concurrent first access is out of contract.
    """

    __slots__ = ("_factory", "_value", "_is_set")

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory
        self._value: Optional[T] = None
        self._is_set = False

    def get(self) -> T:
        if not self._is_set:
            self._value = self._factory()
            self._is_set = True
        return self._value  # type: ignore[return-value]

    @property
    def is_set(self) -> bool:
        """True once the factory has produced a value."""
        return self._is_set

    def __repr__(self) -> str:
        if self._is_set:
            return f"Lazy({self._value!r})"
        return "Lazy(<unset>)"


# =============================================================================
# RECORD
# =============================================================================
@dataclass(frozen=True, slots=True)
class Record:
    """
    Immutable metadata snapshot of one path entry.

    Attributes:
        uri: Root identity of the backend the record was listed from.
        parent: Parent path with a leading separator and no trailing one.
        name: Entry name; a trailing separator marks an emulated directory.
        time: Last-modified time in epoch milliseconds.
        size: Size in bytes.
        directory: True iff ``name`` ends with the separator.
        exists: False only for the no-file sentinel.

    Example:
        >>> record = Record.from_key("s3://bucket", "logs/2024/", 0, 0)
        >>> record.parent, record.name, record.directory
        ('/logs', '2024/', True)
    """

    uri: str
    parent: str
    name: str
    time: int
    size: int
    directory: bool
    exists: bool = field(default=True)

    @classmethod
    def from_key(cls, uri: str, key: str, time: int, size: int) -> Record:
        """
        Build a record from an object key.

        The key is split at its last separator. One trailing separator is
        kept on the name so directory markers stay recognisable.
        """
        body = key[:-1] if key.endswith(C.SEPARATOR) else key
        suffix = key[len(body):]
        parent, _, name = body.rpartition(C.SEPARATOR)
        return cls(
            uri=uri,
            parent=C.SEPARATOR + parent,
            name=name + suffix,
            time=time,
            size=size,
            directory=suffix == C.SEPARATOR,
        )

    @classmethod
    def no_file(cls, uri: str, path: str) -> Record:
        """
        Sentinel for a path with no matching entry.

        The root has no entry name of its own, so ``no_file(uri, "/")`` is
        the one record with an empty ``name``; its ``path`` is still ``/``.
        A name of ``/`` would instead mark it a directory.
        """
        parent, _, name = path.rstrip(C.SEPARATOR).rpartition(C.SEPARATOR)
        return cls(
            uri=uri,
            parent=parent or C.ROOT_PATH,
            name=name,
            time=0,
            size=0,
            directory=False,
            exists=False,
        )

    @property
    def path(self) -> str:
        """Full path of the entry; ``/`` for the root sentinel."""
        if self.parent == C.ROOT_PATH:
            return self.parent + self.name
        return self.parent + C.SEPARATOR + self.name

    @property
    def is_file(self) -> bool:
        return self.exists and not self.directory

    def __str__(self) -> str:
        kind = "dir" if self.directory else "file"
        return f"{self.path} ({kind}, {self.size}B, t={self.time})"
