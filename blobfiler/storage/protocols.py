"""
Filer Protocol: Path-Addressed Storage Abstraction

Defines the operation set every filer backend implements. Paths always
carry a leading separator (``/reports/2024/summary.csv``).

Backends that cannot map an operation raise UnsupportedOperationError at
call time instead of emulating it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, BinaryIO, List

from blobfiler.core.types import Record


class Filer(ABC):
    """
    Abstract filer backend.

    Implementations:
    - S3Filer: S3-compatible object stores
    """

    @abstractmethod
    def identity(self) -> str:
        """Root identity (URI) of the backend. Never fails."""
        ...

    @abstractmethod
    def list_records(self, path: str) -> List[Record]:
        """
        List entries under ``path``.

        Returns:
            Records whose keys start with ``path``; empty when none match.

        Raises:
            StorageError: If the backend is unreachable.
        """
        ...

    def get_record(self, path: str) -> Record:
        """
        First listed record for ``path``, or the no-file sentinel.

        Absence is never an error.
        """
        records = self.list_records(path)
        return records[0] if records else Record.no_file(self.identity(), path)

    @abstractmethod
    def read_file(self, path: str) -> BinaryIO:
        """
        Open a byte stream over the content at ``path``.

        Raises:
            StorageError: ``is_not_found`` when the object does not exist.
        """
        ...

    @abstractmethod
    def write_file(self, path: str) -> BinaryIO:
        """Open a write stream whose content becomes visible on close."""
        ...

    @abstractmethod
    def append_file(self, path: str) -> BinaryIO:
        ...

    @abstractmethod
    def open_file(self, path: str, for_write: bool) -> Any:
        """Random-access handle on ``path``."""
        ...

    @abstractmethod
    def set_file_time(self, path: str, time: int) -> None:
        """Best-effort update of the modification time (epoch millis)."""
        ...

    @abstractmethod
    def delete_file(self, path: str) -> None:
        """Remove ``path``. Deleting an absent path is not an error."""
        ...

    @abstractmethod
    def rename_file(self, old_path: str, new_path: str) -> None:
        ...

    @abstractmethod
    def create_dirs(self, path: str) -> None:
        """Create the directory ``path``. Idempotent."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release backend resources."""
        ...

    def __enter__(self) -> Filer:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
