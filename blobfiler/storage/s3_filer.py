"""
S3-Compatible Filer
===================

Maps filesystem-style operations onto an S3-compatible object store
(AWS S3, MinIO, Cloudflare R2, ...).

Storage Model:
--------------
- Path ``/a/b/c.txt`` is stored under key ``a/b/c.txt``
- Directories do not exist; ``create_dirs`` writes a zero-byte marker
  whose key ends with the separator, and any key ending with the
  separator lists as a directory
- Writes go through MultipartUploadStream: one put for small objects,
  a multipart session for large ones

Unsupported:
------------
append_file, open_file and rename_file have no mapping onto object
stores and raise UnsupportedOperationError immediately.

Concurrency:
------------
One ThreadPoolExecutor per filer uploads chunks for every stream opened
from it, so ``threads`` caps upload parallelism across all streams.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import TYPE_CHECKING, Any, BinaryIO, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from blobfiler.core import constants as C
from blobfiler.core.config import FilerConfig, SecretProvider
from blobfiler.core.errors import StorageError, UnsupportedOperationError
from blobfiler.core.types import Record
from blobfiler.storage.multipart import MultipartUploadStream
from blobfiler.storage.protocols import Filer

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

# Error codes S3-compatible stores use for a missing key.
NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3Filer(Filer):
    """
    Filer backed by one bucket of an S3-compatible store.

    Example:
        >>> config = FilerConfig(url="s3://my-bucket", threads=4)
        >>> with S3Filer(config) as filer:
        ...     with filer.write_file("/data/report.csv") as out:
        ...         out.write(b"id,total\\n")
        ...     filer.get_record("/data/report.csv").size
        9
    """

    def __init__(
        self,
        config: FilerConfig,
        client: Optional["S3Client"] = None,
        secret_provider: Optional[SecretProvider] = None,
    ) -> None:
        """
        Initialize the filer.

        Args:
            config: Filer configuration.
            client: Pre-built S3 client. Built from ``config`` when omitted.
            secret_provider: Supplies the secret when ``config`` names an
                access key without one. Defaults to a masked prompt.
        """
        self._config = config
        self._uri = config.url
        self._bucket = config.bucket
        self._client = client or boto3.client("s3", **config.client_kwargs(secret_provider))
        self._executor = ThreadPoolExecutor(
            max_workers=config.threads,
            thread_name_prefix="blobfiler-upload",
        )
        self._closed = False

    # -------------------------------------------------------------------------
    # METADATA
    # -------------------------------------------------------------------------

    def identity(self) -> str:
        return self._uri

    def list_records(self, path: str) -> List[Record]:
        prefix = _key(path)
        records: List[Record] = []

        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for summary in page.get("Contents", []):
                    records.append(Record.from_key(
                        self._uri,
                        summary["Key"],
                        _millis(summary["LastModified"]),
                        summary["Size"],
                    ))
        except (BotoCoreError, ClientError) as e:
            raise StorageError.io_failed("list", path, e) from e

        return records

    def set_file_time(self, path: str, time: int) -> None:
        """
        Record ``time`` (epoch millis) on the object as ``mtime`` metadata.

        Object stores cannot change an object's LastModified. This copies the
        object onto itself with replaced user metadata, so the store's own
        LastModified becomes the copy time and listed Records keep reporting
        it. Readers that need the requested time must read the ``mtime``
        metadata from ``head_object``.

        Content headers, storage class and encryption settings are restated
        on the copy. Objects too large for one copy_object call go through
        the managed multipart copy.

        Raises:
            StorageError: ``is_not_found`` when the object does not exist.
        """
        key = _key(path)
        source = {"Bucket": self._bucket, "Key": key}
        try:
            head = self._client.head_object(Bucket=self._bucket, Key=key)
            extra = _copy_args(head, time)
            if head["ContentLength"] > C.MAX_COPY_OBJECT_BYTES:
                self._client.copy(
                    CopySource=source,
                    Bucket=self._bucket,
                    Key=key,
                    ExtraArgs=extra,
                )
            else:
                self._client.copy_object(
                    Bucket=self._bucket,
                    Key=key,
                    CopySource=source,
                    **extra,
                )
        except ClientError as e:
            if _is_not_found(e):
                raise StorageError.not_found(path, e) from e
            raise StorageError.io_failed("set time of", path, e) from e
        except BotoCoreError as e:
            raise StorageError.io_failed("set time of", path, e) from e

    # -------------------------------------------------------------------------
    # CONTENT
    # -------------------------------------------------------------------------

    def read_file(self, path: str) -> BinaryIO:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=_key(path))
        except ClientError as e:
            if _is_not_found(e):
                raise StorageError.not_found(path, e) from e
            raise StorageError.io_failed("read", path, e) from e
        except BotoCoreError as e:
            raise StorageError.io_failed("read", path, e) from e
        return response["Body"]

    def write_file(self, path: str) -> MultipartUploadStream:
        _key(path)
        return MultipartUploadStream(
            self._client,
            self._bucket,
            path,
            part_size=self._config.part_size,
            temp_dir=self._config.temp_dir,
            executor=self._executor,
        )

    def append_file(self, path: str) -> BinaryIO:
        raise UnsupportedOperationError.for_operation("append_file", type(self).__name__)

    def open_file(self, path: str, for_write: bool) -> Any:
        raise UnsupportedOperationError.for_operation("open_file", type(self).__name__)

    # -------------------------------------------------------------------------
    # NAMESPACE
    # -------------------------------------------------------------------------

    def delete_file(self, path: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=_key(path))
        except (BotoCoreError, ClientError) as e:
            raise StorageError.io_failed("delete", path, e) from e

    def rename_file(self, old_path: str, new_path: str) -> None:
        raise UnsupportedOperationError.for_operation("rename_file", type(self).__name__)

    def create_dirs(self, path: str) -> None:
        key = _key(path).rstrip(C.SEPARATOR)
        if not key:
            return
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key + C.SEPARATOR,
                Body=b"",
                ContentLength=0,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError.io_failed("create directory", path, e) from e

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """
        Shut the upload pool down after queued chunks finish.

        Safe to call more than once. Streams opened from this filer can no
        longer submit chunks afterwards.
        """
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        logger.debug(f"Closed filer for {self._uri}")

    def __repr__(self) -> str:
        return f"S3Filer(uri={self._uri!r}, threads={self._config.threads})"


def _key(path: str) -> str:
    """Object key for ``path`` (the path without its leading separator)."""
    if not path.startswith(C.SEPARATOR):
        raise ValueError(f"path must start with {C.SEPARATOR!r}: {path!r}")
    return path[len(C.SEPARATOR):]


def _copy_args(head: Dict[str, Any], time: int) -> Dict[str, Any]:
    """Arguments for a self-copy that keeps ``head``'s settings and records ``time``."""
    metadata = dict(head.get("Metadata", {}))
    metadata[C.MTIME_METADATA_KEY] = str(time)
    args: Dict[str, Any] = {
        name: head[name] for name in C.COPIED_OBJECT_HEADERS if head.get(name)
    }
    args.setdefault("ContentType", C.DEFAULT_CONTENT_TYPE)
    args["Metadata"] = metadata
    args["MetadataDirective"] = "REPLACE"
    return args


def _millis(moment: datetime) -> int:
    return int(moment.timestamp() * C.MS_PER_S)


def _is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in NOT_FOUND_CODES
