"""
Buffered Multipart Upload Stream
================================

Write stream backing ``S3Filer.write_file``. Bytes accumulate in memory;
each time the buffer reaches the part size, one part-size chunk is spilled
to a temp file and uploaded in the background on the filer's shared
worker pool.

Lifecycle:
----------
ACCUMULATING -> CHUNK_SUBMITTED (repeatable) -> CLOSING -> COMMITTED | ABORTED

- A stream that never reaches the part size is written with one
  ``put_object`` on close; no multipart session is ever opened.
- Otherwise the remainder becomes the last chunk, every chunk result is
  gathered in part-number order, and the session is completed.
- If any chunk fails the session is aborted and close raises a single
  StorageError naming the target path. Nothing becomes visible.

Memory Model:
-------------
At most one part size of data is held in memory per stream, plus the
chunk being spilled. Spill files belong to their upload task, which
deletes them whether the upload succeeds or fails.

Thread Safety:
--------------
A stream has one producer: write() and close() must be called from a
single thread. Only the part uploads run on pool threads.
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
from concurrent.futures import Executor, Future, wait
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from blobfiler.core import constants as C
from blobfiler.core.errors import StorageError
from blobfiler.core.types import Lazy

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

# Part acknowledgment as expected by complete_multipart_upload.
PartTag = Dict[str, Any]


class MultipartUploadStream(io.RawIOBase):
    """
    Write-only stream that commits an object atomically on close.

    Example:
        >>> with filer.write_file("/exports/day.csv") as out:
        ...     for row in rows:
        ...         out.write(row)

    Leaving the ``with`` block through an exception discards the upload.
    """

    def __init__(
        self,
        client: "S3Client",
        bucket: str,
        path: str,
        *,
        part_size: int,
        temp_dir: Path,
        executor: Executor,
    ) -> None:
        super().__init__()
        self._client = client
        self._bucket = bucket
        self._path = path
        self._key = path[len(C.SEPARATOR):]
        self._part_size = part_size
        self._temp_dir = temp_dir
        self._executor = executor

        self._buffer = bytearray()
        self._upload_id: Lazy[str] = Lazy(self._create_upload)
        self._parts: List[Tuple[int, Future[PartTag]]] = []

    # -------------------------------------------------------------------------
    # STREAM INTERFACE
    # -------------------------------------------------------------------------

    @property
    def path(self) -> str:
        return self._path

    @property
    def part_count(self) -> int:
        """Number of chunks submitted so far."""
        return len(self._parts)

    @property
    def upload_id(self) -> Optional[str]:
        """Multipart session ID, or None while no session is open."""
        return self._upload_id.get() if self._upload_id.is_set else None

    def writable(self) -> bool:
        return True

    def write(self, b: Any) -> int:
        if self.closed:
            raise ValueError("write to closed upload stream")
        size = memoryview(b).nbytes
        self._buffer += b
        self._flip(self._part_size)
        return size

    def close(self) -> None:
        """
        Commit the object.

        Raises:
            StorageError: If the put or any chunk upload failed. After a
                failed chunk the multipart session has been aborted.
        """
        if self.closed:
            return
        try:
            if self._upload_id.is_set:
                self._complete()
            else:
                self._put()
        finally:
            self._buffer = bytearray()
            super().close()

    def abort(self) -> None:
        """
        Discard everything written so far without committing.

        Waits for in-flight chunks so their spill files are gone on return.
        """
        if self.closed:
            return
        try:
            self._settle()
            if self._upload_id.is_set:
                self._abort_upload()
        finally:
            self._buffer = bytearray()
            super().close()

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()

    def __del__(self) -> None:
        # An abandoned stream is never committed from the finalizer.
        pass

    def __repr__(self) -> str:
        return (
            f"MultipartUploadStream(bucket={self._bucket!r}, key={self._key!r}, "
            f"parts={len(self._parts)}, buffered={len(self._buffer)})"
        )

    # -------------------------------------------------------------------------
    # CHUNKING
    # -------------------------------------------------------------------------

    def _flip(self, min_size: int) -> None:
        """Submit part-size chunks while at least ``min_size`` bytes are buffered."""
        while self._buffer and len(self._buffer) >= min_size:
            chunk = bytes(self._buffer[:self._part_size])
            self._submit(chunk)
            del self._buffer[:len(chunk)]

    def _submit(self, chunk: bytes) -> None:
        temp_path = self._spill(chunk)
        try:
            upload_id = self._upload_id.get()
            part_number = len(self._parts) + 1
            future = self._executor.submit(
                self._upload_part, upload_id, part_number, temp_path, len(chunk)
            )
        except RuntimeError as e:
            # The filer's pool has been shut down.
            _remove_temp(temp_path)
            raise StorageError.io_failed("submit part", self._path, e) from e
        except BaseException:
            _remove_temp(temp_path)
            raise

        self._parts.append((part_number, future))
        logger.debug(f"Submitted part {part_number} of {self._path} ({len(chunk)} bytes)")

    def _spill(self, chunk: bytes) -> str:
        try:
            fd, temp_path = tempfile.mkstemp(
                prefix=C.TEMP_FILE_PREFIX,
                suffix=C.TEMP_FILE_SUFFIX,
                dir=self._temp_dir,
            )
        except OSError as e:
            raise StorageError.spill_failed(self._path, str(self._temp_dir), e) from e

        try:
            with os.fdopen(fd, "wb") as out:
                out.write(chunk)
        except OSError as e:
            _remove_temp(temp_path)
            raise StorageError.spill_failed(self._path, str(self._temp_dir), e) from e

        return temp_path

    # -------------------------------------------------------------------------
    # BACKEND CALLS
    # -------------------------------------------------------------------------

    def _create_upload(self) -> str:
        try:
            response = self._client.create_multipart_upload(
                Bucket=self._bucket,
                Key=self._key,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError.io_failed("open multipart upload", self._path, e) from e

        upload_id = response["UploadId"]
        logger.info(f"Opened multipart upload for {self._path} (upload_id={upload_id})")
        return upload_id

    def _upload_part(self, upload_id: str, part_number: int, temp_path: str, size: int) -> PartTag:
        """Runs on a pool thread. Owns ``temp_path`` and always removes it."""
        try:
            with open(temp_path, "rb") as body:
                response = self._client.upload_part(
                    Bucket=self._bucket,
                    Key=self._key,
                    UploadId=upload_id,
                    PartNumber=part_number,
                    ContentLength=size,
                    Body=body,
                )
            logger.debug(f"Uploaded part {part_number} of {self._path}")
            return {"PartNumber": part_number, "ETag": response["ETag"]}
        finally:
            _remove_temp(temp_path)

    def _put(self) -> None:
        data = bytes(self._buffer)
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=self._key,
                Body=data,
                ContentLength=len(data),
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError.io_failed("put", self._path, e) from e
        logger.debug(f"Put {self._path} ({len(data)} bytes)")

    def _complete(self) -> None:
        try:
            self._flip(1)
        except StorageError as e:
            self._settle()
            self._abort_upload()
            raise StorageError.upload_failed(self._path, e) from e

        self._settle()

        tags: List[PartTag] = []
        for part_number, future in self._parts:
            try:
                tags.append(future.result())
            except Exception as e:
                self._abort_upload()
                raise StorageError.upload_failed(self._path, e, part_number) from e

        try:
            self._client.complete_multipart_upload(
                Bucket=self._bucket,
                Key=self._key,
                UploadId=self._upload_id.get(),
                MultipartUpload={"Parts": tags},
            )
        except (BotoCoreError, ClientError) as e:
            self._abort_upload()
            raise StorageError.upload_failed(self._path, e) from e

        logger.info(f"Committed {self._path} from {len(tags)} parts")

    def _settle(self) -> None:
        """Block until every submitted chunk has finished, in any outcome."""
        if self._parts:
            wait([future for _, future in self._parts])

    def _abort_upload(self) -> None:
        """Best-effort abort; a failure here is logged, never raised."""
        upload_id = self._upload_id.get()
        try:
            self._client.abort_multipart_upload(
                Bucket=self._bucket,
                Key=self._key,
                UploadId=upload_id,
            )
        except Exception as e:
            # Runs while another failure is in flight; that one is reported.
            logger.warning(
                f"Failed to abort multipart upload {upload_id} for {self._path}: {e}"
            )
            return
        logger.warning(f"Aborted multipart upload {upload_id} for {self._path}")


def _remove_temp(temp_path: str) -> None:
    try:
        os.remove(temp_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove spill file {temp_path}: {e}")
