"""
Integration Tests: Multipart Upload Stream

Drives write_file streams against a moto bucket. Tests that use small
part sizes replace complete_multipart_upload, since S3 rejects non-final
parts under 5 MiB at completion.

Tests:
    - Single put below the part size
    - Chunking, part numbering and ordering
    - Failure handling and abort
    - Spill file cleanup
"""

import threading
import time

import pytest

from blobfiler.core import constants as C
from blobfiler.core.errors import FilerError, StorageError
from blobfiler.tests.helpers import TEST_BUCKET_NAME, client_error, payload

SMALL_PART = 1024


def read_object(client, key):
    return client.get_object(Bucket=TEST_BUCKET_NAME, Key=key)["Body"].read()


def accept_complete(original, **kwargs):
    return {}


def fake_etag(original, **kwargs):
    return {"ETag": f'"etag-{kwargs["PartNumber"]}"'}


def write_in_pieces(stream, data, piece):
    for start in range(0, len(data), piece):
        stream.write(data[start:start + piece])


class TestSinglePut:
    """Streams that stay under the part size."""

    def test_small_object_uses_one_put(self, filer, s3_client, spy):
        puts = spy("put_object")
        creates = spy("create_multipart_upload")
        data = payload(1000)

        stream = filer.write_file("/small.bin")
        stream.write(data)
        stream.close()

        assert puts.count == 1
        assert puts.calls[0]["ContentLength"] == 1000
        assert creates.count == 0
        assert stream.upload_id is None
        assert stream.part_count == 0
        assert read_object(s3_client, "small.bin") == data

    def test_empty_object(self, filer, s3_client):
        with filer.write_file("/empty.bin"):
            pass
        assert read_object(s3_client, "empty.bin") == b""
        assert filer.get_record("/empty.bin").size == 0

    def test_just_under_part_size(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART)
        creates = spy("create_multipart_upload")
        with filer.write_file("/edge.bin") as out:
            out.write(payload(SMALL_PART - 1))
        assert creates.count == 0

    def test_put_failure(self, filer, spy):
        def deny(original, **kwargs):
            raise client_error("AccessDenied", "PutObject")

        spy("put_object", deny)
        stream = filer.write_file("/denied.bin")
        stream.write(b"x")
        with pytest.raises(StorageError) as excinfo:
            stream.close()
        assert "/denied.bin" in str(excinfo.value)
        assert stream.closed


class TestChunking:
    """Part sizes, numbering and ordering."""

    def test_twelve_mib_in_three_parts(self, make_filer, s3_client, spy):
        filer = make_filer(part_size=5 * C.MB)
        parts = spy("upload_part")
        completes = spy("complete_multipart_upload")
        data = payload(12 * C.MB)

        with filer.write_file("/big.bin") as out:
            write_in_pieces(out, data, C.MB)

        assert [call["ContentLength"] for call in parts.calls] == [5 * C.MB, 5 * C.MB, 2 * C.MB]
        assert [call["PartNumber"] for call in parts.calls] == [1, 2, 3]
        assert completes.count == 1
        listed = completes.calls[0]["MultipartUpload"]["Parts"]
        assert [part["PartNumber"] for part in listed] == [1, 2, 3]
        assert read_object(s3_client, "big.bin") == data

    def test_exact_multiple_has_no_empty_part(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART)
        parts = spy("upload_part")
        spy("complete_multipart_upload", accept_complete)

        with filer.write_file("/exact.bin") as out:
            write_in_pieces(out, payload(2 * SMALL_PART), 100)

        assert [call["ContentLength"] for call in parts.calls] == [SMALL_PART, SMALL_PART]

    @pytest.mark.parametrize("size,expected", [
        (SMALL_PART, 1),
        (SMALL_PART + 1, 2),
        (3 * SMALL_PART, 3),
        (3 * SMALL_PART + 7, 4),
        (10 * SMALL_PART - 1, 10),
    ])
    def test_part_count_is_ceiling(self, make_filer, spy, size, expected):
        filer = make_filer(part_size=SMALL_PART)
        parts = spy("upload_part")
        completes = spy("complete_multipart_upload", accept_complete)

        stream = filer.write_file("/count.bin")
        write_in_pieces(stream, payload(size), 333)
        stream.close()

        assert parts.count == expected
        assert stream.part_count == expected
        assert sum(call["ContentLength"] for call in parts.calls) == size
        assert all(call["ContentLength"] > 0 for call in parts.calls)
        assert completes.count == 1

    def test_single_large_write_is_split(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART)
        parts = spy("upload_part")
        spy("complete_multipart_upload", accept_complete)

        stream = filer.write_file("/one-shot.bin")
        assert stream.write(payload(3 * SMALL_PART + 10)) == 3 * SMALL_PART + 10
        stream.close()

        sizes = [call["ContentLength"] for call in parts.calls]
        assert sizes == [SMALL_PART, SMALL_PART, SMALL_PART, 10]

    def test_session_opened_on_first_chunk(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART)
        creates = spy("create_multipart_upload")
        spy("complete_multipart_upload", accept_complete)

        stream = filer.write_file("/lazy.bin")
        stream.write(payload(SMALL_PART - 1))
        assert creates.count == 0
        stream.write(b"x")
        assert creates.count == 1
        assert stream.upload_id is not None
        stream.write(payload(SMALL_PART))
        assert creates.count == 1
        stream.close()

    def test_out_of_order_completion(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART, threads=4)
        finished = []
        lock = threading.Lock()

        def slow_early_parts(original, **kwargs):
            number = kwargs["PartNumber"]
            time.sleep((5 - number) * 0.05)
            with lock:
                finished.append(number)
            return fake_etag(original, **kwargs)

        spy("upload_part", slow_early_parts)
        completes = spy("complete_multipart_upload", accept_complete)

        with filer.write_file("/parallel.bin") as out:
            out.write(payload(4 * SMALL_PART))

        assert sorted(finished) == [1, 2, 3, 4]
        listed = completes.calls[0]["MultipartUpload"]["Parts"]
        assert [part["PartNumber"] for part in listed] == [1, 2, 3, 4]
        assert [part["ETag"] for part in listed] == [f'"etag-{n}"' for n in range(1, 5)]

    def test_streams_share_the_pool(self, make_filer, s3_client, spy):
        filer = make_filer(part_size=5 * C.MB, threads=2)
        first, second = payload(6 * C.MB), payload(5 * C.MB + 3)[::-1]

        a = filer.write_file("/a.bin")
        b = filer.write_file("/b.bin")
        a.write(first)
        b.write(second)
        a.close()
        b.close()

        assert read_object(s3_client, "a.bin") == first
        assert read_object(s3_client, "b.bin") == second


class TestFailures:
    """Chunk failures abort the session and surface one StorageError."""

    @staticmethod
    def fail_part_two(original, **kwargs):
        if kwargs["PartNumber"] == 2:
            raise client_error("InternalError", "UploadPart")
        return original(**kwargs)

    def test_failed_part_aborts(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART)
        spy("upload_part", self.fail_part_two)
        completes = spy("complete_multipart_upload", accept_complete)
        aborts = spy("abort_multipart_upload")

        stream = filer.write_file("/broken.bin")
        stream.write(payload(3 * SMALL_PART + 1))
        with pytest.raises(StorageError) as excinfo:
            stream.close()

        error = excinfo.value
        assert "/broken.bin" in error.message
        assert error.context["part_number"] == 2
        assert completes.count == 0
        assert aborts.count == 1
        assert aborts.calls[0]["UploadId"] == stream.upload_id
        assert stream.closed
        assert not filer.get_record("/broken.bin").exists

    def test_abort_failure_does_not_mask_error(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART)
        spy("upload_part", self.fail_part_two)
        spy("complete_multipart_upload", accept_complete)

        def refuse(original, **kwargs):
            raise client_error("ServiceUnavailable", "AbortMultipartUpload")

        aborts = spy("abort_multipart_upload", refuse)

        stream = filer.write_file("/broken.bin")
        stream.write(payload(2 * SMALL_PART + 1))
        with pytest.raises(StorageError) as excinfo:
            stream.close()

        assert excinfo.value.context["part_number"] == 2
        assert excinfo.value.cause.response["Error"]["Code"] == "InternalError"
        assert aborts.count == 1

    def test_complete_failure_aborts(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART)

        def reject(original, **kwargs):
            raise client_error("InvalidPart", "CompleteMultipartUpload")

        spy("complete_multipart_upload", reject)
        aborts = spy("abort_multipart_upload")

        stream = filer.write_file("/rejected.bin")
        stream.write(payload(2 * SMALL_PART))
        with pytest.raises(StorageError):
            stream.close()
        assert aborts.count == 1

    def test_create_failure_raises_from_write(self, make_filer, spy, spill_dir):
        filer = make_filer(part_size=SMALL_PART)

        def deny(original, **kwargs):
            raise client_error("AccessDenied", "CreateMultipartUpload")

        spy("create_multipart_upload", deny)
        stream = filer.write_file("/denied.bin")
        with pytest.raises(StorageError):
            stream.write(payload(SMALL_PART))
        assert list(spill_dir.iterdir()) == []
        stream.abort()

    def test_closed_filer_fails_the_stream(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART)
        spy("complete_multipart_upload", accept_complete)
        aborts = spy("abort_multipart_upload")

        stream = filer.write_file("/late.bin")
        stream.write(payload(SMALL_PART + 5))
        filer.close()
        with pytest.raises(StorageError) as excinfo:
            stream.close()
        submit_error = excinfo.value.cause
        assert isinstance(submit_error, StorageError)
        assert isinstance(submit_error.cause, RuntimeError)
        assert aborts.count == 1

    def test_write_after_filer_close(self, make_filer, spill_dir):
        filer = make_filer(part_size=SMALL_PART)
        stream = filer.write_file("/late.bin")
        filer.close()
        with pytest.raises(FilerError) as excinfo:
            stream.write(payload(2 * SMALL_PART))
        assert isinstance(excinfo.value, StorageError)
        assert "/late.bin" in excinfo.value.message
        assert isinstance(excinfo.value.cause, RuntimeError)
        assert list(spill_dir.iterdir()) == []
        stream.abort()

    def test_unexpected_abort_failure_does_not_mask_error(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART)
        spy("upload_part", self.fail_part_two)
        spy("complete_multipart_upload", accept_complete)

        def explode(original, **kwargs):
            raise KeyError("connection pool gone")

        aborts = spy("abort_multipart_upload", explode)

        stream = filer.write_file("/broken.bin")
        stream.write(payload(2 * SMALL_PART + 1))
        with pytest.raises(StorageError) as excinfo:
            stream.close()

        assert excinfo.value.context["part_number"] == 2
        assert aborts.count == 1


class TestStreamLifecycle:
    """with-blocks, abort and closed streams."""

    def test_exception_in_with_block_aborts(self, make_filer, spy):
        filer = make_filer(part_size=SMALL_PART)
        completes = spy("complete_multipart_upload", accept_complete)
        aborts = spy("abort_multipart_upload")

        with pytest.raises(KeyError):
            with filer.write_file("/partial.bin") as out:
                out.write(payload(2 * SMALL_PART + 1))
                raise KeyError("producer failed")

        assert completes.count == 0
        assert aborts.count == 1
        assert not filer.get_record("/partial.bin").exists

    def test_exception_before_first_chunk_writes_nothing(self, filer, spy):
        puts = spy("put_object")
        with pytest.raises(KeyError):
            with filer.write_file("/partial.bin") as out:
                out.write(b"header")
                raise KeyError("producer failed")
        assert puts.count == 0
        assert not filer.get_record("/partial.bin").exists

    def test_write_after_close(self, filer):
        stream = filer.write_file("/done.bin")
        stream.close()
        with pytest.raises(ValueError):
            stream.write(b"more")

    def test_close_twice_commits_once(self, filer, spy):
        puts = spy("put_object")
        stream = filer.write_file("/once.bin")
        stream.write(b"x")
        stream.close()
        stream.close()
        assert puts.count == 1

    def test_abandoned_stream_is_not_committed(self, filer, spy):
        puts = spy("put_object")
        stream = filer.write_file("/abandoned.bin")
        stream.write(b"data")
        del stream
        assert puts.count == 0

    def test_relative_path_rejected(self, filer):
        with pytest.raises(ValueError):
            filer.write_file("relative.bin")


class TestSpillFiles:
    """Spill files never outlive the stream."""

    def test_removed_after_success(self, make_filer, spy, spill_dir):
        filer = make_filer(part_size=SMALL_PART)
        spy("complete_multipart_upload", accept_complete)
        with filer.write_file("/clean.bin") as out:
            write_in_pieces(out, payload(5 * SMALL_PART + 3), 500)
        assert list(spill_dir.iterdir()) == []

    def test_removed_after_failure(self, make_filer, spy, spill_dir):
        filer = make_filer(part_size=SMALL_PART, threads=3)
        spy("upload_part", TestFailures.fail_part_two)
        spy("complete_multipart_upload", accept_complete)
        stream = filer.write_file("/dirty.bin")
        stream.write(payload(6 * SMALL_PART))
        with pytest.raises(StorageError):
            stream.close()
        assert list(spill_dir.iterdir()) == []

    def test_removed_after_abort(self, make_filer, spy, spill_dir):
        filer = make_filer(part_size=SMALL_PART, threads=2)
        spy("upload_part", fake_etag)
        stream = filer.write_file("/aborted.bin")
        stream.write(payload(4 * SMALL_PART))
        stream.abort()
        assert list(spill_dir.iterdir()) == []

    def test_unwritable_spill_directory(self, make_filer, spill_dir):
        filer = make_filer(part_size=SMALL_PART)
        spill_dir.rmdir()
        stream = filer.write_file("/nowhere.bin")
        with pytest.raises(StorageError) as excinfo:
            stream.write(payload(SMALL_PART))
        assert "/nowhere.bin" in str(excinfo.value)
        stream.abort()
