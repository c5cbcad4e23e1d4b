"""
Shared fixtures: a moto-backed S3 bucket, filers bound to it, and spies
over individual client methods.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, List, Optional

import boto3
import pytest
from moto import mock_aws

from blobfiler.core import constants as C
from blobfiler.core.config import FilerConfig
from blobfiler.storage.s3_filer import S3Filer
from blobfiler.tests.helpers import TEST_BUCKET_NAME, TEST_URL, ClientSpy


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fake credentials so nothing can reach a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def mocked_aws(aws_credentials: None):
    with mock_aws():
        yield


@pytest.fixture
def s3_client(mocked_aws: None) -> Any:
    client = boto3.client("s3", region_name="us-east-1")
    client.create_bucket(Bucket=TEST_BUCKET_NAME)
    return client


@pytest.fixture
def spill_dir(tmp_path: Path) -> Path:
    path = tmp_path / "spill"
    path.mkdir()
    return path


@pytest.fixture
def make_filer(s3_client: Any, spill_dir: Path):
    """Factory for filers on the test bucket; all are closed at teardown."""
    filers: List[S3Filer] = []

    def _make(part_size: int = C.DEFAULT_PART_SIZE, threads: int = 1) -> S3Filer:
        config = FilerConfig(
            url=TEST_URL,
            part_size=part_size,
            temp_dir=spill_dir,
            threads=threads,
        )
        filer = S3Filer(config, client=s3_client)
        filers.append(filer)
        return filer

    yield _make

    for filer in filers:
        filer.close()


@pytest.fixture
def filer(make_filer) -> S3Filer:
    return make_filer()


@pytest.fixture
def spy(monkeypatch: pytest.MonkeyPatch, s3_client: Any):
    """Install a ClientSpy on the shared test client."""
    def _spy(name: str, side_effect: Optional[Callable[..., Any]] = None) -> ClientSpy:
        return ClientSpy(monkeypatch, s3_client, name, side_effect)

    return _spy
