"""
Configuration Management for the Object-Store Filer

Provides validated configuration with sensible defaults.
Supports the dotted keys of the filer configuration format and
environment variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import getpass
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlsplit

from blobfiler.core import constants as C
from blobfiler.core.types import Err, Ok, Result

# Supplies the secret for a credential name such as "AKIA....secret".
SecretProvider = Callable[[str], str]

SUPPORTED_SCHEMES = ("s3",)


def prompt_secret(name: str) -> str:
    """Ask for a secret on the terminal without echoing it."""
    return getpass.getpass(f"{name}: ")


@dataclass(frozen=True, slots=True)
class FilerConfig:
    """
    Object-store filer configuration.

    Attributes:
        url: Store URL, e.g. ``s3://my-bucket``. The netloc is the bucket.
        part_size: Chunk-size threshold in bytes. Streams smaller than this
            are written with a single put.
        temp_dir: Directory for chunk spill files.
        threads: Size of the upload worker pool shared by all streams.
        access_key: Access key ID. None uses the default credential chain.
        secret_key: Secret for ``access_key``. Prompted for when missing.
        region: Region name passed to the client.
        endpoint_url: Custom endpoint for S3-compatible stores.

    Example:
        >>> config = FilerConfig(url="s3://my-bucket", threads=4)
        >>> config.bucket
        'my-bucket'
    """

    url: str
    part_size: int = C.DEFAULT_PART_SIZE
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    threads: int = C.DEFAULT_UPLOAD_THREADS
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: Optional[str] = None
    endpoint_url: Optional[str] = None

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        parts = urlsplit(self.url)
        if parts.scheme not in SUPPORTED_SCHEMES:
            raise ValueError(f"url scheme must be one of {SUPPORTED_SCHEMES}, got {self.url!r}")
        if not parts.netloc:
            raise ValueError(f"url must name a bucket, got {self.url!r}")

        if self.part_size <= 0:
            raise ValueError(f"part_size must be > 0, got {self.part_size}")
        if self.threads <= 0:
            raise ValueError(f"threads must be > 0, got {self.threads}")

    @property
    def bucket(self) -> str:
        return urlsplit(self.url).netloc

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> Result[FilerConfig, str]:
        """
        Load configuration from dotted keys.

        Keys:
        - url: Store URL (required)
        - s3.partSize: Chunk-size threshold in bytes (default: 5 MiB)
        - s3.tempDir: Spill directory (default: platform temp dir)
        - s3.threads: Upload pool size (default: 1)
        - s3.endpoint: Custom endpoint URL
        - aws.key / aws.secret: Static credentials
        - aws.region: Region name
        """
        url = values.get("url")
        if not url:
            return Err("'url' is required")

        try:
            temp_dir = values.get("s3.tempDir")
            return Ok(cls(
                url=str(url),
                part_size=int(values.get("s3.partSize", C.DEFAULT_PART_SIZE)),
                temp_dir=Path(temp_dir) if temp_dir else Path(tempfile.gettempdir()),
                threads=int(values.get("s3.threads", C.DEFAULT_UPLOAD_THREADS)),
                access_key=values.get("aws.key") or None,
                secret_key=values.get("aws.secret") or None,
                region=values.get("aws.region") or None,
                endpoint_url=values.get("s3.endpoint") or None,
            ))
        except (ValueError, TypeError) as e:
            return Err(str(e))

    @classmethod
    def from_env(cls, prefix: str = C.ENV_PREFIX) -> Result[FilerConfig, str]:
        """Load configuration from environment variables (see env_mapping)."""
        return cls.from_mapping(cls.env_mapping(prefix))

    @staticmethod
    def env_mapping(prefix: str = C.ENV_PREFIX) -> Dict[str, str]:
        """
        Collect the dotted configuration keys set in the environment.

        Environment Variables:
        - {prefix}_URL: Store URL (required)
        - {prefix}_PART_SIZE: Chunk-size threshold in bytes
        - {prefix}_TEMP_DIR: Spill directory
        - {prefix}_THREADS: Upload pool size
        - {prefix}_ACCESS_KEY / {prefix}_SECRET_KEY: Static credentials
        - {prefix}_REGION: Region name
        - {prefix}_ENDPOINT_URL: Custom endpoint URL
        """
        env_keys = {
            "URL": "url",
            "PART_SIZE": "s3.partSize",
            "TEMP_DIR": "s3.tempDir",
            "THREADS": "s3.threads",
            "ACCESS_KEY": "aws.key",
            "SECRET_KEY": "aws.secret",
            "REGION": "aws.region",
            "ENDPOINT_URL": "s3.endpoint",
        }
        values: Dict[str, str] = {}
        for suffix, key in env_keys.items():
            value = os.environ.get(f"{prefix}_{suffix}")
            if value:
                values[key] = value
        return values

    def client_kwargs(self, secret_provider: Optional[SecretProvider] = None) -> Dict[str, Any]:
        """
        Generate keyword arguments for ``boto3.client("s3", ...)``.

        When an access key is configured without a secret, the secret is
        requested from ``secret_provider`` (default: masked terminal prompt).
        """
        kwargs: Dict[str, Any] = {}

        if self.region:
            kwargs["region_name"] = self.region
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url

        if self.access_key:
            secret = self.secret_key
            if secret is None:
                secret = (secret_provider or prompt_secret)(f"{self.access_key}.secret")
            kwargs["aws_access_key_id"] = self.access_key
            kwargs["aws_secret_access_key"] = secret

        return kwargs
