"""Test helpers shared by the fixtures and the test modules."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest
from botocore.exceptions import ClientError

TEST_BUCKET_NAME = "test-bucket"
TEST_URL = f"s3://{TEST_BUCKET_NAME}"


def client_error(code: str, operation: str) -> ClientError:
    """Build the ClientError botocore raises for a failed call."""
    return ClientError({"Error": {"Code": code, "Message": f"simulated {code}"}}, operation)


class ClientSpy:
    """
    Records calls to one client method.

    ``side_effect(original, **kwargs)`` replaces the call when given; it may
    call through to ``original`` or raise.
    """

    def __init__(
        self,
        monkeypatch: pytest.MonkeyPatch,
        client: Any,
        name: str,
        side_effect: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.calls: List[Dict[str, Any]] = []
        original = getattr(client, name)

        def wrapper(**kwargs: Any) -> Any:
            self.calls.append(kwargs)
            if side_effect is not None:
                return side_effect(original, **kwargs)
            return original(**kwargs)

        monkeypatch.setattr(client, name, wrapper)

    @property
    def count(self) -> int:
        return len(self.calls)


def put_key(client: Any, key: str, body: bytes = b"") -> None:
    client.put_object(Bucket=TEST_BUCKET_NAME, Key=key, Body=body)


def payload(size: int) -> bytes:
    """Deterministic, non-repeating-at-chunk-boundaries test content."""
    pattern = bytes(range(251))
    repeats = size // len(pattern) + 1
    return (pattern * repeats)[:size]
