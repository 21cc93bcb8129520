from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody

if TYPE_CHECKING:
    from collections.abc import Generator

RANGE_RE = re.compile(r"^bytes=(\d+)-(\d+)$")

SETTINGS_ENV_VARS = (
    "S3_READERAT_ENDPOINT",
    "S3_READERAT_ACCESS_KEY_ID",
    "S3_READERAT_SECRET_ACCESS_KEY",
    "S3_READERAT_SESSION_TOKEN",
    "S3_READERAT_REGION",
    "S3_READERAT_ADDRESSING_STYLE",
    "S3_READERAT_MAX_ATTEMPTS",
    "S3_READERAT_CONNECT_TIMEOUT",
    "S3_READERAT_READ_TIMEOUT",
    "S3_READERAT_READAHEAD",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
)


def client_error(
    status: int,
    code: str,
    operation: str = "GetObject",
    headers: dict[str, str] | None = None,
) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {
                "HTTPStatusCode": status,
                "HTTPHeaders": headers or {},
            },
        },
        operation,
    )


def redirect_error(region: str | None, operation: str = "GetObject") -> ClientError:
    headers = {"x-amz-bucket-region": region} if region else {}
    return client_error(301, "PermanentRedirect", operation, headers)


@dataclass
class FakeS3Client:
    """In-memory stand-in for a botocore S3 client."""

    objects: dict[tuple[str, str], bytes] = field(default_factory=dict)
    region: str = "us-east-1"
    redirect_to: str | None = None
    failures: list[BaseException] = field(default_factory=list)
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def put(self, bucket: str, key: str, data: bytes) -> None:
        self.objects[(bucket, key)] = data

    @property
    def head_calls(self) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == "HeadObject"]

    @property
    def get_calls(self) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == "GetObject"]

    def _check(self, operation: str, bucket: str, key: str) -> bytes:
        if self.failures:
            raise self.failures.pop(0)
        if self.redirect_to is not None:
            raise redirect_error(self.redirect_to, operation)
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise client_error(404, "NoSuchKey", operation) from None

    def head_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        self.calls.append(("HeadObject", {"Bucket": Bucket, "Key": Key}))
        data = self._check("HeadObject", Bucket, Key)
        return {
            "ContentLength": len(data),
            "ResponseMetadata": {"HTTPStatusCode": 200},
        }

    def get_object(
        self, *, Bucket: str, Key: str, Range: str | None = None
    ) -> dict[str, Any]:
        self.calls.append(("GetObject", {"Bucket": Bucket, "Key": Key, "Range": Range}))
        data = self._check("GetObject", Bucket, Key)
        if Range is None:
            chunk = data
        else:
            match = RANGE_RE.match(Range)
            assert match is not None, Range
            first, last = int(match.group(1)), int(match.group(2))
            chunk = data[first : last + 1]
        return {
            "Body": StreamingBody(io.BytesIO(chunk), len(chunk)),
            "ContentLength": len(chunk),
            "ResponseMetadata": {"HTTPStatusCode": 206 if Range else 200},
        }


@pytest.fixture
def payload() -> bytes:
    """Return 10 KiB of patterned bytes."""
    return bytes((i * 7 + i // 256) % 256 for i in range(10 * 1024))


@pytest.fixture
def fake_client(payload: bytes) -> FakeS3Client:
    client = FakeS3Client()
    client.put("test-bucket", "data/object.bin", payload)
    return client


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[pytest.MonkeyPatch]:
    """Remove every environment variable the settings layer reads."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch


@pytest.fixture
def s3_errors():
    return {
        "client_error": client_error,
        "redirect": redirect_error,
    }


@pytest.fixture
def make_fake_client():
    return FakeS3Client
