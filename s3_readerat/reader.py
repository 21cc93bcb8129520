from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, NamedTuple, Self

from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    Cancelled,
    ConfigurationError,
    FetchError,
    InvalidArgument,
    InvalidMetadata,
    MetadataError,
    TransportError,
)
from .region import ClientFactory, FixedClient, RegionalClients

if TYPE_CHECKING:
    from botocore.client import BaseClient

    from .settings import ClientSettings

LOG = logging.getLogger("s3_readerat.reader")

CHUNK_SIZE = 1024 * 64


@dataclass(frozen=True)
class ByteRange:
    """Closed interval ``[first, last]`` of absolute byte offsets."""

    first: int
    last: int

    def __post_init__(self) -> None:
        if self.first < 0 or self.last < self.first:
            msg = f"invalid byte range {self.first}-{self.last}"
            raise InvalidArgument(msg)

    @classmethod
    def of(cls, offset: int, length: int) -> ByteRange:
        return cls(offset, offset + length - 1)

    @property
    def length(self) -> int:
        return self.last - self.first + 1

    def header(self) -> str:
        return f"bytes={self.first}-{self.last}"

    def clamp(self, size: int) -> ByteRange | None:
        """Cut the range so it ends at ``size - 1``; ``None`` if nothing is left."""
        if self.first >= size:
            return None
        if self.last <= size - 1:
            return self
        return ByteRange(self.first, size - 1)


class ReadResult(NamedTuple):
    """Bytes written into the caller's buffer, and whether the object ended."""

    nbytes: int
    at_end: bool = False


class Chunk(NamedTuple):
    data: bytes
    at_end: bool = False


class S3ReaderAt:
    """Positional reads of a single S3 object using ranged GetObject calls.

    Exactly one of ``client`` (single-region mode) or ``factory``
    (multi-region mode, enables region redirect recovery) must be given.
    A known ``size`` skips the HeadObject round trip.

    Safe for concurrent use: the only shared state is the resolved size
    and the regional client, both assigned under locks.
    """

    def __init__(
        self,
        bucket: str,
        key: str,
        *,
        client: BaseClient | None = None,
        factory: ClientFactory | None = None,
        size: int | None = None,
        logger: logging.Logger | None = None,
        cancel: threading.Event | None = None,
    ):
        if client is None and factory is None:
            msg = "an S3 client or a client factory is required"
            raise ConfigurationError(msg)
        if client is not None and factory is not None:
            msg = "pass either an S3 client or a client factory, not both"
            raise ConfigurationError(msg)
        if not bucket:
            msg = "bucket is required"
            raise ConfigurationError(msg)
        if size is not None and size < 0:
            msg = f"provided size is invalid: {size}"
            raise ConfigurationError(msg)

        self.bucket = bucket
        self.key = key
        self._log = logger or LOG
        self._cancel = cancel
        source = FixedClient(client) if client is not None else factory
        assert source is not None
        self._clients = RegionalClients(source, self._log)
        self._size = size if size is not None else -1
        self._size_lock = threading.Lock()

    @classmethod
    def from_client(
        cls,
        client: BaseClient,
        bucket: str,
        key: str,
        size: int | None = None,
        **kwargs: Any,
    ) -> Self:
        return cls(bucket, key, client=client, size=size, **kwargs)

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        bucket: str,
        key: str,
        size: int | None = None,
        **kwargs: Any,
    ) -> Self:
        """Create a multi-region reader whose clients are built from ``settings``."""
        return cls(bucket, key, factory=ClientFactory(settings), size=size, **kwargs)

    @property
    def url(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    @property
    def region(self) -> str | None:
        """Region of the redirect-bound client, if a redirect was followed."""
        return self._clients.region

    def size(self) -> int:
        """Return the object's length, issuing at most one HeadObject.

        Raises:
            MetadataError: HeadObject failed.
            InvalidMetadata: HeadObject reported no or a negative length.
        """
        if self._size >= 0:
            return self._size

        self._check_cancelled()
        self._log.debug("issuing HeadObject for %s", self.url)
        try:
            result = self._clients.call(self._head_object, self._check_cancelled)
        except (ClientError, BotoCoreError) as error:
            msg = f"HeadObject failed for {self.url}: {error}"
            raise MetadataError(msg, error) from error

        length = result.get("ContentLength")
        if length is None or length < 0:
            msg = f"object size is invalid for {self.url}: {length}"
            raise InvalidMetadata(msg)

        with self._size_lock:
            if self._size < 0:
                self._size = int(length)
        self._log.debug("%s has size %d", self.url, self._size)
        return self._size

    def read_into(self, buffer: Any, offset: int) -> ReadResult:
        """Fill ``buffer`` with the object's bytes starting at ``offset``.

        ``at_end`` is set when the read reached the end of the object; a
        non-zero ``nbytes`` alongside it is a complete, final chunk.
        """
        view = memoryview(buffer).cast("B")
        if len(view) == 0:
            return ReadResult(0)
        if offset < 0:
            msg = f"negative offset: {offset}"
            raise InvalidArgument(msg)

        requested = ByteRange.of(offset, len(view))
        size = self.size()
        clamped = requested.clamp(size)
        if clamped is None:
            return ReadResult(0, at_end=True)

        nbytes = self._fetch_into(view[: clamped.length], clamped)
        at_end = clamped != requested or nbytes < clamped.length
        return ReadResult(nbytes, at_end=at_end)

    def read_at(self, offset: int, length: int) -> Chunk:
        if length < 0:
            msg = f"negative length: {length}"
            raise InvalidArgument(msg)
        buffer = bytearray(length)
        nbytes, at_end = self.read_into(buffer, offset)
        return Chunk(bytes(buffer[:nbytes]), at_end)

    def _fetch_into(self, view: memoryview, rng: ByteRange) -> int:
        """Issue one ranged GetObject and copy its body into ``view``."""
        self._check_cancelled()
        self._log.debug(
            "issuing GetObject for %s with range %s", self.url, rng.header()
        )
        try:
            response = self._clients.call(
                partial(self._get_object, rng), self._check_cancelled
            )
        except (ClientError, BotoCoreError) as error:
            msg = f"GetObject failed for {self.url} ({rng.header()}): {error}"
            raise FetchError(msg, error) from error

        body = response["Body"]
        declared = response.get("ContentLength")
        try:
            nbytes = self._drain(body, view)
        except BotoCoreError as error:
            msg = f"reading the body of {self.url} ({rng.header()}) failed: {error}"
            raise TransportError(msg) from error
        finally:
            body.close()

        if declared is not None and declared != rng.length:
            self._log.warning(
                "requested %d bytes of %s but the content-length was %d",
                rng.length,
                self.url,
                declared,
            )
        if nbytes < rng.length and declared is not None and nbytes < declared:
            msg = (
                f"response body for {self.url} ended after {nbytes} of "
                f"{declared} declared bytes"
            )
            raise TransportError(msg)
        return nbytes

    def _drain(self, body: Any, view: memoryview) -> int:
        nbytes = 0
        while nbytes < len(view):
            self._check_cancelled()
            chunk = body.read(min(CHUNK_SIZE, len(view) - nbytes))
            if not chunk:
                break
            view[nbytes : nbytes + len(chunk)] = chunk
            nbytes += len(chunk)
        return nbytes

    def _head_object(self, client: BaseClient) -> dict[str, Any]:
        return client.head_object(Bucket=self.bucket, Key=self.key)

    def _get_object(self, rng: ByteRange, client: BaseClient) -> dict[str, Any]:
        return client.get_object(Bucket=self.bucket, Key=self.key, Range=rng.header())

    def _check_cancelled(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            msg = f"read of {self.url} cancelled"
            raise Cancelled(msg)
