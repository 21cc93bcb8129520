"""Recovery from requests that land in the wrong S3 region.

S3 answers a request sent to the wrong regional endpoint with a 3xx
status and an ``x-amz-bucket-region`` header naming the bucket's region.
Failures are normalised into :class:`FailedRequest` values and classified
into :class:`Recoverable` or :class:`Unrecoverable`; only readers built
from a :class:`ClientFactory` can act on a recoverable failure.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from botocore.exceptions import ClientError

from .settings import ClientSettings, build_client

if TYPE_CHECKING:
    from botocore.client import BaseClient

LOG = logging.getLogger("s3_readerat.region")

REGION_HEADER = "x-amz-bucket-region"

T = TypeVar("T")


@dataclass(frozen=True)
class FailedRequest:
    status_code: int | None
    headers: Mapping[str, str] = field(default_factory=dict)
    operation: str | None = None


@dataclass(frozen=True)
class Recoverable:
    region: str


@dataclass(frozen=True)
class Unrecoverable:
    pass


UNRECOVERABLE = Unrecoverable()

RegionRecovery = Recoverable | Unrecoverable


def failed_request_from_error(error: ClientError) -> FailedRequest:
    """Normalise a botocore ``ClientError`` into a :class:`FailedRequest`."""
    metadata = error.response.get("ResponseMetadata", {})
    status = metadata.get("HTTPStatusCode")
    headers = {
        str(key).lower(): str(value)
        for key, value in (metadata.get("HTTPHeaders") or {}).items()
    }
    return FailedRequest(
        status_code=int(status) if status is not None else None,
        headers=headers,
        operation=error.operation_name,
    )


def classify_failure(failure: FailedRequest) -> RegionRecovery:
    if failure.status_code is None or not 300 <= failure.status_code < 400:
        return UNRECOVERABLE
    region = failure.headers.get(REGION_HEADER, "").strip()
    if not region:
        return UNRECOVERABLE
    return Recoverable(region)


@dataclass(frozen=True)
class FixedClient:
    """Single-region mode: always use the caller's client."""

    client: Any


@dataclass(frozen=True)
class ClientFactory:
    """Multi-region mode: build clients from base options on demand."""

    settings: ClientSettings
    build: Callable[[ClientSettings, str | None], Any] = build_client

    def create(self, region: str | None = None) -> Any:
        return self.build(self.settings, region)


ClientSource = FixedClient | ClientFactory


class RegionalClients:
    """The default client plus at most one lazily built regional client."""

    def __init__(self, source: ClientSource, logger: logging.Logger | None = None):
        self._source = source
        self._log = logger or LOG
        self._lock = threading.Lock()
        self._binding: tuple[str, BaseClient] | None = None
        if isinstance(source, FixedClient):
            self.default = source.client
        else:
            self.default = source.create()

    @property
    def can_recover(self) -> bool:
        return isinstance(self._source, ClientFactory)

    @property
    def region(self) -> str | None:
        binding = self._binding
        return binding[0] if binding is not None else None

    @property
    def active(self) -> BaseClient:
        binding = self._binding
        return binding[1] if binding is not None else self.default

    def client_for(self, region: str) -> BaseClient:
        if not isinstance(self._source, ClientFactory):
            msg = "region-bound clients require a client factory"
            raise RuntimeError(msg)
        with self._lock:
            if self._binding is not None and self._binding[0] == region:
                return self._binding[1]
            client = self._source.create(region)
            self._binding = (region, client)
        self._log.info("switched S3 client to region %s", region)
        return client

    def call(
        self,
        func: Callable[[BaseClient], T],
        check: Callable[[], None] | None = None,
    ) -> T:
        """Run ``func`` against the active client, retrying once on a region redirect.

        ``check`` runs before the retry and may raise to abort it. The retry
        is not itself retried: a second failure propagates as-is.
        """
        try:
            return func(self.active)
        except ClientError as error:
            recovery = classify_failure(failed_request_from_error(error))
            if not isinstance(recovery, Recoverable) or not self.can_recover:
                raise
            self._log.debug(
                "%s redirected to region %s",
                error.operation_name,
                recovery.region,
            )
            client = self.client_for(recovery.region)
        if check is not None:
            check()
        return func(client)
