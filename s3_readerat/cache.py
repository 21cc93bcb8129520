from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import ConfigurationError, InvalidArgument
from .reader import ByteRange, ReadResult, S3ReaderAt

if TYPE_CHECKING:
    from .settings import ClientSettings

LOG = logging.getLogger("s3_readerat.cache")


@dataclass(frozen=True)
class CachedWindow:
    offset: int
    data: bytes

    @property
    def end(self) -> int:
        return self.offset + len(self.data)

    def covers(self, offset: int, end: int) -> bool:
        return self.offset <= offset and end <= self.end


class CachingReaderAt(S3ReaderAt):
    """Range reader that keeps the bytes of the most recent fetch.

    A read that falls entirely inside the kept window is copied out of
    memory. Any other read issues a new fetch, ``readahead`` bytes longer
    than asked for, which replaces the window. The check-fetch-update
    sequence runs under a lock held by the reader.
    """

    def __init__(self, bucket: str, key: str, *, readahead: int = 0, **kwargs: Any):
        if readahead < 0:
            msg = f"readahead must not be negative: {readahead}"
            raise ConfigurationError(msg)
        kwargs.setdefault("logger", LOG)
        super().__init__(bucket, key, **kwargs)
        self.readahead = readahead
        self._window: CachedWindow | None = None
        self._window_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        bucket: str,
        key: str,
        size: int | None = None,
        **kwargs: Any,
    ) -> CachingReaderAt:
        kwargs.setdefault("readahead", settings.readahead)
        return super().from_settings(settings, bucket, key, size=size, **kwargs)

    @property
    def window(self) -> CachedWindow | None:
        return self._window

    def invalidate(self) -> None:
        with self._window_lock:
            self._window = None

    def read_into(self, buffer: Any, offset: int) -> ReadResult:
        view = memoryview(buffer).cast("B")
        if len(view) == 0:
            return ReadResult(0)
        if offset < 0:
            msg = f"negative offset: {offset}"
            raise InvalidArgument(msg)

        end = offset + len(view)
        with self._window_lock:
            window = self._window
            if window is not None and window.covers(offset, end):
                self._log.debug(
                    "cache hit: %d-%d is within %d-%d",
                    offset,
                    end,
                    window.offset,
                    window.end,
                )
                start = offset - window.offset
                view[:] = window.data[start : start + len(view)]
                return ReadResult(len(view))

            if window is None:
                self._log.debug("cache miss: cache empty")
            else:
                self._log.debug(
                    "cache miss: %d-%d is not within %d-%d",
                    offset,
                    end,
                    window.offset,
                    window.end,
                )

            size = self.size()
            clamped = ByteRange.of(offset, len(view)).clamp(size)
            if clamped is None:
                return ReadResult(0, at_end=True)
            wanted = ByteRange.of(offset, len(view) + self.readahead).clamp(size)
            assert wanted is not None

            data = bytearray(wanted.length)
            fetched = self._fetch_into(memoryview(data), wanted)
            self._window = CachedWindow(offset, bytes(data[:fetched]))

        nbytes = min(fetched, clamped.length)
        view[:nbytes] = data[:nbytes]
        at_end = clamped.last < end - 1 or nbytes < clamped.length
        return ReadResult(nbytes, at_end=at_end)
