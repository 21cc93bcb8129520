from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING, Any

from .errors import InvalidArgument

if TYPE_CHECKING:
    from .reader import ReadResult, S3ReaderAt

LOG = logging.getLogger("s3_readerat.seeking")


class SeekableReader(io.RawIOBase):
    """File-like, seekable view over an :class:`S3ReaderAt`.

    Keeps a cursor that reads advance and :meth:`seek` repositions. Not
    safe for concurrent use; wrap it in ``io.BufferedReader`` for small
    sequential reads.
    """

    def __init__(self, reader: S3ReaderAt, logger: logging.Logger | None = None):
        super().__init__()
        self.reader = reader
        self._log = logger or LOG
        self._offset = 0

    @property
    def name(self) -> str:
        return self.reader.url

    def size(self) -> int:
        return self.reader.size()

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        self._checkClosed()
        return self._offset

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move the cursor and return its new absolute position.

        Seeking past the end is allowed; the next read reports end of data.
        A negative target position raises :class:`InvalidArgument` and
        leaves the cursor where it was.
        """
        self._checkClosed()
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._offset + offset
        elif whence == io.SEEK_END:
            target = self.reader.size() + offset
        else:
            msg = (
                f"invalid whence ({whence}, should be {io.SEEK_SET}, "
                f"{io.SEEK_CUR} or {io.SEEK_END})"
            )
            raise InvalidArgument(msg)

        if target < 0:
            msg = f"negative seek position {target}"
            raise InvalidArgument(msg)
        self._offset = target
        self._log.debug("offset is now %d", self._offset)
        return self._offset

    def read_into(self, buffer: Any) -> ReadResult:
        """Read at the cursor into ``buffer`` and advance the cursor."""
        self._checkClosed()
        result = self.reader.read_into(buffer, self._offset)
        self._offset += result.nbytes
        return result

    def readinto(self, buffer: Any) -> int:
        return self.read_into(buffer).nbytes

    def readall(self) -> bytes:
        """Read from the cursor to the end of the object in one request."""
        self._checkClosed()
        buffer = bytearray(max(self.reader.size() - self._offset, 0))
        nbytes = self.read_into(buffer).nbytes
        return bytes(buffer[:nbytes])
