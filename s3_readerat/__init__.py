"""Random-access reads of a remote S3 object through HTTP range requests."""

from .cache import CachingReaderAt
from .errors import (
    Cancelled,
    ConfigurationError,
    FetchError,
    InvalidArgument,
    InvalidMetadata,
    MetadataError,
    S3ReaderAtError,
    TransportError,
)
from .reader import ByteRange, Chunk, ReadResult, S3ReaderAt
from .region import ClientFactory, FixedClient
from .seeking import SeekableReader
from .settings import ClientSettings

__all__ = [
    "ByteRange",
    "CachingReaderAt",
    "Cancelled",
    "Chunk",
    "ClientFactory",
    "ClientSettings",
    "ConfigurationError",
    "FetchError",
    "FixedClient",
    "InvalidArgument",
    "InvalidMetadata",
    "MetadataError",
    "ReadResult",
    "S3ReaderAt",
    "S3ReaderAtError",
    "SeekableReader",
    "TransportError",
]
