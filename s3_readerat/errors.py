from __future__ import annotations


class S3ReaderAtError(Exception):
    """Base class for every error raised by s3_readerat."""


class ConfigurationError(S3ReaderAtError, ValueError):
    """Invalid construction arguments."""


class InvalidArgument(S3ReaderAtError, ValueError):
    """Invalid seek whence, negative offset or bad command-line value."""


class MetadataError(S3ReaderAtError):
    """HeadObject failed for the object."""

    def __init__(self, message: str, error: BaseException | None = None):
        super().__init__(message)
        self.error = error


class InvalidMetadata(MetadataError):
    """HeadObject succeeded but reported a missing or negative length."""


class FetchError(S3ReaderAtError):
    """Ranged GetObject failed for a reason other than a region mismatch."""

    def __init__(self, message: str, error: BaseException | None = None):
        super().__init__(message)
        self.error = error


class TransportError(S3ReaderAtError):
    """The response body ended before its declared content length."""


class Cancelled(S3ReaderAtError):
    """The caller aborted an in-flight operation."""
