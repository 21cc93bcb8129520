"""``seek-s3``: print part of an S3 object to stdout."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import click

from .errors import InvalidArgument, S3ReaderAtError
from .reader import S3ReaderAt
from .seeking import SeekableReader
from .settings import load_client_settings_from_env

if TYPE_CHECKING:
    from typing import BinaryIO

LOG = logging.getLogger("s3_readerat.cli")

COPY_CHUNK = 1024 * 64


def parse_s3_url(url: str) -> tuple[str, str]:
    """Split ``s3://bucket/key`` into bucket and key."""
    parsed = urlparse(url)
    if parsed.scheme != "s3":
        msg = f"not an S3 URL: {url}"
        raise InvalidArgument(msg)
    bucket = parsed.netloc
    key = parsed.path.lstrip("/")
    if not bucket or not key:
        msg = f"S3 URL must name a bucket and a key: {url}"
        raise InvalidArgument(msg)
    return bucket, key


def check_whence(whence: int) -> int:
    if whence not in (0, 1, 2):
        msg = "whence parameter must be 0, 1 or 2"
        raise InvalidArgument(msg)
    return whence


def check_limit(limit: int) -> int:
    if limit < -1 or limit == 0:
        msg = "limit parameter must be -1 or positive"
        raise InvalidArgument(msg)
    return limit


def open_reader(bucket: str, key: str) -> S3ReaderAt:
    return S3ReaderAt.from_settings(load_client_settings_from_env(), bucket, key)


def copy_to(stream: SeekableReader, out: BinaryIO, limit: int = -1) -> int:
    """Copy from the cursor to ``out`` until end of data or ``limit`` bytes."""
    buffer = bytearray(COPY_CHUNK)
    view = memoryview(buffer)
    remaining = limit
    total = 0
    while remaining != 0:
        wanted = len(buffer) if remaining < 0 else min(len(buffer), remaining)
        nbytes, at_end = stream.read_into(view[:wanted])
        out.write(view[:nbytes])
        total += nbytes
        if remaining > 0:
            remaining -= nbytes
        if at_end or nbytes == 0:
            break
    return total


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--debug", is_flag=True, default=False, help="Enable verbose output.")
@click.option(
    "--offset",
    type=int,
    default=-8,
    show_default=True,
    help="Offset parameter to seek.",
)
@click.option(
    "--whence",
    type=int,
    default=2,
    show_default=True,
    help="Whence parameter to seek (0 is start, 1 is current and 2 is end).",
)
@click.option(
    "--limit",
    type=int,
    default=-1,
    show_default=True,
    help="Limit the bytes to print (-1 is unlimited).",
)
@click.argument("url")
def main(debug: bool, offset: int, whence: int, limit: int, url: str) -> None:
    """Seek into the S3 object at URL and print the bytes that follow."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        bucket, key = parse_s3_url(url)
        check_whence(whence)
        check_limit(limit)
    except InvalidArgument as error:
        raise click.UsageError(str(error)) from error

    out = click.get_binary_stream("stdout")
    try:
        stream = SeekableReader(open_reader(bucket, key))
        stream.seek(offset, whence)
        total = copy_to(stream, out, limit)
    except S3ReaderAtError as error:
        raise click.ClickException(str(error)) from error
    finally:
        out.flush()
    LOG.debug("wrote %d bytes of %s", total, url)


if __name__ == "__main__":  # pragma: no cover
    main()
