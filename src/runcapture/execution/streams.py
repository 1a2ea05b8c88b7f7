"""Helpers for building command lines and reading process output."""

from __future__ import annotations

import locale
from typing import BinaryIO, Sequence

from runcapture.config import DEFAULT_BUFFER_SIZE


def join_arguments(args: Sequence[object]) -> str:
    """Join arguments with single spaces.

    No quoting is applied; arguments containing whitespace are the caller's problem.
    """

    return " ".join(str(arg) for arg in args)


def drain_stream(
    stream: BinaryIO,
    *,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    encoding: str | None = None,
) -> str:
    """Read a binary stream to the end, close it and decode the contents.

    Args:
        stream: Binary stream to read.
        buffer_size: Number of bytes requested per read.
        encoding: Text encoding. Defaults to the platform preferred encoding.

    Returns:
        The decoded text. Undecodable bytes are replaced.
    """

    buffer = bytearray()
    try:
        while True:
            chunk = stream.read(buffer_size)
            if not chunk:
                break
            buffer.extend(chunk)
    finally:
        stream.close()
    return buffer.decode(encoding or locale.getpreferredencoding(False), errors="replace")
