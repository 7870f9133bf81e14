"""Helpers for reading from binary streams."""

from __future__ import annotations

from typing import BinaryIO

from lokichunk.exceptions import Truncated


def read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    """Read exactly ``size`` bytes from ``stream``.

    Raises:
        Truncated: If the stream ends early.
    """
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        data = stream.read(remaining)
        if not data:
            break
        chunks.append(data)
        remaining -= len(data)
    result = b"".join(chunks)
    if len(result) != size:
        raise Truncated(what, size, len(result))
    return result
