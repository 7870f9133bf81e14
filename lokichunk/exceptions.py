"""Errors raised while decoding Loki chunk files.

Every failure derives from :class:`ChunkDecodeError`, which is itself a
:class:`ValueError`, so callers that only care about "the chunk is bad" can
catch a single type. :class:`ChecksumMismatch` is never raised by the
decoder: it is collected as a warning on the decoded chunk.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lokichunk.models import Entry


class ChunkDecodeError(ValueError):
    """Base class for chunk decoding failures."""


class Truncated(ChunkDecodeError):
    """Raised when the stream ends before a declared number of bytes was read."""

    def __init__(self, what: str, expected: int, got: int) -> None:
        super().__init__(f"truncated {what}: expected {expected} bytes, got {got}")
        self.what = what
        self.expected = expected
        self.got = got


class MalformedField(ChunkDecodeError):
    """Raised when a header field cannot be decoded in its expected encoding."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"malformed header field {field!r}: {reason}")
        self.field = field
        self.reason = reason


class BadMagic(ChunkDecodeError):
    """Raised when the body does not start with the chunk magic number."""

    def __init__(self, found: int) -> None:
        super().__init__(f"invalid magic number: {found:08x}")
        self.found = found


class UnknownCodec(ChunkDecodeError):
    """Raised when the (format, code) pair does not select a known codec."""

    def __init__(self, chunk_format: int, code: int) -> None:
        if chunk_format == 2:
            message = f"unknown encoding: {code}"
        else:
            message = f"unknown format: {chunk_format}"
        super().__init__(message)
        self.chunk_format = chunk_format
        self.code = code


class CodecInitError(ChunkDecodeError):
    """Raised when a decompressor cannot be constructed over a payload."""

    def __init__(self, codec: str, reason: str) -> None:
        super().__init__(f"failed to initialise {codec} decompressor: {reason}")
        self.codec = codec
        self.reason = reason


class MalformedVarint(ChunkDecodeError):
    """Raised when a LEB128 integer is cut short or overflows 64 bits."""

    def __init__(self, offset: int, reason: str) -> None:
        super().__init__(f"malformed varint at byte offset {offset}: {reason}")
        self.offset = offset
        self.reason = reason


class TruncatedEntry(ChunkDecodeError):
    """Raised when a block's entry stream ends in the middle of an entry.

    ``entries`` holds everything decoded before the failure so that the
    caller can still report it.
    """

    def __init__(self, offset: int, reason: str, entries: list[Entry] | None = None) -> None:
        super().__init__(f"truncated entry at byte offset {offset}: {reason}")
        self.offset = offset
        self.reason = reason
        self.entries: list[Entry] = entries or []


class DirectoryDecodeError(ChunkDecodeError):
    """Raised when the metadata directory cannot be decoded."""

    def __init__(self, reason: str, block_index: int | None = None) -> None:
        if block_index is None:
            message = f"failed to decode metadata directory: {reason}"
        else:
            message = f"failed to decode descriptor of block {block_index}: {reason}"
        super().__init__(message)
        self.reason = reason
        self.block_index = block_index


class BlockDecodeError(ChunkDecodeError):
    """Raised when a block payload cannot be decompressed or decoded."""

    def __init__(self, block_index: int, reason: str) -> None:
        super().__init__(f"failed to decode block {block_index}: {reason}")
        self.block_index = block_index
        self.reason = reason


class ChecksumMismatch(ChunkDecodeError):
    """Stored and computed CRC32C differ. Recorded as a warning, not raised."""

    def __init__(self, region: str, stored: int, computed: int) -> None:
        super().__init__(
            f"{region} checksum mismatch: stored {stored:08x}, computed {computed:08x}"
        )
        self.region = region
        self.stored = stored
        self.computed = computed
