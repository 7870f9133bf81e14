"""LEB128 variable-length integers as used by the chunk directory and entries.

Unsigned values are plain LEB128 (at most 10 bytes for 64 bits). Signed
values are zig-zag encoded before the LEB128 step, so small negative numbers
stay short.
"""

from __future__ import annotations

from lokichunk.exceptions import MalformedVarint

MAX_VARINT_LEN64 = 10


def read_uvarint(buf: bytes | memoryview, offset: int = 0) -> tuple[int, int]:
    """Decode an unsigned varint starting at ``offset``.

    Args:
        buf: Buffer to read from.
        offset: Position of the first varint byte.

    Returns:
        Tuple of (value, offset of the first byte after the varint).

    Raises:
        MalformedVarint: If the buffer ends before the last byte or the
            value does not fit into 64 bits.
    """
    value = 0
    shift = 0
    end = len(buf)
    for index in range(MAX_VARINT_LEN64):
        pos = offset + index
        if pos >= end:
            raise MalformedVarint(offset, "buffer too small")
        byte = buf[pos]
        if byte < 0x80:
            if index == MAX_VARINT_LEN64 - 1 and byte > 1:
                raise MalformedVarint(offset, "value overflows 64 bits")
            return value | (byte << shift), pos + 1
        value |= (byte & 0x7F) << shift
        shift += 7
    raise MalformedVarint(offset, "value overflows 64 bits")


def read_varint(buf: bytes | memoryview, offset: int = 0) -> tuple[int, int]:
    """Decode a zig-zag signed varint starting at ``offset``."""
    unsigned, next_offset = read_uvarint(buf, offset)
    value = unsigned >> 1
    if unsigned & 1:
        value = ~value
    return value, next_offset
