"""Data model of a decoded Loki chunk."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from lokichunk.compression import Encoding
from lokichunk.exceptions import ChunkDecodeError
from lokichunk.utils.date_utils import from_unix_millis


@dataclass(frozen=True)
class Label:
    """One name/value pair of the series label set."""

    name: str
    value: str


@dataclass(frozen=True)
class ChunkHeader:
    """Series metadata from the header frame in front of the chunk body."""

    user_id: str
    labels: tuple[Label, ...]
    from_ms: int  # inclusive, unix milliseconds
    through_ms: int  # inclusive, unix milliseconds
    metadata_length: int
    data_length: int
    fingerprint: int | None = None
    encoding: int | None = None

    @property
    def from_time(self) -> datetime:
        return from_unix_millis(self.from_ms)

    @property
    def through_time(self) -> datetime:
        return from_unix_millis(self.through_ms)

    def label_value(self, name: str) -> str | None:
        """Return the value of label ``name`` or None if the series lacks it."""
        for label in self.labels:
            if label.name == name:
                return label.value
        return None


@dataclass(frozen=True)
class Entry:
    """A single log line with its nanosecond timestamp."""

    timestamp: int  # unix nanoseconds
    line: str


@dataclass(frozen=True)
class PayloadView:
    """Window ``[offset, offset + length)`` into the owning body buffer."""

    buffer: bytes = field(repr=False)
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    def memoryview(self) -> memoryview:
        return memoryview(self.buffer)[self.offset : self.end]

    def tobytes(self) -> bytes:
        return self.buffer[self.offset : self.end]


@dataclass(frozen=True)
class Block:
    """One independently compressed block of entries.

    ``min_t``/``max_t`` and ``num_entries`` come from the directory and are
    never enforced against the decoded entries; see
    :attr:`bounds_consistent` and :attr:`entry_count_matches`.
    """

    index: int
    num_entries: int
    min_t: int
    max_t: int
    data_offset: int
    data_length: int
    payload: PayloadView
    stored_checksum: int | None
    computed_checksum: int
    compressed_digest: bytes
    uncompressed_digest: bytes | None
    uncompressed_length: int
    entries: tuple[Entry, ...]
    error: ChunkDecodeError | None = None

    @property
    def checksum_ok(self) -> bool:
        """True when no checksum is stored or it matches the computed one."""
        return self.stored_checksum is None or self.stored_checksum == self.computed_checksum

    @property
    def compression_ratio(self) -> float:
        if self.data_length == 0:
            return 0.0
        return self.uncompressed_length / self.data_length

    @property
    def entry_count_matches(self) -> bool:
        return self.num_entries == len(self.entries)

    @property
    def bounds_consistent(self) -> bool:
        """True when every decoded timestamp lies within ``[min_t, max_t]``."""
        if self.min_t > self.max_t:
            return False
        return all(self.min_t <= entry.timestamp <= self.max_t for entry in self.entries)


@dataclass(frozen=True)
class DecodedChunk:
    """Result of decoding a chunk body."""

    encoding: Encoding
    chunk_format: int
    metadata_checksum: int | None
    computed_metadata_checksum: int
    blocks: tuple[Block, ...]
    warnings: tuple[ChunkDecodeError, ...] = ()

    @property
    def metadata_checksum_ok(self) -> bool:
        return (
            self.metadata_checksum is None
            or self.metadata_checksum == self.computed_metadata_checksum
        )

    @property
    def total_uncompressed_length(self) -> int:
        return sum(block.uncompressed_length for block in self.blocks)

    @property
    def entries(self) -> list[Entry]:
        """All entries of all blocks in directory order."""
        return [entry for block in self.blocks for entry in block.entries]
