"""Schemas for the chunk inspection API."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Optional

from pydantic import BaseModel, Field

from lokichunk.models import Block, ChunkHeader, DecodedChunk
from lokichunk.utils.date_utils import from_unix_millis, from_unix_nanos


class LabelResponse(BaseModel):
    """One label of the series."""

    name: str
    value: str


class EntryResponse(BaseModel):
    """Decoded log line."""

    timestamp: int = Field(..., description="Unix nanoseconds")
    time: datetime
    line: str


class BlockResponse(BaseModel):
    """Block details, as printed by ``lokichunk -b``."""

    index: int
    num_entries: int = Field(..., description="Entry count declared in the directory")
    decoded_entries: int
    min_t: int
    max_t: int
    data_offset: int
    data_length: int
    uncompressed_length: int
    compression_ratio: float
    stored_checksum: Optional[int] = None  # absent in format 1 chunks
    computed_checksum: int
    checksum_ok: bool
    compressed_digest: str
    uncompressed_digest: Optional[str] = None
    bounds_consistent: bool
    error: Optional[str] = None
    entries: Optional[list[EntryResponse]] = None

    @classmethod
    def from_block(cls, block: Block, include_lines: bool, tz: tzinfo) -> "BlockResponse":
        entries = None
        if include_lines:
            entries = [
                EntryResponse(
                    timestamp=entry.timestamp,
                    time=from_unix_nanos(entry.timestamp, tz),
                    line=entry.line,
                )
                for entry in block.entries
            ]
        return cls(
            index=block.index,
            num_entries=block.num_entries,
            decoded_entries=len(block.entries),
            min_t=block.min_t,
            max_t=block.max_t,
            data_offset=block.data_offset,
            data_length=block.data_length,
            uncompressed_length=block.uncompressed_length,
            compression_ratio=block.compression_ratio,
            stored_checksum=block.stored_checksum,
            computed_checksum=block.computed_checksum,
            checksum_ok=block.checksum_ok,
            compressed_digest=block.compressed_digest.hex(),
            uncompressed_digest=(
                block.uncompressed_digest.hex() if block.uncompressed_digest else None
            ),
            bounds_consistent=block.bounds_consistent,
            error=str(block.error) if block.error is not None else None,
            entries=entries,
        )


class ChunkReport(BaseModel):
    """Decoded chunk summary returned by ``POST /chunks/decode``."""

    user_id: str
    fingerprint: Optional[int] = None
    labels: list[LabelResponse]
    from_time: datetime
    through_time: datetime
    metadata_length: int
    data_length: int
    encoding: str
    chunk_format: int
    metadata_checksum: Optional[int] = None
    computed_metadata_checksum: int
    metadata_checksum_ok: bool
    block_count: int
    entry_count: int
    total_uncompressed_length: int
    warnings: list[str] = Field(default_factory=list)
    blocks: Optional[list[BlockResponse]] = None

    @classmethod
    def from_decoded(
        cls,
        header: ChunkHeader,
        chunk: DecodedChunk,
        include_blocks: bool = False,
        include_lines: bool = False,
        tz: tzinfo = timezone.utc,
    ) -> "ChunkReport":
        blocks = None
        if include_blocks or include_lines:
            blocks = [BlockResponse.from_block(block, include_lines, tz) for block in chunk.blocks]
        return cls(
            user_id=header.user_id,
            fingerprint=header.fingerprint,
            labels=[LabelResponse(name=label.name, value=label.value) for label in header.labels],
            from_time=from_unix_millis(header.from_ms, tz),
            through_time=from_unix_millis(header.through_ms, tz),
            metadata_length=header.metadata_length,
            data_length=header.data_length,
            encoding=str(chunk.encoding),
            chunk_format=chunk.chunk_format,
            metadata_checksum=chunk.metadata_checksum,
            computed_metadata_checksum=chunk.computed_metadata_checksum,
            metadata_checksum_ok=chunk.metadata_checksum_ok,
            block_count=len(chunk.blocks),
            entry_count=len(chunk.entries),
            total_uncompressed_length=chunk.total_uncompressed_length,
            warnings=[str(warning) for warning in chunk.warnings],
            blocks=blocks,
        )
