"""Unit tests for lokichunk/models.py."""

import typing

from lokichunk.binary_chunk_decoder import LokiChunkDecoder
from lokichunk.compression import ENC_GZIP, Encoding
from lokichunk.exceptions import ChunkDecodeError
from lokichunk.models import Block, DecodedChunk


def test_annotations_resolve() -> None:
    """Annotations of the result types name importable classes."""
    chunk_hints = typing.get_type_hints(DecodedChunk)
    assert chunk_hints["encoding"] is Encoding
    assert chunk_hints["warnings"] == tuple[ChunkDecodeError, ...]
    assert typing.get_type_hints(Block)["error"] == ChunkDecodeError | None


def test_chunk_aggregates(two_block_chunk: bytes) -> None:
    """Entries and sizes are summed over all blocks in order."""
    _, chunk = LokiChunkDecoder().decode_bytes(two_block_chunk)

    assert chunk.encoding is ENC_GZIP
    assert [entry.line for entry in chunk.entries] == ["first line", "second line ", "third line"]
    assert chunk.total_uncompressed_length == sum(
        block.uncompressed_length for block in chunk.blocks
    )
    assert all(block.entry_count_matches for block in chunk.blocks)
    assert all(block.compression_ratio > 0 for block in chunk.blocks)
