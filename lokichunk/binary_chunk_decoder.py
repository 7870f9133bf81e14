"""Binary chunk decoder for Loki log chunks.

A chunk file is a header frame (see :mod:`lokichunk.header`) followed by a
body of ``data_length`` bytes:

* 4 bytes, big-endian: magic ``0x012EE56A``;
* 1 byte format, 1 byte codec code;
* compressed block payloads, each followed by a 4-byte CRC32C in format 2;
* metadata region: uvarint block count, then per block uvarint entry count,
  varint minT, varint maxT, uvarint offset, uvarint length;
* 4 bytes, big-endian: CRC32C of the metadata region (format 2 only);
* 8 bytes, big-endian: offset of the metadata region.

The body has to be in memory before anything after the preamble can be
decoded, because the directory is found from the end of the buffer.
"""

from __future__ import annotations

import hashlib
import io
import logging
import struct
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO

import crc32c

from lokichunk.compression import DECOMPRESSION_ERRORS, FORMAT_V2, Encoding, get_encoding
from lokichunk.exceptions import (
    BadMagic,
    BlockDecodeError,
    ChecksumMismatch,
    ChunkDecodeError,
    CodecInitError,
    DirectoryDecodeError,
    MalformedVarint,
    Truncated,
    TruncatedEntry,
)
from lokichunk.header import decode_header
from lokichunk.models import Block, ChunkHeader, DecodedChunk, Entry, PayloadView
from lokichunk.utils.io_utils import read_exact
from lokichunk.varint import read_uvarint, read_varint

logger = logging.getLogger(__name__)

MAGIC = 0x012EE56A
PREAMBLE_SIZE = 6  # magic + format + code
CHECKSUM_SIZE = 4
METADATA_OFFSET_SIZE = 8

_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")


class BlockErrorPolicy(str, Enum):
    """What to do when a single block fails to decompress or decode."""

    ISOLATE = "isolate"  # record the error on the block and continue
    ABORT = "abort"  # fail the whole chunk


@dataclass(frozen=True)
class ChunkBody:
    """The fully buffered chunk body with its resolved codec."""

    data: bytes
    chunk_format: int
    encoding: Encoding

    @property
    def checksummed(self) -> bool:
        return self.chunk_format == FORMAT_V2


@dataclass(frozen=True)
class BlockDescriptor:
    """One entry of the metadata directory."""

    index: int
    num_entries: int
    min_t: int
    max_t: int
    data_offset: int
    data_length: int


@dataclass(frozen=True)
class MetadataDirectory:
    """Decoded metadata region with its checksums."""

    stored_checksum: int | None
    computed_checksum: int
    descriptors: tuple[BlockDescriptor, ...]

    @property
    def checksum_ok(self) -> bool:
        return self.stored_checksum is None or self.stored_checksum == self.computed_checksum


def load_body(stream: BinaryIO, data_length: int) -> ChunkBody:
    """Buffer the chunk body and validate its preamble.

    Raises:
        Truncated: If fewer than ``data_length`` bytes are available.
        BadMagic: If the body does not start with :data:`MAGIC`.
        UnknownCodec: If format/code do not select a codec.
    """
    data = read_exact(stream, data_length, "chunk body")
    if len(data) < PREAMBLE_SIZE:
        raise Truncated("chunk body preamble", PREAMBLE_SIZE, len(data))

    (magic,) = _U32.unpack_from(data, 0)
    if magic != MAGIC:
        raise BadMagic(magic)

    chunk_format, code = data[4], data[5]
    encoding = get_encoding(chunk_format, code)
    return ChunkBody(data=data, chunk_format=chunk_format, encoding=encoding)


def decode_directory(body: ChunkBody) -> MetadataDirectory:
    """Locate the metadata region from the trailer and decode all descriptors.

    A checksum mismatch is not an error here; callers compare
    ``stored_checksum`` and ``computed_checksum``.

    Raises:
        DirectoryDecodeError: If the trailer points outside the body or any
            descriptor cannot be decoded. Descriptors are only delimited by
            decoding the previous one, so nothing after a failure is usable.
    """
    data = body.data
    trailer_size = METADATA_OFFSET_SIZE + (CHECKSUM_SIZE if body.checksummed else 0)
    if len(data) < PREAMBLE_SIZE + trailer_size:
        raise DirectoryDecodeError(
            f"body of {len(data)} bytes is too short for a {trailer_size}-byte trailer"
        )

    (meta_offset,) = _U64.unpack_from(data, len(data) - METADATA_OFFSET_SIZE)
    region_end = len(data) - trailer_size
    if meta_offset < PREAMBLE_SIZE or meta_offset > region_end:
        raise DirectoryDecodeError(
            f"metadata offset {meta_offset} outside of [{PREAMBLE_SIZE}, {region_end}]"
        )

    region = memoryview(data)[meta_offset:region_end]
    computed = crc32c.crc32c(region)
    stored: int | None = None
    if body.checksummed:
        (stored,) = _U32.unpack_from(data, region_end)

    try:
        block_count, pos = read_uvarint(region, 0)
    except MalformedVarint as exc:
        raise DirectoryDecodeError(f"block count: {exc}") from exc

    descriptors: list[BlockDescriptor] = []
    for index in range(block_count):
        try:
            num_entries, pos = read_uvarint(region, pos)
            min_t, pos = read_varint(region, pos)
            max_t, pos = read_varint(region, pos)
            data_offset, pos = read_uvarint(region, pos)
            data_length, pos = read_uvarint(region, pos)
        except MalformedVarint as exc:
            raise DirectoryDecodeError(str(exc), block_index=index) from exc
        descriptors.append(
            BlockDescriptor(
                index=index,
                num_entries=num_entries,
                min_t=min_t,
                max_t=max_t,
                data_offset=data_offset,
                data_length=data_length,
            )
        )

    return MetadataDirectory(
        stored_checksum=stored,
        computed_checksum=computed,
        descriptors=tuple(descriptors),
    )


def decode_entries(data: bytes | memoryview) -> list[Entry]:
    """Decode a decompressed block into its entries.

    Each entry is a varint timestamp, a uvarint line length and the line
    bytes. Decoding runs until the buffer is used up; the entry count from
    the directory is not consulted.

    Raises:
        TruncatedEntry: If a varint is malformed or a line runs past the end
            of the buffer. ``entries`` on the exception holds what was
            decoded before.
    """
    entries: list[Entry] = []
    pos = 0
    end = len(data)
    while pos < end:
        entry_offset = pos
        try:
            timestamp, pos = read_varint(data, pos)
            line_length, pos = read_uvarint(data, pos)
        except MalformedVarint as exc:
            raise TruncatedEntry(entry_offset, exc.reason, entries) from exc

        if line_length > end - pos:
            raise TruncatedEntry(
                entry_offset,
                f"not enough line data, need {line_length}, got {end - pos}",
                entries,
            )
        line = bytes(data[pos : pos + line_length]).decode("utf-8", errors="replace")
        entries.append(Entry(timestamp=timestamp, line=line))
        pos += line_length
    return entries


def materialize_block(body: ChunkBody, descriptor: BlockDescriptor) -> Block:
    """Slice, checksum, decompress and decode one block.

    Failures that only concern this block (decompressor construction,
    decompression, entry decoding) are stored on :attr:`Block.error` instead
    of being raised, together with whatever could be decoded.

    Raises:
        DirectoryDecodeError: If the descriptor points outside the body.
    """
    data = body.data
    payload_end = descriptor.data_offset + descriptor.data_length
    limit = len(data) - (CHECKSUM_SIZE if body.checksummed else 0)
    if descriptor.data_offset < PREAMBLE_SIZE or payload_end > limit:
        raise DirectoryDecodeError(
            f"payload [{descriptor.data_offset}, {payload_end}) outside of the body",
            block_index=descriptor.index,
        )

    payload = PayloadView(buffer=data, offset=descriptor.data_offset, length=descriptor.data_length)
    compressed_digest = hashlib.sha256(payload.memoryview()).digest()
    computed_checksum = crc32c.crc32c(payload.memoryview())
    stored_checksum: int | None = None
    if body.checksummed:
        (stored_checksum,) = _U32.unpack_from(data, payload_end)

    uncompressed_digest: bytes | None = None
    uncompressed_length = 0
    entries: list[Entry] = []
    error: ChunkDecodeError | None = None
    try:
        with body.encoding.open(io.BytesIO(payload.memoryview())) as reader:
            decompressed = reader.read()
    except CodecInitError as exc:
        error = exc
    except DECOMPRESSION_ERRORS as exc:
        error = BlockDecodeError(descriptor.index, f"{body.encoding} decompression: {exc}")
        error.__cause__ = exc
    else:
        uncompressed_digest = hashlib.sha256(decompressed).digest()
        uncompressed_length = len(decompressed)
        try:
            entries = decode_entries(decompressed)
        except TruncatedEntry as exc:
            entries = exc.entries
            error = exc

    return Block(
        index=descriptor.index,
        num_entries=descriptor.num_entries,
        min_t=descriptor.min_t,
        max_t=descriptor.max_t,
        data_offset=descriptor.data_offset,
        data_length=descriptor.data_length,
        payload=payload,
        stored_checksum=stored_checksum,
        computed_checksum=computed_checksum,
        compressed_digest=compressed_digest,
        uncompressed_digest=uncompressed_digest,
        uncompressed_length=uncompressed_length,
        entries=tuple(entries),
        error=error,
    )


class LokiChunkDecoder:
    """Decoder for Loki chunk files."""

    def __init__(self, block_error_policy: BlockErrorPolicy | str = BlockErrorPolicy.ISOLATE) -> None:
        """Initialize the decoder.

        Args:
            block_error_policy: ``isolate`` keeps going after a block fails
                and records the failure on the block; ``abort`` raises it.
        """
        self.block_error_policy = BlockErrorPolicy(block_error_policy)

    def decode(self, stream: BinaryIO) -> tuple[ChunkHeader, DecodedChunk]:
        """Decode a complete chunk file from ``stream``.

        Returns:
            Tuple of (header, decoded chunk).

        Raises:
            ChunkDecodeError: If the header or any structural part of the
                body is invalid, or a block fails under the ``abort`` policy.
        """
        header = decode_header(stream)
        chunk = self.decode_body(stream, header.data_length)
        return header, chunk

    def decode_bytes(self, data: bytes) -> tuple[ChunkHeader, DecodedChunk]:
        """Decode a complete chunk held in memory."""
        return self.decode(io.BytesIO(data))

    def decode_file(self, path: Path | str) -> tuple[ChunkHeader, DecodedChunk]:
        """Open ``path`` and decode it.

        Raises:
            OSError: If the file cannot be opened.
            ChunkDecodeError: See :meth:`decode`.
        """
        with open(path, "rb") as fp:
            return self.decode(fp)

    def decode_body(self, stream: BinaryIO, data_length: int) -> DecodedChunk:
        """Decode a chunk body of ``data_length`` bytes from ``stream``."""
        body = load_body(stream, data_length)
        directory = decode_directory(body)

        warnings: list[ChunkDecodeError] = []
        if directory.stored_checksum is not None and not directory.checksum_ok:
            mismatch = ChecksumMismatch(
                "metadata", directory.stored_checksum, directory.computed_checksum
            )
            logger.warning("%s", mismatch)
            warnings.append(mismatch)

        blocks: list[Block] = []
        for descriptor in directory.descriptors:
            block = materialize_block(body, descriptor)
            if block.stored_checksum is not None and not block.checksum_ok:
                mismatch = ChecksumMismatch(
                    f"block {block.index}", block.stored_checksum, block.computed_checksum
                )
                logger.warning("%s", mismatch)
                warnings.append(mismatch)
            if block.error is not None:
                if self.block_error_policy is BlockErrorPolicy.ABORT:
                    raise block.error
                logger.warning(
                    "Block %d failed after %d entries: %s",
                    block.index,
                    len(block.entries),
                    block.error,
                )
                warnings.append(block.error)
            logger.debug(
                "Block %d: offset=%d stored=%d uncompressed=%d entries=%d",
                block.index,
                block.data_offset,
                block.data_length,
                block.uncompressed_length,
                len(block.entries),
            )
            blocks.append(block)

        chunk = DecodedChunk(
            encoding=body.encoding,
            chunk_format=body.chunk_format,
            metadata_checksum=directory.stored_checksum,
            computed_metadata_checksum=directory.computed_checksum,
            blocks=tuple(blocks),
            warnings=tuple(warnings),
        )
        logger.info(
            "Decoded chunk: encoding=%s blocks=%d entries=%d warnings=%d",
            chunk.encoding,
            len(chunk.blocks),
            sum(len(block.entries) for block in chunk.blocks),
            len(chunk.warnings),
        )
        return chunk

    def try_decode_for_diagnostics(
        self, data: bytes
    ) -> tuple[ChunkHeader | None, DecodedChunk | None, str | None]:
        """Best-effort decode of a chunk for diagnostics.

        Never raises. Blocks are always isolated, whatever the configured
        policy, so that as much as possible gets decoded.

        Returns:
            Tuple of:
                - decoded header or None if it could not be read;
                - decoded chunk or None if the body is structurally broken;
                - description of the first fatal error, or None.
        """
        stream = io.BytesIO(data)
        try:
            header = decode_header(stream)
        except ChunkDecodeError as exc:
            error_description = f"Failed to decode header: {exc}"
            logger.error(error_description, exc_info=True)
            return None, None, error_description

        isolating = LokiChunkDecoder(BlockErrorPolicy.ISOLATE)
        try:
            chunk = isolating.decode_body(stream, header.data_length)
        except ChunkDecodeError as exc:
            error_description = f"Failed to decode body at stream offset {stream.tell()}: {exc}"
            logger.error(error_description, exc_info=True)
            return header, None, error_description

        return header, chunk, None
