"""Human-readable text report of a decoded chunk."""

from __future__ import annotations

from datetime import timezone, tzinfo

from lokichunk.models import Block, ChunkHeader, DecodedChunk
from lokichunk.utils.date_utils import (
    format_duration,
    format_timestamp,
    from_unix_millis,
    from_unix_nanos,
)


def format_checksum(stored: int | None, computed: int) -> str:
    """Render a stored/computed checksum pair as ``OK``/``BAD``."""
    if stored is None:
        return f"none (computed: {computed:08x})"
    if stored == computed:
        return f"{stored:08x} OK"
    return f"{stored:08x} BAD (computed: {computed:08x})"


def _metadata_checksum_line(chunk: DecodedChunk) -> str:
    stored = chunk.metadata_checksum
    computed = chunk.computed_metadata_checksum
    if stored is None:
        return f"Blocks Metadata Checksum: none, computed checksum: {computed:08x}"
    if stored == computed:
        return f"Blocks Metadata Checksum: {stored:08x} OK"
    return f"Blocks Metadata Checksum: {stored:08x} BAD, computed checksum: {computed:08x}"


def _block_lines(block: Block, tz: tzinfo) -> list[str]:
    min_t = format_timestamp(from_unix_nanos(block.min_t, tz))
    max_t = format_timestamp(from_unix_nanos(block.max_t, tz))
    uncompressed_digest = block.uncompressed_digest.hex() if block.uncompressed_digest else "-"
    lines = [
        f"Block {block.index:4d}: position: {block.data_offset:8d}, "
        f"original length: {block.uncompressed_length:6d} "
        f"(stored: {block.data_length:6d}, ratio: {block.compression_ratio:.2f}), "
        f"minT: {min_t} maxT: {max_t}, "
        f"checksum: {format_checksum(block.stored_checksum, block.computed_checksum)}",
        f"Block {block.index:4d}: digest compressed: {block.compressed_digest.hex()}, "
        f"uncompressed: {uncompressed_digest}",
    ]
    if not block.entry_count_matches:
        lines.append(
            f"Block {block.index:4d}: declared entries: {block.num_entries}, "
            f"decoded: {len(block.entries)}"
        )
    if not block.bounds_consistent:
        lines.append(f"Block {block.index:4d}: entries outside of [minT, maxT]")
    if block.error is not None:
        lines.append(f"Block {block.index:4d}: error: {block.error}")
    return lines


def render_header(filename: str, header: ChunkHeader, tz: tzinfo = timezone.utc) -> list[str]:
    """Render the series part of the report."""
    start = from_unix_millis(header.from_ms, tz)
    end = from_unix_millis(header.through_ms, tz)
    lines = [
        "",
        f"Chunks file: {filename}",
        f"Metadata length: {header.metadata_length}",
        f"Data length: {header.data_length}",
        f"UserID: {header.user_id}",
        f"From: {format_timestamp(start)}",
        f"Through: {format_timestamp(end)} ({format_duration(end - start)})",
        "Labels:",
    ]
    lines.extend(f"\t {label.name} = {label.value}" for label in header.labels)
    return lines


def render_chunk(
    chunk: DecodedChunk,
    file_size: int,
    tz: tzinfo = timezone.utc,
    block_details: bool = False,
    print_lines: bool = False,
) -> list[str]:
    """Render encoding, checksums, blocks and optionally every log line."""
    lines = [f"Encoding: {chunk.encoding}", _metadata_checksum_line(chunk)]
    if block_details:
        lines.append(f"Found {len(chunk.blocks)} block(s)")
        lines.append("")
    else:
        lines.append(f"Found {len(chunk.blocks)} block(s), use -b to show block details")

    for block in chunk.blocks:
        if block_details:
            lines.extend(_block_lines(block, tz))
        if print_lines:
            for entry in block.entries:
                timestamp = format_timestamp(from_unix_nanos(entry.timestamp, tz))
                lines.append(f"{timestamp}\t{entry.line.strip()}")

    total = chunk.total_uncompressed_length
    ratio = total / file_size if file_size else 0.0
    lines.append(
        f"Total size of uncompressed data: {total} file size: {file_size} ratio: {ratio:.3g}"
    )
    return lines


def render_report(
    filename: str,
    header: ChunkHeader,
    chunk: DecodedChunk,
    file_size: int,
    tz: tzinfo = timezone.utc,
    block_details: bool = False,
    print_lines: bool = False,
) -> str:
    """Render the full text report for one chunk file."""
    lines = render_header(filename, header, tz)
    lines.extend(render_chunk(chunk, file_size, tz, block_details, print_lines))
    return "\n".join(lines)
