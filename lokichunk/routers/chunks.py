"""Router for decoding uploaded chunk files."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from lokichunk.binary_chunk_decoder import LokiChunkDecoder
from lokichunk.config import Settings, get_settings
from lokichunk.exceptions import ChunkDecodeError
from lokichunk.schemas.chunk import ChunkReport

logger = logging.getLogger(__name__)

router = APIRouter()


def _persist_and_log_bad_chunk(
    decoder: LokiChunkDecoder,
    binary_data: bytes,
    bad_chunks_dir: Path,
    chunk_name: Optional[str],
    error: Exception,
) -> Optional[str]:
    """Save an undecodable chunk and log a diagnostic decode of it.

    Args:
        decoder: Decoder used for the failed attempt.
        binary_data: Raw bytes of the uploaded chunk.
        bad_chunks_dir: Directory for persisted chunks.
        chunk_name: Client supplied name from ``X-Chunk-Name``, if any.
        error: The decode failure.

    Returns:
        Path of the saved file as a string, or ``None`` if it could not be saved.
    """
    name_for_error = chunk_name or "unknown"

    chunk_path: Optional[Path] = None
    try:
        bad_chunks_dir.mkdir(parents=True, exist_ok=True)
        timestamp_suffix = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        safe_name = name_for_error.replace("/", "_").replace("\\", "_")
        chunk_path = bad_chunks_dir / f"{safe_name}_{timestamp_suffix}.bin"
        chunk_path.write_bytes(binary_data)
    except OSError as persist_exc:
        logger.error(
            "Failed to persist undecodable chunk %s: %s",
            name_for_error,
            persist_exc,
            exc_info=True,
        )
        chunk_path = None

    # Diagnostic decode: find out how far the structure is readable.
    diag_header, diag_chunk, diag_error = decoder.try_decode_for_diagnostics(binary_data)

    logger.error(
        (
            "Failed to decode chunk %s: %s; diagnostics: header=%r, decoded_blocks=%s, "
            "diag_error=%r, persisted_path=%s"
        ),
        name_for_error,
        error,
        diag_header,
        len(diag_chunk.blocks) if diag_chunk is not None else None,
        diag_error,
        str(chunk_path) if chunk_path is not None else None,
    )

    return str(chunk_path) if chunk_path is not None else None


@router.post("/chunks/decode", response_model=ChunkReport)
async def decode_chunk(
    request: Request,
    blocks: bool = Query(False, description="Include block details"),
    lines: bool = Query(False, description="Include decoded log lines"),
    x_chunk_name: Optional[str] = Header(None, alias="X-Chunk-Name"),
    settings: Settings = Depends(get_settings),
) -> ChunkReport:
    """Decode a raw chunk file sent as the request body.

    Returns:
        The decoded chunk summary. Undecodable chunks are stored under the
        configured bad-chunk directory and answered with 422.
    """
    binary_data = await request.body()
    if not binary_data:
        logger.error("Received empty chunk")
        raise HTTPException(status_code=400, detail="Empty chunk")

    decoder = LokiChunkDecoder(settings.block_error_policy)
    try:
        header, chunk = decoder.decode_bytes(binary_data)
    except ChunkDecodeError as exc:
        persisted_path = _persist_and_log_bad_chunk(
            decoder=decoder,
            binary_data=binary_data,
            bad_chunks_dir=settings.bad_chunks_dir,
            chunk_name=x_chunk_name,
            error=exc,
        )
        raise HTTPException(
            status_code=422,
            detail={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "persisted_path": persisted_path,
            },
        ) from exc

    logger.info(
        "Decoded chunk %s: user=%s blocks=%d warnings=%d",
        x_chunk_name or "unknown",
        header.user_id,
        len(chunk.blocks),
        len(chunk.warnings),
    )
    return ChunkReport.from_decoded(
        header,
        chunk,
        include_blocks=blocks,
        include_lines=lines,
        tz=settings.timezone,
    )
