"""Pydantic schemas for API requests and responses."""

from lokichunk.schemas.chunk import BlockResponse, ChunkReport, EntryResponse, LabelResponse

__all__ = [
    "BlockResponse",
    "ChunkReport",
    "EntryResponse",
    "LabelResponse",
]
