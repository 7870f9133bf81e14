"""Registry of block compression codecs.

A chunk selects its codec with two bytes following the magic number:
``format`` and ``code``. Format 1 chunks are always gzip; format 2 chunks
look ``code`` up in :data:`ENCODINGS`.
"""

from __future__ import annotations

import gzip
import io
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Callable

import lz4.frame
import snappy

from lokichunk.exceptions import CodecInitError, UnknownCodec

FORMAT_V1 = 1  # gzip only, no checksums
FORMAT_V2 = 2  # codec selected by code, CRC32C checksums

GZIP_MAGIC = b"\x1f\x8b"

# Exceptions the decompressors raise on corrupt or truncated input.
DECOMPRESSION_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    EOFError,
    RuntimeError,
    zlib.error,
    snappy.UncompressError,
)


class SnappyStreamReader(io.RawIOBase):
    """Readable stream over snappy framing-format compressed data."""

    def __init__(self, source: BinaryIO, read_size: int = 64 * 1024) -> None:
        super().__init__()
        self._source = source
        self._read_size = read_size
        self._decompressor = snappy.StreamDecompressor()
        self._pending = b""
        self._eof = False

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[override]
        while not self._pending and not self._eof:
            compressed = self._source.read(self._read_size)
            if not compressed:
                # Raises UncompressError if the stream stopped mid-frame.
                self._decompressor.flush()
                self._eof = True
                break
            self._pending = self._decompressor.decompress(compressed)

        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size


def _open_identity(source: BinaryIO) -> BinaryIO:
    return source


def _open_gzip(source: BinaryIO) -> BinaryIO:
    start = source.tell()
    magic = source.read(len(GZIP_MAGIC))
    source.seek(start)
    if magic != GZIP_MAGIC:
        raise CodecInitError("gzip", f"invalid header {magic.hex() or '<empty>'}")
    return gzip.GzipFile(fileobj=source, mode="rb")


def _open_lz4(source: BinaryIO) -> BinaryIO:
    return lz4.frame.LZ4FrameFile(source, mode="rb")


def _open_snappy(source: BinaryIO) -> BinaryIO:
    return io.BufferedReader(SnappyStreamReader(source))


@dataclass(frozen=True)
class Encoding:
    """A named codec able to build a decompressing stream."""

    code: int
    name: str
    opener: Callable[[BinaryIO], BinaryIO]

    def __str__(self) -> str:
        return self.name

    def open(self, source: BinaryIO) -> BinaryIO:
        """Wrap ``source`` in a decompressing reader.

        Raises:
            CodecInitError: If the decompressor cannot even be constructed.
        """
        try:
            return self.opener(source)
        except CodecInitError:
            raise
        except DECOMPRESSION_ERRORS as exc:
            raise CodecInitError(self.name, str(exc)) from exc

    def decompress(self, payload: bytes | memoryview) -> bytes:
        """Decompress a whole payload.

        Raises:
            CodecInitError: If the decompressor cannot be constructed.
            Any of :data:`DECOMPRESSION_ERRORS`: If the payload is corrupt.
        """
        with self.open(io.BytesIO(payload)) as reader:
            return reader.read()


ENC_NONE = Encoding(code=0, name="none", opener=_open_identity)
ENC_GZIP = Encoding(code=1, name="gzip", opener=_open_gzip)
ENC_DUMB = Encoding(code=2, name="dumb", opener=_open_identity)
ENC_LZ4 = Encoding(code=3, name="lz4", opener=_open_lz4)
ENC_SNAPPY = Encoding(code=4, name="snappy", opener=_open_snappy)

ENCODINGS: tuple[Encoding, ...] = (ENC_NONE, ENC_GZIP, ENC_DUMB, ENC_LZ4, ENC_SNAPPY)

_BY_CODE: dict[int, Encoding] = {encoding.code: encoding for encoding in ENCODINGS}


def get_encoding(chunk_format: int, code: int) -> Encoding:
    """Resolve the codec selected by a chunk's format and code bytes.

    Raises:
        UnknownCodec: For an unknown format, or an unknown code under format 2.
    """
    if chunk_format == FORMAT_V1:
        return ENC_GZIP
    if chunk_format == FORMAT_V2:
        encoding = _BY_CODE.get(code)
        if encoding is None:
            raise UnknownCodec(chunk_format, code)
        return encoding
    raise UnknownCodec(chunk_format, code)
