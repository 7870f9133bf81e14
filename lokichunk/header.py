"""Decoder for the header frame in front of a Loki chunk body.

Layout:

* 4 bytes, big-endian: metadata length, counting these 4 bytes;
* metadata length - 4 bytes: snappy-framed JSON describing the series;
* 4 bytes, big-endian: length of the chunk body that follows.
"""

from __future__ import annotations

import json
import logging
import struct
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any, BinaryIO

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from lokichunk.compression import DECOMPRESSION_ERRORS, ENC_SNAPPY
from lokichunk.exceptions import CodecInitError, MalformedField
from lokichunk.models import ChunkHeader, Label
from lokichunk.utils.date_utils import MAX_MILLIS, MIN_MILLIS
from lokichunk.utils.io_utils import read_exact

logger = logging.getLogger(__name__)

_LENGTH = struct.Struct(">I")


def _in_date_range(millis: int) -> int:
    if not MIN_MILLIS <= millis <= MAX_MILLIS:
        raise ValueError(f"timestamp {millis}ms is outside of the representable date range")
    return millis


def parse_model_time(value: Any) -> int:
    """Convert a JSON timestamp in decimal seconds to unix milliseconds.

    Digits beyond millisecond precision are truncated, e.g. ``1.2345`` is
    ``1234`` and ``-0.1`` is ``-100``.
    """
    if isinstance(value, bool):
        raise ValueError("expected a number of seconds, got a boolean")
    if isinstance(value, int):
        return _in_date_range(value * 1000)
    if isinstance(value, (Decimal, float, str)):
        try:
            seconds = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"invalid timestamp {value!r}") from exc
        if not seconds.is_finite():
            raise ValueError(f"invalid timestamp {value!r}")
        return _in_date_range(int((seconds * 1000).to_integral_value(rounding=ROUND_DOWN)))
    raise ValueError(f"expected a number of seconds, got {type(value).__name__}")


class HeaderPayload(BaseModel):
    """JSON document stored in the header frame."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    fingerprint: int | None = None
    user_id: str = Field(alias="userID")
    from_ms: int = Field(alias="from")
    through_ms: int = Field(alias="through")
    metric: dict[str, str] = Field(default_factory=dict)
    encoding: int | None = None

    @field_validator("from_ms", "through_ms", mode="before")
    @classmethod
    def _parse_time(cls, value: Any) -> int:
        return parse_model_time(value)

    @model_validator(mode="after")
    def _check_range(self) -> "HeaderPayload":
        if self.from_ms > self.through_ms:
            raise ValueError(f"from ({self.from_ms}) is after through ({self.through_ms})")
        return self


def _field_name(exc: ValidationError) -> str:
    errors = exc.errors()
    if errors and errors[0].get("loc"):
        return ".".join(str(part) for part in errors[0]["loc"])
    return "metadata"


def decode_header_metadata(raw: bytes) -> HeaderPayload:
    """Decompress and validate the JSON part of the header.

    Raises:
        MalformedField: If the bytes are not snappy-framed JSON of the
            expected shape.
    """
    try:
        document = ENC_SNAPPY.decompress(raw)
    except (CodecInitError, *DECOMPRESSION_ERRORS) as exc:
        raise MalformedField("metadata", f"snappy: {exc}") from exc

    try:
        parsed = json.loads(document.decode("utf-8"), parse_float=Decimal)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedField("metadata", f"json: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedField("metadata", f"expected a JSON object, got {type(parsed).__name__}")

    try:
        return HeaderPayload.model_validate(parsed)
    except ValidationError as exc:
        raise MalformedField(_field_name(exc), str(exc.errors()[0]["msg"])) from exc


def decode_header(stream: BinaryIO) -> ChunkHeader:
    """Decode the header frame and leave ``stream`` at the first body byte.

    Args:
        stream: Binary stream positioned at the start of a chunk file.

    Returns:
        Decoded header.

    Raises:
        Truncated: If the stream ends inside the header frame.
        MalformedField: If a field cannot be decoded.
    """
    (metadata_length,) = _LENGTH.unpack(read_exact(stream, 4, "metadata length"))
    if metadata_length < _LENGTH.size:
        raise MalformedField(
            "metadataLength", f"{metadata_length} is smaller than the length field itself"
        )

    raw = read_exact(stream, metadata_length - _LENGTH.size, "header metadata")
    payload = decode_header_metadata(raw)

    (data_length,) = _LENGTH.unpack(read_exact(stream, 4, "data length"))

    header = ChunkHeader(
        user_id=payload.user_id,
        labels=tuple(Label(name, value) for name, value in sorted(payload.metric.items())),
        from_ms=payload.from_ms,
        through_ms=payload.through_ms,
        metadata_length=metadata_length,
        data_length=data_length,
        fingerprint=payload.fingerprint,
        encoding=payload.encoding,
    )
    logger.debug(
        "Decoded chunk header: user=%s labels=%d metadata_length=%d data_length=%d",
        header.user_id,
        len(header.labels),
        header.metadata_length,
        header.data_length,
    )
    return header
