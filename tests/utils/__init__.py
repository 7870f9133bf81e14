"""Общие вспомогательные функции для модульных тестов."""

from __future__ import annotations

from pathlib import Path

from .api import api_path
from .chunk_builder import (
    BlockSpec,
    HeaderSpec,
    build_body,
    build_chunk,
    build_header,
    compress,
    encode_entries,
    encode_metadata,
    encode_uvarint,
    encode_varint,
    snappy_frame,
    wrap_body,
)

__all__ = [
    "api_path",
    "write_settings",
    "BlockSpec",
    "HeaderSpec",
    "build_body",
    "build_chunk",
    "build_header",
    "compress",
    "encode_entries",
    "encode_metadata",
    "encode_uvarint",
    "encode_varint",
    "snappy_frame",
    "wrap_body",
]

SETTINGS_TEMPLATE = """\
[server]
host = "127.0.0.1"
port = 8085
debug = false

[decoder]
block_error_policy = "{policy}"

[report]
timezone = "{timezone}"

[storage]
bad_chunks_dir = "{bad_chunks_dir}"

[logging]
log_dir = "{log_dir}"
"""


def write_settings(
    directory: Path,
    policy: str = "isolate",
    timezone: str = "UTC",
) -> Path:
    """Записать settings.toml во временный каталог и вернуть путь к нему."""

    path = directory / "settings.toml"
    path.write_text(
        SETTINGS_TEMPLATE.format(
            policy=policy,
            timezone=timezone,
            bad_chunks_dir=(directory / "bad_chunks").as_posix(),
            log_dir=(directory / "logs").as_posix(),
        ),
        encoding="utf-8",
    )
    return path
