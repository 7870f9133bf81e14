"""Общие pytest-фикстуры для тестов lokichunk."""

from __future__ import annotations

from pathlib import Path

import pytest

from lokichunk.config import Settings, load_settings
from tests.utils import BlockSpec, build_chunk, write_settings


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    """settings.toml во временном каталоге с политикой isolate."""

    return write_settings(tmp_path)


@pytest.fixture
def settings(settings_path: Path) -> Settings:
    """Загруженные тестовые настройки."""

    return load_settings(settings_path)


@pytest.fixture
def two_block_chunk() -> bytes:
    """Чанк формата 2 с gzip и двумя блоками."""

    return build_chunk(
        [
            BlockSpec(entries=[(1_000, "first line"), (2_000, "second line ")]),
            BlockSpec(entries=[(3_000, "third line")]),
        ],
        code=1,
    )


@pytest.fixture
def chunk_file(tmp_path: Path, two_block_chunk: bytes) -> Path:
    """Файл чанка на диске."""

    path = tmp_path / "chunk.bin"
    path.write_bytes(two_block_chunk)
    return path
