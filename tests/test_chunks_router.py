"""Tests for the chunk decoding API."""

from collections.abc import Generator
from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient

from lokichunk import __version__
from lokichunk.config import Settings, get_settings, load_settings
from lokichunk.main import create_app
from tests.utils import (
    BlockSpec,
    HeaderSpec,
    api_path,
    build_body,
    build_chunk,
    wrap_body,
    write_settings,
)

if TYPE_CHECKING:
    from _pytest.logging import LogCaptureFixture


@pytest.fixture(scope="function")
def client(settings: Settings) -> Generator[TestClient, None, None]:
    """Create a test client bound to the temporary settings."""
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    # No context manager: the lifespan would configure the real log directory.
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_decode_summary(client: TestClient, two_block_chunk: bytes) -> None:
    """A good chunk returns its summary without block details."""
    response = client.post(api_path("/chunks/decode"), content=two_block_chunk)
    assert response.status_code == 200

    data = response.json()
    assert data["user_id"] == "fake"
    assert data["labels"] == [
        {"name": "filename", "value": "/var/log/syslog"},
        {"name": "job", "value": "varlogs"},
    ]
    assert data["encoding"] == "gzip"
    assert data["chunk_format"] == 2
    assert data["metadata_checksum_ok"] is True
    assert data["block_count"] == 2
    assert data["entry_count"] == 3
    assert data["warnings"] == []
    assert data["blocks"] is None
    assert data["from_time"].startswith("2020-01-01T00:00:00")


def test_decode_with_blocks_and_lines(client: TestClient, two_block_chunk: bytes) -> None:
    """Query flags add block details and log lines."""
    response = client.post(
        api_path("/chunks/decode"),
        params={"blocks": "true", "lines": "true"},
        content=two_block_chunk,
    )
    assert response.status_code == 200

    blocks = response.json()["blocks"]
    assert [block["index"] for block in blocks] == [0, 1]
    assert blocks[0]["num_entries"] == 2
    assert blocks[0]["decoded_entries"] == 2
    assert blocks[0]["checksum_ok"] is True
    assert blocks[0]["error"] is None
    # Lines are returned exactly as stored.
    assert [entry["line"] for entry in blocks[0]["entries"]] == ["first line", "second line "]
    assert blocks[1]["entries"][0]["timestamp"] == 3_000


def test_blocks_without_lines(client: TestClient, two_block_chunk: bytes) -> None:
    """Block details alone leave entries out."""
    response = client.post(
        api_path("/chunks/decode"), params={"blocks": "true"}, content=two_block_chunk
    )
    blocks = response.json()["blocks"]
    assert all(block["entries"] is None for block in blocks)


def test_checksum_mismatch_is_a_warning(client: TestClient) -> None:
    """A bad block checksum still decodes and is listed under warnings."""
    data = build_chunk([BlockSpec(entries=[(1, "a")], stored_checksum=0xDEADBEEF)])
    response = client.post(api_path("/chunks/decode"), content=data)
    assert response.status_code == 200
    body = response.json()
    assert len(body["warnings"]) == 1
    assert "checksum mismatch" in body["warnings"][0]


def test_empty_body(client: TestClient) -> None:
    """An empty upload is a client error."""
    response = client.post(api_path("/chunks/decode"), content=b"")
    assert response.status_code == 400
    assert response.json()["detail"] == "Empty chunk"


def test_undecodable_chunk_is_persisted(
    client: TestClient, settings: Settings, caplog: "LogCaptureFixture"
) -> None:
    """A broken chunk is answered with 422 and saved for later analysis."""
    body = bytearray(build_body([BlockSpec(entries=[(1, "a")])]))
    body[0] ^= 0xFF
    data = wrap_body(bytes(body))

    with caplog.at_level("ERROR", logger="lokichunk.routers.chunks"):
        response = client.post(
            api_path("/chunks/decode"),
            content=data,
            headers={"X-Chunk-Name": "tenant/app"},
        )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error_type"] == "BadMagic"
    assert "invalid magic number" in detail["error"]

    saved = list(settings.bad_chunks_dir.glob("tenant_app_*.bin"))
    assert len(saved) == 1
    assert saved[0].read_bytes() == data
    assert detail["persisted_path"] == str(saved[0])
    assert "Failed to decode chunk tenant/app" in caplog.text


def test_abort_policy_rejects_broken_block(tmp_path) -> None:
    """Under the abort policy a bad block fails the whole request."""
    settings = load_settings(write_settings(tmp_path, policy="abort"))
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    client = TestClient(app)

    data = build_chunk([BlockSpec(payload=b"\x1f\x8bbroken")], code=1)
    response = client.post(api_path("/chunks/decode"), content=data)

    assert response.status_code == 422
    assert response.json()["detail"]["error_type"] == "BlockDecodeError"


def test_app_info(client: TestClient) -> None:
    """The info endpoint lists the version and codecs."""
    response = client.get(api_path("/info"))
    assert response.status_code == 200
    assert response.json() == {
        "name": "lokichunk",
        "version": __version__,
        "encodings": ["none", "gzip", "dumb", "lz4", "snappy"],
    }


def test_out_of_range_header_time_is_unprocessable(client: TestClient) -> None:
    """A header time a datetime cannot hold is a decode error, not a crash."""
    data = build_chunk([BlockSpec(entries=[(1, "a")])], header=HeaderSpec(from_ms=0, through_ms=2**62))
    response = client.post(api_path("/chunks/decode"), content=data)

    assert response.status_code == 422
    assert response.json()["detail"]["error_type"] == "MalformedField"
