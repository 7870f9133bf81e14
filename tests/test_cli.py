"""Tests for the lokichunk command line."""

import gzip
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from lokichunk import cli
from tests.utils import BlockSpec, HeaderSpec, build_body, build_chunk, wrap_body, write_settings

if TYPE_CHECKING:
    from _pytest.capture import CaptureFixture
    from _pytest.logging import LogCaptureFixture


@pytest.fixture(autouse=True)
def _no_logging_setup(mocker) -> None:
    """Keep the CLI from reconfiguring the root logger during tests."""
    mocker.patch("lokichunk.cli.setup_logging")


def test_reports_single_file(chunk_file: Path, settings_path: Path, capsys: "CaptureFixture[str]") -> None:
    """A good file prints its report and exits with 0."""
    exit_code = cli.main([str(chunk_file), "--config", str(settings_path)])
    out = capsys.readouterr().out

    assert exit_code == 0
    assert f"Chunks file: {chunk_file}" in out
    assert "Found 2 block(s), use -b to show block details" in out
    assert "first line" not in out


def test_block_and_line_flags(chunk_file: Path, settings_path: Path, capsys: "CaptureFixture[str]") -> None:
    """-b and -l print block details and lines."""
    exit_code = cli.main(["-b", "-l", str(chunk_file), "--config", str(settings_path)])
    out = capsys.readouterr().out

    assert exit_code == 0
    assert "Block    1: position:" in out
    assert "\tthird line" in out


def test_broken_file_is_logged_and_others_continue(
    tmp_path: Path,
    chunk_file: Path,
    settings_path: Path,
    capsys: "CaptureFixture[str]",
    caplog: "LogCaptureFixture",
) -> None:
    """A broken file logs its error; the next file is still reported."""
    body = bytearray(build_body([BlockSpec(entries=[(1, "a")])]))
    body[0] ^= 0xFF
    broken = tmp_path / "broken.bin"
    broken.write_bytes(wrap_body(bytes(body)))

    with caplog.at_level("ERROR", logger="lokichunk.cli"):
        exit_code = cli.main([str(broken), str(chunk_file), "--config", str(settings_path)])
    out = capsys.readouterr().out

    assert exit_code == 1
    # The header of the broken file is still printed.
    assert f"Chunks file: {broken}" in out
    assert f"Chunks file: {chunk_file}" in out
    assert any("invalid magic number" in record.getMessage() for record in caplog.records)


def test_missing_file(tmp_path: Path, settings_path: Path, caplog: "LogCaptureFixture") -> None:
    """A file that cannot be opened is an error, not a crash."""
    missing = tmp_path / "missing.bin"
    with caplog.at_level("ERROR", logger="lokichunk.cli"):
        assert cli.main([str(missing), "--config", str(settings_path)]) == 1
    assert str(missing) in caplog.text


@pytest.mark.parametrize(("policy", "expected_exit"), [("isolate", 0), ("abort", 1)])
def test_block_error_policy_from_settings(
    tmp_path: Path, policy: str, expected_exit: int, capsys: "CaptureFixture[str]"
) -> None:
    """The block error policy comes from the settings file."""
    data = build_chunk([BlockSpec(payload=gzip.compress(b"x")[:-6])], code=1)
    path = tmp_path / "chunk.bin"
    path.write_bytes(data)
    config = write_settings(tmp_path, policy=policy)

    assert cli.main([str(path), "-b", "--config", str(config)]) == expected_exit
    if policy == "isolate":
        assert "error: failed to decode block 0" in capsys.readouterr().out


def test_bad_config(tmp_path: Path, capsys: "CaptureFixture[str]") -> None:
    """An unreadable configuration exits with 2."""
    assert cli.main(["x.bin", "--config", str(tmp_path / "nope.toml")]) == 2
    assert "is missing" in capsys.readouterr().err


def test_out_of_range_header_time_is_logged(
    tmp_path: Path,
    chunk_file: Path,
    settings_path: Path,
    capsys: "CaptureFixture[str]",
    caplog: "LogCaptureFixture",
) -> None:
    """A header time beyond the datetime range fails only its own file."""
    far = tmp_path / "far.bin"
    far.write_bytes(
        build_chunk([BlockSpec(entries=[(1, "a")])], header=HeaderSpec(from_ms=0, through_ms=2**62))
    )

    with caplog.at_level("ERROR", logger="lokichunk.cli"):
        exit_code = cli.main([str(far), str(chunk_file), "--config", str(settings_path)])

    assert exit_code == 1
    assert f"{far}: malformed header field 'through'" in caplog.text
    assert f"Chunks file: {chunk_file}" in capsys.readouterr().out
