"""Command line entry point: print a report for each chunk file given."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import tzinfo
from pathlib import Path
from typing import Sequence, TextIO

from lokichunk import __version__
from lokichunk.binary_chunk_decoder import LokiChunkDecoder
from lokichunk.config import Settings, SettingsError, get_settings, load_settings
from lokichunk.exceptions import ChunkDecodeError
from lokichunk.header import decode_header
from lokichunk.logging_config import setup_logging
from lokichunk.report import render_chunk, render_header

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lokichunk",
        description="Decode Loki chunk files and print what they contain.",
    )
    parser.add_argument("files", nargs="+", type=Path, metavar="FILE", help="chunk file to inspect")
    parser.add_argument("-b", dest="blocks", action="store_true", help="print block details")
    parser.add_argument("-l", dest="lines", action="store_true", help="print log lines")
    parser.add_argument("--config", type=Path, default=None, help="path to settings.toml")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def report_file(
    path: Path,
    decoder: LokiChunkDecoder,
    tz: tzinfo,
    block_details: bool = False,
    print_lines: bool = False,
    out: TextIO | None = None,
) -> bool:
    """Decode ``path`` and print its report.

    The header part is printed as soon as it is decoded, so a broken body
    still shows which series the file belongs to.

    Returns:
        True if the file was decoded, False if an error was logged instead.
    """
    out = out or sys.stdout
    try:
        with path.open("rb") as fp:
            file_size = os.fstat(fp.fileno()).st_size
            header = decode_header(fp)
            print("\n".join(render_header(str(path), header, tz)), file=out)
            chunk = decoder.decode_body(fp, header.data_length)
    except (OSError, ChunkDecodeError) as exc:
        logger.error("%s: %s", path, exc)
        return False

    print("\n".join(render_chunk(chunk, file_size, tz, block_details, print_lines)), file=out)
    return True


def _load(config_path: Path | None) -> Settings:
    if config_path is not None:
        return load_settings(config_path)
    return get_settings()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = _load(args.config)
    except SettingsError as exc:
        print(f"lokichunk: {exc}", file=sys.stderr)
        return 2

    setup_logging(debug=args.debug or settings.debug)

    decoder = LokiChunkDecoder(settings.block_error_policy)
    failures = 0
    for path in args.files:
        if not report_file(path, decoder, settings.timezone, args.blocks, args.lines):
            failures += 1
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
