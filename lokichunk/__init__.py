"""Decoder and inspector for Loki log chunk files."""

from common.versioning import get_package_version

__version__ = get_package_version("lokichunk")
