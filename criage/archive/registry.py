# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Codec Registry

Single responsibility: Map format names and filenames to archive codecs
"""

from typing import Dict, List, Optional

from criage.core.errors import ArchiveError

from .base import ArchiveCodec
from .tar import TarCodec, TarGzCodec
from .zip import ZipCodec

DEFAULT_FORMAT = "tar.gz"

_ALIASES = {
    "tgz": "tar.gz",
    "targz": "tar.gz",
    "criage": "tar.gz",
}


class CodecRegistry:
    """Lookup of archive codecs by format name or filename"""

    def __init__(self, codecs: Optional[List[ArchiveCodec]] = None):
        if codecs is None:
            codecs = [TarGzCodec(), TarCodec(), ZipCodec()]
        self._codecs: Dict[str, ArchiveCodec] = {codec.name: codec for codec in codecs}

    def formats(self) -> List[str]:
        return list(self._codecs)

    def get(self, format_name: str) -> ArchiveCodec:
        """
        Codec for a format name such as ``tar.gz``, ``tgz`` or ``zip``.

        Raises:
            ArchiveError: If the format is unknown
        """
        key = (format_name or DEFAULT_FORMAT).lower().lstrip(".")
        key = _ALIASES.get(key, key)
        codec = self._codecs.get(key)
        if codec is None:
            raise ArchiveError(
                f"Unsupported archive format: {format_name}",
                details={"supported": self.formats()}
            )
        return codec

    def for_filename(self, filename: str) -> ArchiveCodec:
        """Codec whose extension matches ``filename``."""
        # Longest extension first so "x.tar.gz" is not taken for plain tar
        for codec in sorted(self._codecs.values(), key=lambda c: len(c.extension), reverse=True):
            if codec.matches(filename):
                return codec
        raise ArchiveError(f"Cannot determine archive format of {filename}")

    def select(self, format_name: Optional[str], filename: str) -> ArchiveCodec:
        """Prefer the declared format, fall back to the filename."""
        if format_name:
            try:
                return self.get(format_name)
            except ArchiveError:
                pass
        return self.for_filename(filename)
