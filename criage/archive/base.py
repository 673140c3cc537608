# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Archive codec interface

A codec packs a directory tree into a single archive file and unpacks such
a file into a directory. Entries are stored relative to the packed root.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Optional, Tuple


class ArchiveCodec(ABC):
    """Packs and unpacks one archive format"""

    #: Canonical format name, e.g. ``tar.gz``
    name: str = ""
    #: File extension without the leading dot
    extension: str = ""

    @abstractmethod
    def pack(self, source_dir: Path, output_path: Path, compression_level: Optional[int] = None) -> Path:
        """
        Pack every file below ``source_dir`` into ``output_path``.

        Raises:
            ArchiveError: If the archive cannot be written
        """

    @abstractmethod
    def unpack(self, archive_path: Path, dest_dir: Path) -> Path:
        """
        Unpack ``archive_path`` into ``dest_dir``.

        Entries that would land outside ``dest_dir`` are rejected.

        Raises:
            ArchiveError: If the archive is corrupt or unsafe
        """

    def matches(self, filename: str) -> bool:
        return filename.lower().endswith("." + self.extension)


def walk_files(source_dir: Path, exclude: Optional[Path] = None) -> Iterator[Tuple[Path, str]]:
    """
    (absolute path, archive name) of every regular file below ``source_dir``.

    Yields in sorted order so archives are reproducible. ``exclude`` skips
    one file, typically the archive being written inside the tree.
    """
    source_dir = Path(source_dir)
    excluded = exclude.resolve() if exclude else None

    for path in sorted(source_dir.rglob("*")):
        if not path.is_file():
            continue
        if excluded is not None and path.resolve() == excluded:
            continue
        yield path, path.relative_to(source_dir).as_posix()


def is_within(dest_dir: Path, member_name: str) -> bool:
    """Whether ``member_name`` extracts to a location inside ``dest_dir``."""
    root = Path(dest_dir).resolve()
    target = (root / member_name).resolve()
    return target == root or root in target.parents
