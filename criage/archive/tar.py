# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""Tar based codecs (plain and gzip-compressed)."""

import logging
import tarfile
from pathlib import Path
from typing import Optional

from criage.core.errors import ArchiveError

from .base import ArchiveCodec, walk_files

logger = logging.getLogger(__name__)

DEFAULT_GZIP_LEVEL = 6


class TarCodec(ArchiveCodec):
    """Uncompressed tar"""

    name = "tar"
    extension = "tar"
    write_mode = "w"
    read_mode = "r:"

    def _open_for_write(self, output_path: Path, compression_level: Optional[int]) -> tarfile.TarFile:
        return tarfile.open(output_path, self.write_mode)

    def pack(self, source_dir: Path, output_path: Path, compression_level: Optional[int] = None) -> Path:
        source_dir = Path(source_dir)
        output_path = Path(output_path)
        if not source_dir.is_dir():
            raise ArchiveError(f"Source directory does not exist: {source_dir}")

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with self._open_for_write(output_path, compression_level) as tar:
                for path, arcname in walk_files(source_dir, exclude=output_path):
                    tar.add(path, arcname=arcname, recursive=False)
        except (OSError, tarfile.TarError) as e:
            output_path.unlink(missing_ok=True)
            raise ArchiveError(f"Failed to create {self.name} archive {output_path}: {e}") from e

        logger.debug(f"Packed {source_dir} into {output_path}")
        return output_path

    def unpack(self, archive_path: Path, dest_dir: Path) -> Path:
        dest_dir = Path(dest_dir)
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            with tarfile.open(archive_path, self.read_mode) as tar:
                # "data" rejects absolute paths, parent traversal and special files
                tar.extractall(dest_dir, filter="data")
        except (OSError, tarfile.TarError) as e:
            raise ArchiveError(f"Failed to extract {archive_path}: {e}") from e

        logger.debug(f"Unpacked {archive_path} into {dest_dir}")
        return dest_dir


class TarGzCodec(TarCodec):
    """Gzip-compressed tar, the default package format"""

    name = "tar.gz"
    extension = "tar.gz"
    write_mode = "w:gz"
    read_mode = "r:gz"

    def _open_for_write(self, output_path: Path, compression_level: Optional[int]) -> tarfile.TarFile:
        level = DEFAULT_GZIP_LEVEL if compression_level is None else compression_level
        # gzip accepts 0-9
        level = min(max(level, 0), 9)
        return tarfile.open(output_path, self.write_mode, compresslevel=level)

    def matches(self, filename: str) -> bool:
        return filename.lower().endswith((".tar.gz", ".tgz", ".criage"))
