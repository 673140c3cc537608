# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""Zip codec."""

import logging
import zipfile
from pathlib import Path
from typing import Optional

from criage.core.errors import ArchiveError

from .base import ArchiveCodec, is_within, walk_files

logger = logging.getLogger(__name__)


class ZipCodec(ArchiveCodec):
    """Deflate-compressed zip"""

    name = "zip"
    extension = "zip"

    def pack(self, source_dir: Path, output_path: Path, compression_level: Optional[int] = None) -> Path:
        source_dir = Path(source_dir)
        output_path = Path(output_path)
        if not source_dir.is_dir():
            raise ArchiveError(f"Source directory does not exist: {source_dir}")

        level = None if compression_level is None else min(max(compression_level, 0), 9)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(output_path, "w", zipfile.ZIP_DEFLATED, compresslevel=level) as zip_file:
                for path, arcname in walk_files(source_dir, exclude=output_path):
                    zip_file.write(path, arcname)
        except (OSError, zipfile.BadZipFile) as e:
            output_path.unlink(missing_ok=True)
            raise ArchiveError(f"Failed to create zip archive {output_path}: {e}") from e

        logger.debug(f"Packed {source_dir} into {output_path}")
        return output_path

    def unpack(self, archive_path: Path, dest_dir: Path) -> Path:
        dest_dir = Path(dest_dir)
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(archive_path, "r") as zip_file:
                for member in zip_file.namelist():
                    if not is_within(dest_dir, member):
                        raise ArchiveError(f"Unsafe path in {archive_path}: {member}")
                zip_file.extractall(dest_dir)
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveError(f"Failed to extract {archive_path}: {e}") from e

        logger.debug(f"Unpacked {archive_path} into {dest_dir}")
        return dest_dir
