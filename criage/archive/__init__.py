# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Archive codecs for package artifacts.
"""

from .base import ArchiveCodec
from .registry import DEFAULT_FORMAT, CodecRegistry
from .tar import TarCodec, TarGzCodec
from .zip import ZipCodec

__all__ = [
    "ArchiveCodec",
    "CodecRegistry",
    "DEFAULT_FORMAT",
    "TarCodec",
    "TarGzCodec",
    "ZipCodec",
]
