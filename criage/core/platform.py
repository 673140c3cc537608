# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Platform naming

Repositories label platform builds with Go-style names (linux/darwin/windows,
amd64/arm64/386/arm). These helpers map the running interpreter's platform
onto that vocabulary.
"""

import platform
from typing import Tuple

_OS_ALIASES = {
    "macos": "darwin",
    "win32": "windows",
    "cygwin": "windows",
}

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "x64": "amd64",
    "aarch64": "arm64",
    "armv8l": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


def normalize_os(name: str) -> str:
    name = name.lower()
    return _OS_ALIASES.get(name, name)


def normalize_arch(machine: str) -> str:
    machine = machine.lower()
    return _ARCH_ALIASES.get(machine, machine)


def current_os() -> str:
    """Operating system of the running process, e.g. ``linux``."""
    return normalize_os(platform.system())


def current_arch() -> str:
    """CPU architecture of the running process, e.g. ``amd64``."""
    return normalize_arch(platform.machine())


def current_platform() -> Tuple[str, str]:
    """(os, arch) pair of the running process."""
    return current_os(), current_arch()
