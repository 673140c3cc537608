# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
criage - local package management agent

Resolves packages against prioritized remote repositories, installs the
matching platform artifact and keeps a registry of installed packages
split into global and local scope.
"""

__version__ = "1.0.0"
