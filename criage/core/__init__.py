# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core utilities and shared modules for criage.

This package contains:
- config: Configuration management
- errors: Custom exceptions
- logging: Structured logging
- platform: Go-style OS/architecture naming
"""

from criage.core.config import Config, load_config
from criage.core.errors import CriageError, ConfigurationError
from criage.core.logging import configure_logging, log_event

__all__ = [
    "Config",
    "load_config",
    "CriageError",
    "ConfigurationError",
    "configure_logging",
    "log_event",
]
