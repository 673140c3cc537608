# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registry Context

Single responsibility: Own the shared runtime objects of one package manager

Configuration, the process-wide rate limiter, the HTTP client and the
installed-package store are built once here and passed explicitly to the
components that need them.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from criage.core.config import Config

from .client import RepositoryClient
from .ratelimit import RateLimiter
from .store import RegistryStore

logger = logging.getLogger(__name__)


@dataclass
class RegistryContext:
    """Shared state handed to resolver, operations and service"""

    config: Config
    rate_limiter: RateLimiter
    client: RepositoryClient
    store: RegistryStore

    @classmethod
    def create(cls, config: Config, transport: Optional[httpx.BaseTransport] = None) -> "RegistryContext":
        """
        Build a context from configuration and load the installed packages.

        Args:
            config: Loaded configuration
            transport: Optional httpx transport, used by tests

        Raises:
            LocalIOError: If an installed-package document is corrupt
        """
        rate_limiter = RateLimiter(config.rate_limit)
        client = RepositoryClient(rate_limiter, timeout=config.timeout, transport=transport)
        store = RegistryStore(
            global_path=config.resolve_path(config.global_path),
            local_path=config.resolve_path(config.local_path)
        )

        context = cls(config=config, rate_limiter=rate_limiter, client=client, store=store)
        try:
            store.load()
        except Exception:
            context.close()
            raise

        logger.info(
            f"Registry context ready: {len(config.enabled_repositories)} repositories, "
            f"{config.rate_limit} req/s"
        )
        return context

    @property
    def temp_dir(self) -> Path:
        return self.config.resolve_path(self.config.temp_path)

    @property
    def cache_dir(self) -> Path:
        return self.config.resolve_path(self.config.cache_path)

    @property
    def state_dir(self) -> Path:
        return self.config.resolve_path(self.config.state_dir)

    def close(self):
        """Release the HTTP client and stop the rate limiter."""
        self.client.close()
        self.rate_limiter.shutdown()
