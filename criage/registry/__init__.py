# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package registry modules.

Structure:
- ratelimit.py: Process-wide outbound request limiter
- locks.py: Reader/writer lock
- store.py: Installed-package records per scope
- client.py: Repository HTTP client
- resolver.py: Artifact resolution across repositories
- manifest.py: criage.yaml handling, scaffolding, checksums
- transactions.py: Transaction logging
- context.py: Shared runtime objects
- operations.py: Install/update/remove/search/list
- service.py: Main service (composes above)
"""

from .client import RepositoryClient
from .context import RegistryContext
from .operations import PackageOperations
from .ratelimit import RateLimiter
from .resolver import PackageResolver
from .service import PackageManagerService
from .store import RegistryStore
from .transactions import TransactionLogger

__all__ = [
    "PackageManagerService",
    "PackageOperations",
    "PackageResolver",
    "RateLimiter",
    "RegistryContext",
    "RegistryStore",
    "RepositoryClient",
    "TransactionLogger",
]
