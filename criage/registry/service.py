# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Manager Service - Modular Composition

Composes focused modules into one package manager facade.
Each module does one thing well, following Unix philosophy.
"""

import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from criage.archive import DEFAULT_FORMAT, CodecRegistry
from criage.core.config import Config, load_config
from criage.core.errors import ConfigurationError, LocalIOError
from criage.core.logging import configure_logging
from criage.models.registry_models import (
    BuildResult,
    InstalledPackage,
    PackageListPage,
    RefreshResult,
    RemoteVersion,
    Repository,
    Scope,
    SearchResult,
    Statistics,
    UploadResult,
)

from .client import DEFAULT_PAGE_LIMIT
from .context import RegistryContext
from .manifest import file_checksum, load_manifest, scaffold_package
from .operations import PackageOperations
from .resolver import PackageResolver
from .transactions import TRANSACTION_LOG, TransactionLogger

logger = logging.getLogger(__name__)


class PackageManagerService:
    """
    Unified package manager service (modular composition).

    Composes:
    - RegistryContext: Config, rate limiter, HTTP client, installed store
    - PackageResolver: Pick artifacts across repositories
    - CodecRegistry: Pack and unpack archives
    - TransactionLogger: Log lifecycle transactions
    - PackageOperations: Install/update/remove/search/list
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        config_path: Optional[Path] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize package manager service.

        Args:
            config: Configuration; loaded from ``config_path`` (or the
                default location) when omitted
            config_path: Optional YAML config file
            transport: Optional httpx transport for all repository calls

        Raises:
            ConfigurationError: If the configuration cannot be loaded
            LocalIOError: If installed-package records are corrupt
        """
        self.config = config or load_config(config_path)
        configure_logging(
            self.config.log_level,
            self.config.log_format,
            log_file=self.config.resolve_path(self.config.log_file) if self.config.log_file else None
        )

        self.context = RegistryContext.create(self.config, transport=transport)
        self.codecs = CodecRegistry()
        self.resolver = PackageResolver(
            self.context.client,
            self.config.repositories,
            stop_on_name_match=self.config.stop_on_name_match
        )

        try:
            self.transaction_logger = TransactionLogger(self.context.state_dir / TRANSACTION_LOG)
        except LocalIOError:
            self.context.close()
            raise

        self.operations = PackageOperations(
            self.context,
            self.resolver,
            self.codecs,
            self.transaction_logger
        )

        logger.info(
            f"PackageManagerService initialized with "
            f"{len(self.config.enabled_repositories)} enabled repositories"
        )

    def close(self):
        """Close resources and cleanup"""
        self.context.close()
        logger.info("PackageManagerService closed")

    def __enter__(self) -> "PackageManagerService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Package Operation Methods
    def install_package(
        self,
        name: str,
        version: Optional[str] = None,
        scope: Union[Scope, str] = Scope.LOCAL,
        force: bool = False,
        arch: Optional[str] = None,
        os_name: Optional[str] = None
    ) -> InstalledPackage:
        return self.operations.install(name, version, scope=scope, force=force, arch=arch, os_name=os_name)

    def uninstall_package(self, name: str, scope: Union[Scope, str] = Scope.LOCAL, purge: bool = False) -> InstalledPackage:
        return self.operations.uninstall(name, scope=scope, purge=purge)

    def update_package(self, name: str, scope: Optional[Union[Scope, str]] = None) -> InstalledPackage:
        return self.operations.update(name, scope=scope)

    def search_packages(self, query: str) -> List[SearchResult]:
        """
        Search packages across all enabled repositories.

        Args:
            query: Search query

        Returns:
            Matches from every reachable repository, best score first
        """
        return self.operations.search(query)

    def list_packages(self, scope: Union[Scope, str] = Scope.LOCAL, outdated: bool = False) -> List[InstalledPackage]:
        return self.operations.list(scope=scope, outdated=outdated)

    def package_info(self, name: str, scope: Optional[Union[Scope, str]] = None) -> InstalledPackage:
        return self.operations.info(name, scope=scope)

    # Authoring Methods
    def create_package(
        self,
        name: str,
        directory: Union[str, Path] = ".",
        author: str = "",
        description: str = "",
        template: str = "basic"
    ) -> Path:
        """
        Scaffold a new package directory.

        Returns:
            Path of ``<directory>/<name>``
        """
        return scaffold_package(name, Path(directory), author=author, description=description, template=template)

    def build_package(
        self,
        source_dir: Union[str, Path] = ".",
        output_path: Optional[Union[str, Path]] = None,
        format: str = DEFAULT_FORMAT,
        compression_level: Optional[int] = None
    ) -> BuildResult:
        """
        Pack a package directory into an archive.

        Args:
            source_dir: Directory holding criage.yaml
            output_path: Archive path; ``<name>-<version>.<ext>`` when omitted
            format: Archive format (tar.gz, tar, zip)
            compression_level: Overrides the configured compression level

        Returns:
            BuildResult with path, size and SHA-256 checksum
        """
        source_dir = Path(source_dir)
        manifest = load_manifest(source_dir)
        codec = self.codecs.get(format)

        if output_path is None:
            output_path = Path(f"{manifest.name}-{manifest.version}.{codec.extension}")
        output_path = Path(output_path)

        level = self.config.compression_level if compression_level is None else compression_level
        codec.pack(source_dir, output_path, compression_level=level)

        try:
            size = output_path.stat().st_size
        except OSError as e:
            raise LocalIOError(f"Cannot stat {output_path}: {e}", path=str(output_path)) from e

        result = BuildResult(
            path=str(output_path.resolve()),
            format=codec.name,
            size=size,
            checksum=file_checksum(output_path)
        )
        logger.info(f"Built {manifest.name}@{manifest.version} -> {result.path} ({result.size} bytes)")
        return result

    def publish_package(
        self,
        source_dir: Union[str, Path] = ".",
        repository: Optional[str] = None,
        token: Optional[str] = None
    ) -> UploadResult:
        """
        Build a package into a temporary archive and upload it.

        Args:
            source_dir: Directory holding criage.yaml
            repository: Configured repository name or base URL
            token: Bearer token; defaults to the repository's token

        Returns:
            Upload result reported by the repository
        """
        source_dir = Path(source_dir)
        manifest = load_manifest(source_dir)
        repo = self._select_repository(repository)

        temp_root = self.context.temp_dir
        try:
            temp_root.mkdir(parents=True, exist_ok=True)
            work = tempfile.TemporaryDirectory(prefix="publish-", dir=temp_root)
        except OSError as e:
            raise LocalIOError(f"Cannot create temp directory in {temp_root}: {e}", path=str(temp_root)) from e

        with work as work_dir:
            codec = self.codecs.get(DEFAULT_FORMAT)
            archive_path = Path(work_dir) / f"{manifest.name}-{manifest.version}.{codec.extension}"
            self.build_package(source_dir, archive_path, format=codec.name)
            result = self.context.client.upload(repo, archive_path, token=token)

        logger.info(f"Published {manifest.name}@{manifest.version} to {repo.name}")
        return result

    # Repository Methods
    def repository_info(self, repository: Optional[str] = None) -> Dict[str, Any]:
        return self.context.client.get_info(self._select_repository(repository))

    def refresh_index(self, repository: Optional[str] = None, token: Optional[str] = None) -> RefreshResult:
        """
        Ask a repository to rebuild its index. Requires a bearer token.

        Args:
            repository: Configured repository name or base URL
            token: Bearer token; defaults to the repository's token
        """
        return self.context.client.refresh_index(self._select_repository(repository), token=token)

    def repository_stats(self, repository: Optional[str] = None) -> Statistics:
        return self.context.client.get_stats(self._select_repository(repository))

    def list_remote_packages(
        self,
        repository: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT
    ) -> PackageListPage:
        return self.context.client.list_packages(self._select_repository(repository), page=page, limit=limit)

    def version_info(self, name: str, version: str, repository: Optional[str] = None) -> RemoteVersion:
        return self.context.client.get_version(self._select_repository(repository), name, version)

    # Transaction Methods
    def transactions(self, limit: int = 50) -> List[Dict[str, Any]]:
        """
        List recent transactions from log.

        Args:
            limit: Maximum number of transactions to return

        Returns:
            List of transaction records, most recent first
        """
        return self.transaction_logger.list_transactions(limit)

    def _select_repository(self, repository: Optional[str]) -> Repository:
        """
        Resolve a repository name or base URL.

        None selects the highest-priority enabled repository. A URL that
        matches no configured repository is used as-is without a token.

        Raises:
            ConfigurationError: If nothing matches
        """
        if repository is None:
            enabled = self.config.enabled_repositories
            if not enabled:
                raise ConfigurationError("No enabled repositories configured")
            return enabled[0]

        for repo in self.config.repositories:
            if repo.name == repository:
                return repo

        if repository.startswith(("http://", "https://")):
            url = repository.rstrip("/")
            if self.config.force_https and url.startswith("http://"):
                url = "https://" + url[len("http://"):]
            for repo in self.config.repositories:
                if repo.url == url:
                    return repo
            return Repository(name=url, url=url)

        raise ConfigurationError(f"Unknown repository: {repository}")
