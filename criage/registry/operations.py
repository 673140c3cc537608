# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Operations

Single responsibility: Install, update, remove, search and list packages
"""

import logging
import shutil
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, UTC
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from criage.archive import CodecRegistry
from criage.core.errors import (
    AlreadyCurrentError,
    AlreadyInstalledError,
    CriageError,
    LocalIOError,
    NotInstalledError,
    ValidationError,
)
from criage.models.registry_models import (
    InstalledPackage,
    Repository,
    ResolvedPackage,
    Scope,
    SearchResult,
    TransactionOperation,
)

from .context import RegistryContext
from .manifest import dir_size, load_manifest
from .resolver import PackageResolver
from .transactions import TransactionLogger

logger = logging.getLogger(__name__)


class PackageOperations:
    """Handles package installation, updates, removal and queries"""

    def __init__(
        self,
        context: RegistryContext,
        resolver: PackageResolver,
        codecs: CodecRegistry,
        transaction_logger: TransactionLogger
    ):
        """
        Initialize package operations.

        Args:
            context: Shared config, client and store
            resolver: Package resolver
            codecs: Archive codecs used to unpack downloads
            transaction_logger: Transaction logger
        """
        self.context = context
        self.store = context.store
        self.client = context.client
        self.resolver = resolver
        self.codecs = codecs
        self.transaction_logger = transaction_logger

        # One lock per (name, scope) so check, install and record happen together
        self._locks: Dict[Tuple[str, Scope], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def install(
        self,
        name: str,
        version: Optional[str] = None,
        scope: Union[Scope, str] = Scope.LOCAL,
        force: bool = False,
        arch: Optional[str] = None,
        os_name: Optional[str] = None
    ) -> InstalledPackage:
        """
        Install a package into one scope.

        An existing record in the scope blocks the install unless ``force``
        is set, even when the requested version differs.

        Args:
            name: Package name
            version: Exact version; latest when omitted
            scope: Target scope
            force: Replace an existing installation
            arch: Target architecture; running process when omitted
            os_name: Target OS; running process when omitted

        Returns:
            The persisted installation record

        Raises:
            AlreadyInstalledError: Record exists and ``force`` is not set
            PackageNotFoundError: No repository can serve the request
            RemoteUnavailableError: Download failed
            ArchiveError: Artifact could not be unpacked
            LocalIOError: Filesystem or manifest failure
        """
        scope = self._scope(scope)
        transaction = self.transaction_logger.begin(TransactionOperation.INSTALL, name, version, scope)

        try:
            with self._get_lock(name, scope):
                existing = self.store.get(name, scope)
                if existing is not None and not force:
                    raise AlreadyInstalledError(name, existing.version)

                resolved = self.resolver.resolve(name, version, arch=arch, os_name=os_name)
                record = self._install_resolved(name, resolved, scope, force)

        except Exception as e:
            logger.error(f"Installation of {name} failed: {e}")
            self.transaction_logger.fail(transaction, e)
            raise

        self.transaction_logger.complete(transaction, record.version)
        logger.info(f"Package {name}@{record.version} installed ({scope.value}) at {record.install_path}")
        return record

    def uninstall(
        self,
        name: str,
        scope: Union[Scope, str] = Scope.LOCAL,
        purge: bool = False
    ) -> InstalledPackage:
        """
        Remove an installed package and its record.

        ``purge`` is accepted for interface compatibility and has no effect.

        Returns:
            The record that was removed

        Raises:
            NotInstalledError: No record in the scope
            LocalIOError: Install directory or registry document could not be removed
        """
        scope = self._scope(scope)
        transaction = self.transaction_logger.begin(TransactionOperation.REMOVE, name, None, scope)

        try:
            with self._get_lock(name, scope):
                record = self.store.get(name, scope)
                if record is None:
                    raise NotInstalledError(name)
                transaction.version = record.version

                install_dir = Path(record.install_path) if record.install_path else self.store.install_path(name, scope)
                if install_dir.exists():
                    try:
                        shutil.rmtree(install_dir)
                    except OSError as e:
                        raise LocalIOError(f"Failed to remove {install_dir}: {e}", path=str(install_dir)) from e

                self.store.remove(name, scope)

        except Exception as e:
            logger.error(f"Removal of {name} failed: {e}")
            self.transaction_logger.fail(transaction, e)
            raise

        self.transaction_logger.complete(transaction)
        logger.info(f"Package {name}@{record.version} removed ({scope.value})")
        return record

    def update(self, name: str, scope: Optional[Union[Scope, str]] = None) -> InstalledPackage:
        """
        Update an installed package to the latest version for this platform.

        Args:
            name: Package name
            scope: Scope of the installation; local then global when omitted

        Returns:
            The new installation record, in the same scope as before

        Raises:
            NotInstalledError: Package is not installed
            AlreadyCurrentError: Installed version is already the latest
        """
        scope = self._scope(scope) if scope is not None else None
        transaction = self.transaction_logger.begin(TransactionOperation.UPDATE, name, None, scope)

        try:
            current = self._find_installed(name, scope)
            transaction.scope = current.scope

            with self._get_lock(name, current.scope):
                # Re-read under the lock; a concurrent call may have changed it
                current = self._find_installed(name, current.scope)

                resolved = self.resolver.resolve(name)
                latest = resolved.version.version
                if latest == current.version:
                    raise AlreadyCurrentError(name, latest)

                record = self._install_resolved(name, resolved, current.scope, force=True)

        except Exception as e:
            logger.error(f"Update of {name} failed: {e}")
            self.transaction_logger.fail(transaction, e)
            raise

        self.transaction_logger.complete(transaction, record.version)
        logger.info(f"Package {name} updated from {current.version} to {record.version}")
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(self, query: str) -> List[SearchResult]:
        """
        Search every enabled repository in parallel.

        Failing repositories are skipped. Results are concatenated in
        repository priority order, then stably sorted by descending score.
        """
        repositories = self.context.config.enabled_repositories
        if not repositories:
            return []

        def search_one(repo: Repository) -> List[SearchResult]:
            try:
                return self.client.search(repo, query)
            except CriageError as e:
                logger.warning(f"Search failed in repository {repo.name}: {e.message}")
                return []

        workers = min(self.context.config.max_concurrency, len(repositories))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="criage-search") as pool:
            batches = list(pool.map(search_one, repositories))

        results = [result for batch in batches for result in batch]
        results.sort(key=lambda result: result.score, reverse=True)
        return results

    def list(self, scope: Union[Scope, str] = Scope.LOCAL, outdated: bool = False) -> List[InstalledPackage]:
        """Installed packages of one scope, ordered by name. ``outdated`` has no effect."""
        return self.store.list(self._scope(scope))

    def info(self, name: str, scope: Optional[Union[Scope, str]] = None) -> InstalledPackage:
        """
        Installed record for a package.

        Raises:
            NotInstalledError: Package is not installed
        """
        return self._find_installed(name, self._scope(scope) if scope is not None else None)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _scope(scope: Union[Scope, str]) -> Scope:
        try:
            return Scope(scope)
        except ValueError as e:
            valid = ", ".join(s.value for s in Scope)
            raise ValidationError(f"Unknown scope {scope!r}, expected one of: {valid}", field="scope") from e

    def _get_lock(self, name: str, scope: Scope) -> threading.Lock:
        """Get or create the lock for one package in one scope"""
        with self._locks_guard:
            key = (name, scope)
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def _find_installed(self, name: str, scope: Optional[Scope]) -> InstalledPackage:
        if scope is not None:
            record = self.store.get(name, scope)
        else:
            records = self.store.find(name)
            record = records[0] if records else None

        if record is None:
            raise NotInstalledError(name)
        return record

    @staticmethod
    def _make_work_dir(name: str, root: Path) -> Path:
        try:
            root.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix=f"{name}-", dir=root))
        except OSError as e:
            raise LocalIOError(f"Cannot create work directory in {root}: {e}", path=str(root)) from e

    def _install_resolved(
        self,
        name: str,
        resolved: ResolvedPackage,
        scope: Scope,
        force: bool
    ) -> InstalledPackage:
        """
        Download, unpack and register a resolved artifact.

        The artifact is downloaded under the cache directory and unpacked
        under the temp directory; both work directories are always removed.
        An install directory created by this call is removed again if a
        later step fails, and no record is written unless every step
        succeeded.
        """
        download_dir = self._make_work_dir(name, self.context.cache_dir)
        try:
            work_dir = self._make_work_dir(name, self.context.temp_dir)
        except LocalIOError:
            shutil.rmtree(download_dir, ignore_errors=True)
            raise
        install_dir = self.store.install_path(name, scope)
        created = False

        try:
            try:
                archive_path = download_dir / Path(resolved.file.filename).name
                self.client.download(resolved.repository, resolved.download_url, archive_path)

                staging_dir = work_dir / "staging"
                codec = self.codecs.select(resolved.file.format, resolved.file.filename)
                codec.unpack(archive_path, staging_dir)

                manifest = load_manifest(staging_dir)

                if force and install_dir.exists():
                    shutil.rmtree(install_dir)

                created = not install_dir.exists()
                shutil.copytree(staging_dir, install_dir, dirs_exist_ok=True)

                package = resolved.package
                record = InstalledPackage(
                    name=name,
                    version=resolved.version.version,
                    description=manifest.description or package.description,
                    author=manifest.author or package.author,
                    license=manifest.license or package.license,
                    install_date=datetime.now(UTC),
                    install_path=str(install_dir),
                    scope=scope,
                    dependencies=manifest.dependencies or package.dependencies,
                    size=dir_size(install_dir),
                    files=manifest.files,
                    scripts=manifest.scripts,
                )

                self.store.upsert(record)

            except OSError as e:
                raise LocalIOError(f"Failed to install {name} into {install_dir}: {e}", path=str(install_dir)) from e

        except Exception:
            if created:
                shutil.rmtree(install_dir, ignore_errors=True)
            raise

        finally:
            shutil.rmtree(download_dir, ignore_errors=True)
            shutil.rmtree(work_dir, ignore_errors=True)

        return record
