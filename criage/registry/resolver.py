# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Resolver

Single responsibility: Pick the concrete artifact to install for a request

Repositories are consulted in ascending priority. By default a repository
that has the package but not the requested version or platform build is
skipped and the next one is tried. With ``stop_on_name_match`` the first
repository holding the name decides on its own.
"""

import logging
from typing import Iterable, List, Optional

from criage.core.errors import CriageError, PackageNotFoundError
from criage.core.platform import current_arch, current_os
from criage.models.registry_models import (
    InstalledPackage,
    RemotePackage,
    Repository,
    ResolvedPackage,
)

from .client import API_PREFIX, RepositoryClient

logger = logging.getLogger(__name__)


def download_url(repo: Repository, name: str, version: str, filename: str) -> str:
    """Artifact locator inside a repository."""
    return f"{repo.url}{API_PREFIX}/download/{name}/{version}/{filename}"


class PackageResolver:
    """Resolves (name, version, platform) to a downloadable artifact"""

    def __init__(
        self,
        client: RepositoryClient,
        repositories: Iterable[Repository],
        stop_on_name_match: bool = False
    ):
        """
        Initialize package resolver.

        Args:
            client: Repository client used for metadata lookups
            repositories: Configured repositories; disabled ones are ignored
            stop_on_name_match: Let the first repository holding the name
                decide instead of falling through to the next one
        """
        self.client = client
        # sorted() is stable, ties keep configuration order
        self.repositories: List[Repository] = sorted(
            (repo for repo in repositories if repo.enabled),
            key=lambda repo: repo.priority
        )
        self.stop_on_name_match = stop_on_name_match

    def resolve(
        self,
        name: str,
        version: Optional[str] = None,
        arch: Optional[str] = None,
        os_name: Optional[str] = None
    ) -> ResolvedPackage:
        """
        Find the first repository able to serve the request.

        Args:
            name: Package name
            version: Exact version; latest when omitted
            arch: Target architecture; running process when omitted
            os_name: Target OS; running process when omitted

        Returns:
            ResolvedPackage with the chosen version, file and download URL

        Raises:
            PackageNotFoundError: If no repository satisfies every constraint
        """
        os_name = os_name or current_os()
        arch = arch or current_arch()

        for repo in self.repositories:
            try:
                remote = self.client.get_package(repo, name)
            except PackageNotFoundError:
                logger.debug(f"Package {name} not in repository {repo.name}")
                continue
            except CriageError as e:
                logger.warning(f"Repository {repo.name} failed while resolving {name}: {e.message}")
                continue

            try:
                resolved = self._select(repo, remote, name, version, os_name, arch)
            except PackageNotFoundError as e:
                if self.stop_on_name_match:
                    raise
                logger.debug(f"Skipping repository {repo.name}: {e.message}")
                continue

            logger.info(
                f"Resolved {name}@{resolved.version.version} ({os_name}/{arch}) "
                f"from {repo.name}"
            )
            return resolved

        target = f"{name}@{version}" if version else name
        raise PackageNotFoundError(
            f"Package {target} for {os_name}/{arch} not found in any repository",
            name=name
        )

    def _select(
        self,
        repo: Repository,
        remote: RemotePackage,
        name: str,
        version: Optional[str],
        os_name: str,
        arch: str
    ) -> ResolvedPackage:
        if version:
            remote_version = remote.find_version(version)
            if remote_version is None:
                raise PackageNotFoundError(
                    f"Version {version} of {name} not found in {repo.name}",
                    name=name
                )
        else:
            remote_version = remote.latest_version()
            if remote_version is None:
                raise PackageNotFoundError(f"Package {name} has no versions in {repo.name}", name=name)

        remote_file = remote_version.find_file(os_name, arch)
        if remote_file is None:
            raise PackageNotFoundError(
                f"No {os_name}/{arch} build of {name}@{remote_version.version} in {repo.name}",
                name=name
            )

        package = InstalledPackage(
            name=name,
            version=remote_version.version,
            description=remote_version.description or remote.description,
            author=remote.author,
            license=remote.license,
            dependencies=remote_version.dependencies,
            size=remote_file.size,
        )

        return ResolvedPackage(
            package=package,
            version=remote_version,
            file=remote_file,
            repository=repo,
            download_url=download_url(repo, name, remote_version.version, remote_file.filename)
        )
