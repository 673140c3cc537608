# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registry Data Models

Defines data structures for installed packages, repositories, the
repository-side package projection, manifests and transactions.
"""

from typing import List, Dict, Optional, Any
from datetime import datetime, UTC
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Scope(str, Enum):
    """Installation partition"""
    GLOBAL = "global"
    LOCAL = "local"


class TransactionStatus(str, Enum):
    """Transaction status"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionOperation(str, Enum):
    """Type of transaction operation"""
    INSTALL = "install"
    UPDATE = "update"
    REMOVE = "remove"


class _WireModel(BaseModel):
    """
    Base for payloads produced by repositories and manifests.

    Repositories may send ``null`` for empty maps and lists; those are
    dropped so field defaults apply. Unknown fields are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class Repository(BaseModel):
    """Repository configuration entry"""
    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    priority: int = 50  # Lower number = higher priority
    enabled: bool = True
    token: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class RemoteFile(_WireModel):
    """One platform build of a package version"""
    os: str
    arch: str
    format: str = ""
    filename: str
    size: int = 0
    checksum: str = ""
    url: str = ""


class RemoteVersion(_WireModel):
    """A package version as published by a repository"""
    version: str
    description: str = ""
    dependencies: Dict[str, str] = Field(default_factory=dict)
    dev_dependencies: Dict[str, str] = Field(default_factory=dict)
    files: List[RemoteFile] = Field(default_factory=list)
    size: int = 0
    checksum: str = ""
    uploaded: Optional[datetime] = None
    downloads: int = 0

    def find_file(self, os_name: str, arch: str) -> Optional[RemoteFile]:
        """First file built for exactly (os_name, arch)."""
        for remote_file in self.files:
            if remote_file.os == os_name and remote_file.arch == arch:
                return remote_file
        return None


class RemotePackage(_WireModel):
    """Repository-side view of a package"""
    name: str
    description: str = ""
    author: str = ""
    license: str = ""
    homepage: str = ""
    repository: str = ""
    keywords: List[str] = Field(default_factory=list)
    versions: List[RemoteVersion] = Field(default_factory=list)
    downloads: int = 0
    updated: Optional[datetime] = None

    def latest_version(self) -> Optional[RemoteVersion]:
        """
        Last entry of the version list.

        Repository order is authoritative; versions are not re-sorted.
        """
        return self.versions[-1] if self.versions else None

    def find_version(self, version: str) -> Optional[RemoteVersion]:
        for remote_version in self.versions:
            if remote_version.version == version:
                return remote_version
        return None


class SearchResult(_WireModel):
    """Search hit reported by a repository"""
    name: str
    version: str = ""
    description: str = ""
    author: str = ""
    downloads: int = 0
    updated: Optional[datetime] = None
    score: float = 0.0


class PackageListPage(_WireModel):
    """One page of a repository's package listing"""
    packages: List[RemotePackage] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = 0


class Statistics(_WireModel):
    """Repository statistics"""
    total_downloads: int = 0
    packages_by_license: Dict[str, int] = Field(default_factory=dict)
    packages_by_author: Dict[str, int] = Field(default_factory=dict)
    popular_packages: List[str] = Field(default_factory=list)
    last_updated: Optional[datetime] = None
    total_packages: int = 0


class RefreshResult(_WireModel):
    """Outcome of a repository index refresh"""
    message: str = ""
    total_packages: int = 0
    last_updated: Optional[str] = None


class UploadResult(_WireModel):
    """Outcome of an archive upload"""
    message: str = ""
    filename: str = ""
    size: int = 0


class PackageHooks(_WireModel):
    """Lifecycle hooks declared by a package"""
    pre_install: List[str] = Field(default_factory=list)
    post_install: List[str] = Field(default_factory=list)
    pre_remove: List[str] = Field(default_factory=list)
    post_remove: List[str] = Field(default_factory=list)


class PackageManifest(_WireModel):
    """
    Package manifest stored as criage.yaml at the package root.

    Example:
        name: demo
        version: 1.0.0
        description: Demo package
        dependencies:
          other: ^1.0.0
        files: [src/]
    """
    name: str
    version: str
    description: str = ""
    author: str = ""
    license: str = ""
    homepage: str = ""
    repository: str = ""
    keywords: List[str] = Field(default_factory=list)
    dependencies: Dict[str, str] = Field(default_factory=dict)
    dev_dependencies: Dict[str, str] = Field(default_factory=dict)
    files: List[str] = Field(default_factory=list)
    scripts: Dict[str, str] = Field(default_factory=dict)
    hooks: Optional[PackageHooks] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> Any:
        # YAML reads an unquoted 1.0 as a float
        if isinstance(value, (int, float)):
            return str(value)
        return value


class InstalledPackage(BaseModel):
    """Record of an installed package"""
    name: str
    version: str
    description: str = ""
    author: str = ""
    license: str = ""
    install_date: datetime = Field(default_factory=lambda: datetime.now(UTC))
    install_path: str = ""
    scope: Scope = Scope.LOCAL
    dependencies: Dict[str, str] = Field(default_factory=dict)
    size: int = 0
    files: List[str] = Field(default_factory=list)
    scripts: Dict[str, str] = Field(default_factory=dict)


class ResolvedPackage(BaseModel):
    """Concrete artifact selected by the resolver"""
    package: InstalledPackage
    version: RemoteVersion
    file: RemoteFile
    repository: Repository
    download_url: str


class BuildResult(BaseModel):
    """Archive produced by a package build"""
    path: str
    format: str
    size: int
    checksum: str


class TransactionRecord(BaseModel):
    """Transaction record for lifecycle operations"""
    id: str
    operation: TransactionOperation
    package_name: str
    version: Optional[str] = None
    scope: Optional[Scope] = None
    status: TransactionStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "id": self.id,
            "operation": self.operation.value,
            "package_name": self.package_name,
            "version": self.version,
            "scope": self.scope.value if self.scope else None,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error
        }
