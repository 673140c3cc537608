# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom exceptions for criage.

All exceptions inherit from CriageError for consistent error handling.
Each class carries a stable ``code`` so callers can map failures without
matching on message text.
"""

from typing import Optional


class CriageError(Exception):
    """Base exception for all criage errors."""

    code = "criage_error"

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize criage error.

        Args:
            message: Human-readable error message
            details: Additional error details
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for a response envelope."""
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class AlreadyInstalledError(CriageError):
    """Package already has a record in the requested scope."""

    code = "already_installed"

    def __init__(self, name: str, installed_version: str, details: Optional[dict] = None):
        """
        Initialize already installed error.

        Args:
            name: Package name
            installed_version: Version currently recorded
            details: Additional error details
        """
        message = f"Package {name} ({installed_version}) is already installed"
        super().__init__(message, details=details)
        self.name = name
        self.installed_version = installed_version


class NotInstalledError(CriageError):
    """Package has no record in the requested scope."""

    code = "not_installed"

    def __init__(self, name: str, details: Optional[dict] = None):
        super().__init__(f"Package {name} is not installed", details=details)
        self.name = name


class PackageNotFoundError(CriageError):
    """Package, version or platform file absent from every repository."""

    code = "not_found"

    def __init__(self, message: str, name: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.name = name


class VersionNotFoundError(PackageNotFoundError):
    """A specific package version does not exist in a repository."""

    code = "version_not_found"

    def __init__(self, name: str, version: str, details: Optional[dict] = None):
        super().__init__(f"Package version not found: {name}@{version}", name=name, details=details)
        self.version = version


class AlreadyCurrentError(CriageError):
    """Update requested but the installed version is already the latest."""

    code = "already_current"

    def __init__(self, name: str, version: str, details: Optional[dict] = None):
        super().__init__(
            f"Package {name} is already at the latest version ({version})",
            details=details
        )
        self.name = name
        self.version = version


class RemoteUnavailableError(CriageError):
    """Transport failure, non-2xx status or unsuccessful response envelope."""

    code = "remote_unavailable"

    def __init__(
        self,
        message: str,
        repository: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict] = None
    ):
        """
        Initialize remote unavailable error.

        Args:
            message: Error message
            repository: Repository name the call was made against
            status_code: HTTP status code, None for transport errors
            details: Additional error details
        """
        super().__init__(message, details=details)
        self.repository = repository
        self.status_code = status_code


class InvalidCredentialsError(CriageError):
    """Repository rejected (or was never sent) the bearer token."""

    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid authorization token", details: Optional[dict] = None):
        super().__init__(message, details=details)


class LocalIOError(CriageError):
    """Filesystem operation failed."""

    code = "local_io_failure"

    def __init__(self, message: str, path: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.path = path


class ArchiveError(CriageError):
    """Archive could not be packed or unpacked."""

    code = "archive_error"


class ValidationError(CriageError):
    """Argument outside its accepted values."""

    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize validation error.

        Args:
            message: Validation error message
            field: Argument that failed validation
            details: Additional error details
        """
        super().__init__(message, details=details)
        self.field = field


class ConfigurationError(CriageError):
    """Configuration error."""

    code = "configuration_error"

    def __init__(self, message: str, config_file: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize configuration error.

        Args:
            message: Configuration error message
            config_file: Configuration file path
            details: Additional error details
        """
        super().__init__(message, details=details)
        self.config_file = config_file


class RateLimiterClosedError(CriageError):
    """Permit requested from a rate limiter that has been shut down."""

    code = "rate_limiter_closed"

    def __init__(self, message: str = "Rate limiter is shut down"):
        super().__init__(message)
