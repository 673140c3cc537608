# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Repository Client

Single responsibility: Perform one rate-limited HTTP call per remote operation

Every call acquires a permit from the shared rate limiter, attaches the
bearer token when one is configured and maps the repository envelope
``{success, data, error|message}`` to a typed model or a CriageError.
Nothing is retried here; retry policy belongs to the callers.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from criage.core.errors import (
    InvalidCredentialsError,
    LocalIOError,
    PackageNotFoundError,
    RemoteUnavailableError,
    VersionNotFoundError,
)
from criage.models.registry_models import (
    PackageListPage,
    RefreshResult,
    RemotePackage,
    RemoteVersion,
    Repository,
    SearchResult,
    Statistics,
    UploadResult,
)

from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
DOWNLOAD_CHUNK_SIZE = 64 * 1024

ModelT = TypeVar("ModelT", bound=BaseModel)


class RepositoryClient:
    """HTTP client for the repository API, shared by all repositories"""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize repository client.

        Args:
            rate_limiter: Process-wide rate limiter consulted before every call
            timeout: Transport timeout in seconds, applied to every request
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self._http = httpx.Client(
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
            headers={"User-Agent": "criage-agent"}
        )

    def close(self):
        self._http.close()

    def __enter__(self) -> "RepositoryClient":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------
    # Package metadata
    # ------------------------------------------------------------------

    def get_package(self, repo: Repository, name: str) -> RemotePackage:
        """
        Fetch a package with all its versions.

        Raises:
            PackageNotFoundError: If the repository does not hold the package
            RemoteUnavailableError: On transport errors or other statuses
        """
        response = self._request(repo, "GET", f"/packages/{name}")

        if response.status_code == 404:
            raise PackageNotFoundError(f"Package {name} not found in {repo.name}", name=name)
        self._expect_status(repo, response, 200)

        payload = self._json(repo, response)
        if not payload.get("success") or payload.get("data") is None:
            raise PackageNotFoundError(f"Package {name} not found in {repo.name}", name=name)

        return self._parse(repo, RemotePackage, payload["data"], f"package {name}")

    def get_version(self, repo: Repository, name: str, version: str) -> RemoteVersion:
        """
        Fetch one version of a package.

        Raises:
            VersionNotFoundError: On 404
            RemoteUnavailableError: On transport errors, other statuses or
                an unsuccessful envelope
        """
        response = self._request(repo, "GET", f"/packages/{name}/{version}")

        if response.status_code == 404:
            raise VersionNotFoundError(name, version)
        self._expect_status(repo, response, 200)

        data = self._unwrap(repo, response, f"version {name}@{version}")
        return self._parse(repo, RemoteVersion, data, f"version {name}@{version}")

    def search(self, repo: Repository, query: str) -> List[SearchResult]:
        """Search one repository; results keep the repository's order."""
        response = self._request(repo, "GET", "/search", params={"q": query})
        self._expect_status(repo, response, 200)

        data = self._unwrap(repo, response, "search")
        results = (data.get("results") or []) if isinstance(data, dict) else []
        return [self._parse(repo, SearchResult, item, "search result") for item in results]

    def list_packages(self, repo: Repository, page: int = 1, limit: int = DEFAULT_PAGE_LIMIT) -> PackageListPage:
        """
        List packages page by page.

        Pages below 1 are clamped to 1; limits outside [1, 100] become 20.
        """
        if page < 1:
            page = 1
        if limit < 1 or limit > MAX_PAGE_LIMIT:
            limit = DEFAULT_PAGE_LIMIT

        response = self._request(repo, "GET", "/packages", params={"page": page, "limit": limit})
        self._expect_status(repo, response, 200)

        data = self._unwrap(repo, response, "package list")
        return self._parse(repo, PackageListPage, data, "package list")

    # ------------------------------------------------------------------
    # Repository information
    # ------------------------------------------------------------------

    def get_stats(self, repo: Repository) -> Statistics:
        response = self._request(repo, "GET", "/stats")
        self._expect_status(repo, response, 200)

        data = self._unwrap(repo, response, "statistics")
        return self._parse(repo, Statistics, data, "statistics")

    def get_info(self, repo: Repository) -> Dict[str, Any]:
        """Free-form repository description served at the API root."""
        response = self._request(repo, "GET", "/")
        self._expect_status(repo, response, 200)

        data = self._unwrap(repo, response, "repository info")
        if not isinstance(data, dict):
            raise RemoteUnavailableError(
                f"Malformed repository info from {repo.name}",
                repository=repo.name
            )
        return data

    # ------------------------------------------------------------------
    # Authenticated operations
    # ------------------------------------------------------------------

    def refresh_index(self, repo: Repository, token: Optional[str] = None) -> RefreshResult:
        """
        Ask the repository to rebuild its package index.

        Args:
            repo: Target repository
            token: Bearer token; defaults to the repository's configured token

        Raises:
            InvalidCredentialsError: If no token is available or the
                repository answers 401
            RemoteUnavailableError: On any other failure
        """
        token = token or repo.token
        if not token:
            raise InvalidCredentialsError(f"Authorization token required to refresh {repo.name}")

        response = self._request(
            repo,
            "POST",
            "/refresh",
            token=token,
            headers={"Content-Type": "application/json"}
        )

        if response.status_code == 401:
            raise InvalidCredentialsError()
        self._expect_status(repo, response, 200)

        payload = self._json(repo, response)
        if not payload.get("success"):
            raise RemoteUnavailableError(
                f"Index refresh failed: {self._envelope_message(payload)}",
                repository=repo.name,
                status_code=response.status_code
            )
        return self._parse(repo, RefreshResult, payload, "refresh result")

    def upload(self, repo: Repository, archive_path: Path, token: Optional[str] = None) -> UploadResult:
        """
        Upload one archive as multipart field ``package``.

        Only 201 Created counts as success.

        Raises:
            LocalIOError: If the archive cannot be opened
            InvalidCredentialsError: On 401
            RemoteUnavailableError: On any other failure
        """
        archive_path = Path(archive_path)
        token = token or repo.token

        try:
            fh = open(archive_path, "rb")
        except OSError as e:
            raise LocalIOError(f"Cannot open archive {archive_path}: {e}", path=str(archive_path)) from e

        with fh:
            response = self._request(
                repo,
                "POST",
                "/upload",
                token=token,
                files={"package": (archive_path.name, fh, "application/octet-stream")}
            )

        if response.status_code == 401:
            raise InvalidCredentialsError()
        if response.status_code != 201:
            raise RemoteUnavailableError(
                f"Upload to {repo.name} failed with status {response.status_code}",
                repository=repo.name,
                status_code=response.status_code
            )

        payload = self._json(repo, response)
        if not payload.get("success"):
            raise RemoteUnavailableError(
                f"Upload failed: {self._envelope_message(payload)}",
                repository=repo.name,
                status_code=response.status_code
            )

        logger.info(f"Uploaded {archive_path.name} to {repo.name}")
        return self._parse(repo, UploadResult, payload, "upload result")

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def download(self, repo: Repository, url: str, dest: Path) -> Path:
        """
        Stream an artifact into ``dest``. A partial file is removed on failure.

        Args:
            repo: Repository the artifact belongs to (token and error context)
            url: Absolute download URL
            dest: Target file path

        Returns:
            ``dest``
        """
        dest = Path(dest)
        self.rate_limiter.acquire()

        try:
            with self._http.stream("GET", url, headers=self._headers(repo.token)) as response:
                if response.status_code != 200:
                    raise RemoteUnavailableError(
                        f"Download failed with status {response.status_code}: {url}",
                        repository=repo.name,
                        status_code=response.status_code
                    )
                with open(dest, "wb") as f:
                    for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            dest.unlink(missing_ok=True)
            raise RemoteUnavailableError(f"Download failed: {url} - {e}", repository=repo.name) from e
        except OSError as e:
            dest.unlink(missing_ok=True)
            raise LocalIOError(f"Cannot write {dest}: {e}", path=str(dest)) from e
        except RemoteUnavailableError:
            dest.unlink(missing_ok=True)
            raise

        logger.debug(f"Downloaded {url} -> {dest}")
        return dest

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _headers(token: Optional[str], extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = dict(extra or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(
        self,
        repo: Repository,
        method: str,
        path: str,
        token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any
    ) -> httpx.Response:
        url = f"{repo.url}{API_PREFIX}{path}"
        self.rate_limiter.acquire()

        try:
            response = self._http.request(
                method,
                url,
                headers=self._headers(token or repo.token, headers),
                **kwargs
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RemoteUnavailableError(
                f"{method} {url} failed: {e}",
                repository=repo.name
            ) from e

        logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    @staticmethod
    def _expect_status(repo: Repository, response: httpx.Response, status: int):
        if response.status_code != status:
            raise RemoteUnavailableError(
                f"Repository {repo.name} returned status {response.status_code}",
                repository=repo.name,
                status_code=response.status_code
            )

    @staticmethod
    def _json(repo: Repository, response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteUnavailableError(
                f"Invalid JSON from {repo.name}: {e}",
                repository=repo.name,
                status_code=response.status_code
            ) from e

        if not isinstance(payload, dict):
            raise RemoteUnavailableError(
                f"Unexpected response shape from {repo.name}",
                repository=repo.name,
                status_code=response.status_code
            )
        return payload

    @staticmethod
    def _envelope_message(payload: Dict[str, Any]) -> str:
        return payload.get("error") or payload.get("message") or "unknown error"

    def _unwrap(self, repo: Repository, response: httpx.Response, what: str) -> Any:
        payload = self._json(repo, response)

        if not payload.get("success"):
            raise RemoteUnavailableError(
                f"Request for {what} failed: {self._envelope_message(payload)}",
                repository=repo.name,
                status_code=response.status_code
            )
        if payload.get("data") is None:
            raise RemoteUnavailableError(
                f"Empty {what} data from {repo.name}",
                repository=repo.name,
                status_code=response.status_code
            )
        return payload["data"]

    @staticmethod
    def _parse(repo: Repository, model: Type[ModelT], data: Any, what: str) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RemoteUnavailableError(
                f"Malformed {what} from {repo.name}: {e}",
                repository=repo.name
            ) from e
