# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Fixtures and Utilities

Provides an in-process fake package repository served through
httpx.MockTransport, archive builders and a sandboxed configuration.
No test touches the network or the real home directory.
"""

import io
import json
import re
import tarfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from criage.core.config import Config
from criage.core.platform import current_arch, current_os
from criage.models.registry_models import Repository
from criage.registry.client import RepositoryClient
from criage.registry.ratelimit import RateLimiter


# ============================================================================
# Archive Builders
# ============================================================================

def make_tar_gz(files: Dict[str, str]) -> bytes:
    """Build a tar.gz archive in memory from {archive name: text}."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, text in files.items():
            data = text.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def package_archive(name: str, version: str, extra: Optional[Dict[str, str]] = None) -> bytes:
    """tar.gz artifact with a criage.yaml manifest and one source file."""
    manifest = {
        "name": name,
        "version": version,
        "description": f"{name} package",
        "author": "tester",
        "license": "MIT",
        "files": ["src/"],
        "scripts": {"start": "run"},
    }
    files = {
        "criage.yaml": json.dumps(manifest),
        "src/main.txt": f"{name} {version}\n",
    }
    files.update(extra or {})
    return make_tar_gz(files)


# ============================================================================
# Fake Repository
# ============================================================================

class FakeRepository:
    """
    Minimal implementation of the repository HTTP API.

    Packages are registered with ``add_version``; every request is kept in
    ``requests`` for assertions.
    """

    def __init__(self, name: str, url: str, token: str = "secret"):
        self.name = name
        self.url = url.rstrip("/")
        self.token = token
        self.packages: Dict[str, Dict[str, Any]] = {}
        self.artifacts: Dict[str, bytes] = {}
        self.search_results: List[Dict[str, Any]] = []
        self.uploads: List[bytes] = []
        self.requests: List[httpx.Request] = []
        self.fail_with: Optional[int] = None
        self.info: Dict[str, Any] = {"name": name, "version": "1.0.0", "formats": ["tar.gz"]}

    @property
    def host(self) -> str:
        return httpx.URL(self.url).host

    def repository(self, priority: int = 50, token: Optional[str] = None, enabled: bool = True) -> Repository:
        return Repository(name=self.name, url=self.url, priority=priority, token=token, enabled=enabled)

    def add_version(
        self,
        name: str,
        version: str,
        platforms: Optional[List[Tuple[str, str]]] = None,
        archive: Optional[bytes] = None,
        description: str = ""
    ):
        """Publish a version with one tar.gz file per (os, arch)."""
        if platforms is None:
            platforms = [(current_os(), current_arch())]
        if archive is None:
            archive = package_archive(name, version)

        files = []
        for os_name, arch in platforms:
            filename = f"{name}-{version}-{os_name}-{arch}.tar.gz"
            files.append({
                "os": os_name,
                "arch": arch,
                "format": "tar.gz",
                "filename": filename,
                "size": len(archive),
                "checksum": "",
            })
            self.artifacts[f"/api/v1/download/{name}/{version}/{filename}"] = archive

        package = self.packages.setdefault(name, {
            "name": name,
            "description": description or f"{name} package",
            "author": "tester",
            "license": "MIT",
            "versions": [],
        })
        package["versions"].append({
            "version": version,
            "description": description,
            "dependencies": None,
            "files": files,
        })

    # -- request handling --

    def _authorized(self, request: httpx.Request) -> bool:
        return request.headers.get("Authorization") == f"Bearer {self.token}"

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if self.fail_with:
            return httpx.Response(self.fail_with, json={"success": False, "error": "boom"})

        if request.method == "GET":
            if path in ("/api/v1", "/api/v1/"):
                return httpx.Response(200, json={"success": True, "data": self.info})

            if path == "/api/v1/search":
                return httpx.Response(200, json={
                    "success": True,
                    "data": {"query": request.url.params.get("q"), "results": self.search_results},
                })

            if path == "/api/v1/stats":
                return httpx.Response(200, json={"success": True, "data": {
                    "total_packages": len(self.packages),
                    "total_downloads": 42,
                    "packages_by_license": {"MIT": len(self.packages)},
                }})

            if path == "/api/v1/packages":
                page = int(request.url.params.get("page", 1))
                limit = int(request.url.params.get("limit", 20))
                packages = list(self.packages.values())
                return httpx.Response(200, json={"success": True, "data": {
                    "packages": packages[(page - 1) * limit:page * limit],
                    "total": len(packages),
                    "page": page,
                    "limit": limit,
                    "total_pages": 1,
                }})

            if path in self.artifacts:
                return httpx.Response(200, content=self.artifacts[path])

            match = re.fullmatch(r"/api/v1/packages/([^/]+)/([^/]+)", path)
            if match:
                package = self.packages.get(match.group(1))
                versions = [v for v in (package or {}).get("versions", []) if v["version"] == match.group(2)]
                if not versions:
                    return httpx.Response(404, json={"success": False, "error": "Version not found"})
                return httpx.Response(200, json={"success": True, "data": versions[0]})

            match = re.fullmatch(r"/api/v1/packages/([^/]+)", path)
            if match:
                package = self.packages.get(match.group(1))
                if package is None:
                    return httpx.Response(404, json={"success": False, "error": "Package not found"})
                return httpx.Response(200, json={"success": True, "data": package})

        if request.method == "POST":
            if path == "/api/v1/upload":
                if not self._authorized(request):
                    return httpx.Response(401, json={"success": False, "error": "Unauthorized"})
                body = request.read()
                self.uploads.append(body)
                return httpx.Response(201, json={
                    "success": True,
                    "message": "Package uploaded",
                    "filename": "uploaded.tar.gz",
                    "size": len(body),
                })

            if path == "/api/v1/refresh":
                if not self._authorized(request):
                    return httpx.Response(401, json={"success": False, "error": "Unauthorized"})
                return httpx.Response(200, json={
                    "success": True,
                    "message": "Index refreshed",
                    "total_packages": len(self.packages),
                    "last_updated": "2025-01-01T00:00:00Z",
                })

        return httpx.Response(404, json={"success": False, "error": "Not found"})


def make_transport(*repositories: FakeRepository) -> httpx.MockTransport:
    """Route requests to the fake repository owning the request host."""
    by_host = {repo.host: repo for repo in repositories}

    def handler(request: httpx.Request) -> httpx.Response:
        repo = by_host.get(request.url.host)
        if repo is None:
            raise httpx.ConnectError(f"Unknown host {request.url.host}", request=request)
        return repo.handle(request)

    return httpx.MockTransport(handler)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def main_repo() -> FakeRepository:
    """Primary fake repository"""
    return FakeRepository("main", "https://main.example.test")


@pytest.fixture
def mirror_repo() -> FakeRepository:
    """Secondary fake repository"""
    return FakeRepository("mirror", "https://mirror.example.test")


@pytest.fixture
def rate_limiter():
    """Fast rate limiter, shut down after the test"""
    limiter = RateLimiter(1000)
    yield limiter
    limiter.shutdown()


@pytest.fixture
def client_factory(rate_limiter) -> Callable[..., RepositoryClient]:
    """Build RepositoryClients bound to fake repositories"""
    clients = []

    def factory(*repositories: FakeRepository) -> RepositoryClient:
        client = RepositoryClient(rate_limiter, timeout=5.0, transport=make_transport(*repositories))
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def sandbox(tmp_path) -> Path:
    """Root directory for all installed state of one test"""
    return tmp_path / "sandbox"


@pytest.fixture
def config_factory(sandbox) -> Callable[..., Config]:
    """Config whose paths all live inside the sandbox"""

    def factory(repositories: List[Repository], **overrides: Any) -> Config:
        values = dict(
            repositories=repositories,
            global_path=str(sandbox / "global"),
            local_path=str(sandbox / "local"),
            cache_path=str(sandbox / "cache"),
            temp_path=str(sandbox / "temp"),
            state_dir=str(sandbox / "state"),
            rate_limit=1000,
            timeout=5.0,
        )
        values.update(overrides)
        return Config(**values)

    return factory
