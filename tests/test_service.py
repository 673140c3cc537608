# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for PackageManagerService authoring and repository administration
"""

import hashlib
import tarfile

import pytest

from conftest import make_transport
from criage.core.errors import ConfigurationError, InvalidCredentialsError, VersionNotFoundError
from criage.registry.manifest import load_manifest
from criage.registry.service import PackageManagerService


@pytest.fixture
def service(config_factory, main_repo, mirror_repo):
    """Service with main (priority 1, with token) and mirror (priority 2)"""
    main_repo.add_version("demo", "1.0.0")
    config = config_factory([
        mirror_repo.repository(priority=2),
        main_repo.repository(priority=1, token="secret"),
    ])
    service = PackageManagerService(config=config, transport=make_transport(main_repo, mirror_repo))
    yield service
    service.close()


@pytest.fixture
def package_dir(service, tmp_path):
    """Scaffolded package with one source file"""
    package_dir = service.create_package("hello", tmp_path / "work", author="me", description="Hello")
    (package_dir / "src" / "hello.txt").write_text("hi")
    return package_dir


class TestAuthoring:
    """Test create, build and publish"""

    def test_create_package(self, package_dir):
        """Should scaffold manifest, src/ and README"""
        manifest = load_manifest(package_dir)
        assert manifest.name == "hello"
        assert manifest.version == "0.1.0"
        assert (package_dir / "README.md").exists()

    def test_build_package(self, service, package_dir, tmp_path):
        """Should pack the directory and report its checksum"""
        output = tmp_path / "dist" / "hello.tar.gz"

        result = service.build_package(package_dir, output)

        assert result.path == str(output.resolve())
        assert result.format == "tar.gz"
        assert result.size == output.stat().st_size
        assert result.checksum == hashlib.sha256(output.read_bytes()).hexdigest()
        with tarfile.open(output, "r:gz") as tar:
            assert {"criage.yaml", "src/hello.txt", "README.md"} <= set(tar.getnames())

    def test_build_default_output_name(self, service, package_dir, tmp_path, monkeypatch):
        """Should name the archive <name>-<version>.<ext> in the working directory"""
        monkeypatch.chdir(tmp_path)

        result = service.build_package(package_dir, format="zip")

        assert result.path == str((tmp_path / "hello-0.1.0.zip").resolve())

    def test_publish_package(self, service, package_dir, main_repo, sandbox):
        """Should upload to the highest-priority repository with its token"""
        result = service.publish_package(package_dir)

        assert result.message == "Package uploaded"
        assert len(main_repo.uploads) == 1
        assert b'filename="hello-0.1.0.tar.gz"' in main_repo.uploads[0]
        assert list((sandbox / "temp").iterdir()) == []

    def test_publish_to_named_repository_without_token(self, service, package_dir, mirror_repo):
        """Should surface 401 as InvalidCredentialsError"""
        with pytest.raises(InvalidCredentialsError):
            service.publish_package(package_dir, repository="mirror")
        assert mirror_repo.uploads == []

    def test_publish_with_explicit_token(self, service, package_dir, mirror_repo):
        """Should use the token passed by the caller"""
        service.publish_package(package_dir, repository="mirror", token="secret")
        assert len(mirror_repo.uploads) == 1


class TestRepositoryAdministration:
    """Test repository info, refresh, stats, listing and versions"""

    def test_repository_info_defaults_to_highest_priority(self, service):
        """Should query the priority-1 repository"""
        assert service.repository_info()["name"] == "main"

    def test_repository_by_url(self, service, mirror_repo):
        """Should accept a configured base URL"""
        assert service.repository_info(mirror_repo.url + "/")["name"] == "mirror"

    def test_unknown_repository(self, service):
        """Should raise ConfigurationError for unknown names"""
        with pytest.raises(ConfigurationError):
            service.repository_info("nowhere")

    def test_refresh_index(self, service):
        """Should refresh using the configured token"""
        assert service.refresh_index().message == "Index refreshed"

    def test_refresh_index_without_token(self, service, mirror_repo):
        """Should refuse without a token"""
        with pytest.raises(InvalidCredentialsError):
            service.refresh_index("mirror")
        assert mirror_repo.requests == []

    def test_repository_stats(self, service):
        """Should return repository statistics"""
        assert service.repository_stats().total_packages == 1

    def test_list_remote_packages(self, service):
        """Should return a page of remote packages"""
        page = service.list_remote_packages(page=0, limit=1000)
        assert [p.name for p in page.packages] == ["demo"]
        assert page.limit == 20

    def test_version_info(self, service):
        """Should return one remote version"""
        assert service.version_info("demo", "1.0.0").version == "1.0.0"
        with pytest.raises(VersionNotFoundError):
            service.version_info("demo", "0.0.1")


class TestLifecycleResources:
    """Test context manager behavior"""

    def test_close_shuts_down_rate_limiter(self, config_factory, main_repo):
        """Should stop the rate limiter on exit"""
        config = config_factory([main_repo.repository()])
        with PackageManagerService(config=config, transport=make_transport(main_repo)) as service:
            limiter = service.context.rate_limiter
        assert limiter.closed
