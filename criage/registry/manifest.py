# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Manifest

Single responsibility: Read, write and scaffold criage.yaml package manifests
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import ValidationError

from criage.core.errors import LocalIOError
from criage.models.registry_models import PackageManifest

logger = logging.getLogger(__name__)

MANIFEST_FILE = "criage.yaml"

README_TEMPLATE = """# {name}

{description}

## Installation

```bash
criage install {name}
```
"""


def load_manifest(package_dir: Path) -> PackageManifest:
    """
    Load criage.yaml from a package directory.

    JSON documents are accepted as well since YAML is a superset.

    Raises:
        LocalIOError: If the manifest is missing, unreadable or invalid
    """
    manifest_path = Path(package_dir) / MANIFEST_FILE

    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise LocalIOError(f"Manifest not found: {manifest_path}", path=str(manifest_path)) from e
    except (OSError, yaml.YAMLError) as e:
        raise LocalIOError(f"Failed to read manifest {manifest_path}: {e}", path=str(manifest_path)) from e

    if not isinstance(data, dict):
        raise LocalIOError(f"Manifest {manifest_path} is not a mapping", path=str(manifest_path))

    try:
        return PackageManifest.model_validate(data)
    except ValidationError as e:
        raise LocalIOError(f"Invalid manifest {manifest_path}: {e}", path=str(manifest_path)) from e


def write_manifest(package_dir: Path, manifest: PackageManifest) -> Path:
    """Write criage.yaml into ``package_dir``."""
    manifest_path = Path(package_dir) / MANIFEST_FILE
    data: Dict[str, Any] = manifest.model_dump(mode="json", exclude_none=True)

    try:
        with open(manifest_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
    except OSError as e:
        raise LocalIOError(f"Failed to write manifest {manifest_path}: {e}", path=str(manifest_path)) from e

    return manifest_path


def scaffold_package(
    name: str,
    directory: Path,
    author: str = "",
    description: str = "",
    template: str = "basic"
) -> Path:
    """
    Create ``<directory>/<name>`` with a manifest, src/ and README.md.

    Returns:
        Path of the new package directory
    """
    package_dir = Path(directory) / name

    manifest = PackageManifest(
        name=name,
        version="0.1.0",
        description=description,
        author=author,
        license="MIT",
        files=["src/"],
        metadata={"template": template},
    )

    try:
        (package_dir / "src").mkdir(parents=True, exist_ok=True)
        write_manifest(package_dir, manifest)
        (package_dir / "README.md").write_text(
            README_TEMPLATE.format(name=name, description=description),
            encoding="utf-8"
        )
    except OSError as e:
        raise LocalIOError(f"Failed to create package {name}: {e}", path=str(package_dir)) from e

    logger.info(f"Created package skeleton {name} in {package_dir}")
    return package_dir


def dir_size(path: Path) -> int:
    """Total size in bytes of the regular files below ``path``; unreadable entries are skipped."""
    total = 0
    for root, _dirs, files in os.walk(path):
        for filename in files:
            try:
                total += os.path.getsize(os.path.join(root, filename))
            except OSError:
                continue
    return total


def file_checksum(path: Path, chunk_size: int = 64 * 1024) -> str:
    """Hex SHA-256 digest of a file."""
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                digest.update(chunk)
    except OSError as e:
        raise LocalIOError(f"Failed to read {path}: {e}", path=str(path)) from e
    return digest.hexdigest()
