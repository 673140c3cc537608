# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registry Store

Single responsibility: Own the installed-package records, in memory and on disk

Each scope partition is one name-keyed JSON document (packages.json in the
partition's install root). Mutations rewrite the whole partition document
under the write lock and touch memory only after the disk write succeeded.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from criage.core.errors import LocalIOError
from criage.models.registry_models import InstalledPackage, Scope

from .locks import ReadWriteLock

logger = logging.getLogger(__name__)

PARTITION_FILE = "packages.json"


class RegistryStore:
    """Durable registry of installed packages, split by scope"""

    def __init__(self, global_path: Path, local_path: Path):
        """
        Initialize registry store. Nothing is read until ``load()``.

        Args:
            global_path: Root directory of globally installed packages
            local_path: Root directory of locally installed packages
        """
        self.roots = {
            Scope.GLOBAL: Path(global_path),
            Scope.LOCAL: Path(local_path),
        }
        self._packages: Dict[Tuple[str, Scope], InstalledPackage] = {}
        self._lock = ReadWriteLock()

    def partition_file(self, scope: Scope) -> Path:
        """Path of the document holding one scope partition."""
        return self.roots[scope] / PARTITION_FILE

    def install_path(self, name: str, scope: Scope) -> Path:
        """Directory a package is installed into for the given scope."""
        return self.roots[scope] / name

    def load(self):
        """
        Load both partitions into memory, replacing the current view.

        A name present in both partitions yields two independent records.

        Raises:
            LocalIOError: If a partition document is unreadable or corrupt
        """
        packages: Dict[Tuple[str, Scope], InstalledPackage] = {}

        with self._lock.write():
            for scope in (Scope.GLOBAL, Scope.LOCAL):
                path = self.partition_file(scope)
                for name, raw in self._read_partition(scope).items():
                    try:
                        record = InstalledPackage.model_validate(raw)
                    except ValidationError as e:
                        raise LocalIOError(
                            f"Invalid record '{name}' in {path}: {e}",
                            path=str(path)
                        ) from e
                    # The partition decides the scope, not the stored field
                    if record.scope != scope or record.name != name:
                        record = record.model_copy(update={"scope": scope, "name": name})
                    packages[(name, scope)] = record

            self._packages = packages

        logger.info(f"Loaded {len(packages)} installed package records")

    def get(self, name: str, scope: Scope) -> Optional[InstalledPackage]:
        """Copy of the record for (name, scope), or None."""
        with self._lock.read():
            record = self._packages.get((name, scope))
            return record.model_copy(deep=True) if record else None

    def find(self, name: str) -> List[InstalledPackage]:
        """Records for ``name`` in any scope, local first."""
        with self._lock.read():
            return [
                self._packages[(name, scope)].model_copy(deep=True)
                for scope in (Scope.LOCAL, Scope.GLOBAL)
                if (name, scope) in self._packages
            ]

    def list(self, scope: Scope) -> List[InstalledPackage]:
        """All records of one scope, ordered by name."""
        with self._lock.read():
            records = [
                record.model_copy(deep=True)
                for (_, record_scope), record in self._packages.items()
                if record_scope == scope
            ]
        return sorted(records, key=lambda r: r.name)

    def upsert(self, record: InstalledPackage):
        """
        Insert or replace the record for (record.name, record.scope).

        Raises:
            LocalIOError: If the partition document cannot be rewritten;
                memory is left unchanged in that case
        """
        stored = record.model_copy(deep=True)

        with self._lock.write():
            data = self._read_partition(stored.scope)
            data[stored.name] = stored.model_dump(mode="json")
            self._write_partition(stored.scope, data)
            self._packages[(stored.name, stored.scope)] = stored

        logger.debug(f"Stored record {stored.name}@{stored.version} ({stored.scope.value})")

    def remove(self, name: str, scope: Scope):
        """
        Delete the record for (name, scope). Removing a missing record is a no-op.

        Raises:
            LocalIOError: If the partition document cannot be rewritten
        """
        with self._lock.write():
            data = self._read_partition(scope)
            if name in data:
                del data[name]
                self._write_partition(scope, data)
            self._packages.pop((name, scope), None)

        logger.debug(f"Removed record {name} ({scope.value})")

    def _read_partition(self, scope: Scope) -> Dict[str, dict]:
        path = self.partition_file(scope)
        if not path.exists():
            return {}

        try:
            data = json.loads(path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise LocalIOError(f"Failed to read {path}: {e}", path=str(path)) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise LocalIOError(f"Registry document {path} is not a mapping", path=str(path))
        return data

    def _write_partition(self, scope: Scope, data: Dict[str, dict]):
        path = self.partition_file(scope)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=".packages-",
                suffix=".json",
                delete=False
            ) as tmp:
                tmp_name = tmp.name
                json.dump(data, tmp, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
            raise LocalIOError(f"Failed to write {path}: {e}", path=str(path)) from e
