# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Local Package Repository

Single responsibility: Serve packages from a directory

The directory holds one sub-directory per package, named <id>.<version>
(or just <id> for exclusive installs), each containing the package files
and a <id>.<version>.pkg.json metadata record. This is both the layout
of a directory feed and of an install root, so the same class answers
"what is installed" and serves the machine cache.
"""

import io
import logging
import os
import shutil
import tarfile
import uuid
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from pkgrestore.core.filesystem import PathLike, PhysicalFileSystem
from pkgrestore.models import PackageMetadata
from pkgrestore.repositories.base import RECORD_SUFFIX, Package, PackageRepository, record_file_name

logger = logging.getLogger(__name__)

STAGING_DIR_NAME = ".staging"


class LocalPackageRepository(PackageRepository):
    """Packages stored as directories under a root"""

    def __init__(self, root: PathLike):
        """
        Initialize local repository.

        Args:
            root: Feed or install directory
        """
        self.file_system = PhysicalFileSystem(root)
        self.root = self.file_system.root
        self.source = str(self.root)

    def _candidate_directories(self, package_id: Optional[str]) -> List[Path]:
        if not self.root.is_dir():
            return []
        prefix = package_id.lower() if package_id else None
        directories = []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            name = entry.name.lower()
            if prefix is None or name == prefix or name.startswith(prefix + "."):
                directories.append(entry)
        return directories

    def _read_records(self, directory: Path) -> List[PackageMetadata]:
        records = []
        for record_path in self.file_system.list_files(directory, f"*{RECORD_SUFFIX}"):
            try:
                records.append(PackageMetadata.model_validate_json(record_path.read_text(encoding="utf-8")))
            except (ValidationError, ValueError) as e:
                logger.warning(f"Skipping unreadable package record {record_path}: {e}")
        return records

    def find_all_versions(self, package_id: str) -> List[Package]:
        packages = []
        for directory in self._candidate_directories(package_id):
            for metadata in self._read_records(directory):
                if metadata.id.lower() == package_id.lower():
                    packages.append(Package(metadata, self.source, content_path=directory))
        return packages

    def get_packages(self) -> List[Package]:
        """Every package in the repository."""
        packages = []
        for directory in self._candidate_directories(None):
            for metadata in self._read_records(directory):
                packages.append(Package(metadata, self.source, content_path=directory))
        return packages

    def add_archive(self, metadata: PackageMetadata, data: bytes) -> Path:
        """
        Unpack a gzipped tar archive as a package directory.

        The archive is extracted into a staging directory first and moved
        into place in one rename, so a half-written package is never
        visible under its final name.

        Args:
            metadata: Package metadata, written as the record file
            data: Archive bytes

        Returns:
            Package directory
        """
        target = self.root / f"{metadata.id}.{metadata.version}"
        if target.is_dir():
            return target

        staging = self.root / STAGING_DIR_NAME / uuid.uuid4().hex
        staging.mkdir(parents=True)
        try:
            extract_dir = staging / "extract"
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
                tar.extractall(extract_dir, filter="data")

            # Archives may wrap their content in a folder named after the package
            package_root = extract_dir
            wrapper_names = {metadata.id.lower(), f"{metadata.id}.{metadata.version}".lower()}
            entries = list(extract_dir.iterdir()) if extract_dir.exists() else []
            if len(entries) == 1 and entries[0].is_dir() and entries[0].name.lower() in wrapper_names:
                package_root = entries[0]
            package_root.mkdir(parents=True, exist_ok=True)

            record = package_root / record_file_name(metadata.id, metadata.version)
            record.write_text(metadata.model_dump_json(indent=2), encoding="utf-8")

            try:
                os.rename(package_root, target)
            except OSError:
                if not target.is_dir():
                    raise
                logger.debug(f"{target} was written concurrently")
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info(f"Cached {metadata.id} {metadata.version} in {self.root}")
        return target
