# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Repository Interface

Single responsibility: Define package handles and the repository contract
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

from pkgrestore.models import PackageMetadata, SemanticVersion

RECORD_SUFFIX = ".pkg.json"

VersionLike = Union[str, SemanticVersion, None]


def record_file_name(package_id: str, version: str) -> str:
    """Name of the metadata record stored in every package directory."""
    return f"{package_id}.{version}{RECORD_SUFFIX}"


class Package:
    """
    Handle to one version of a package in some repository.

    The content directory is produced on first use, which for remote
    repositories means downloading the archive.
    """

    def __init__(
        self,
        metadata: PackageMetadata,
        source: str,
        content_path: Optional[Path] = None,
        fetch: Optional[Callable[[], Path]] = None
    ):
        self.metadata = metadata
        self.source = source
        self._content_path = content_path
        self._fetch = fetch
        self._lock = threading.Lock()

    @property
    def id(self) -> str:
        return self.metadata.id

    @property
    def version(self) -> SemanticVersion:
        return SemanticVersion(self.metadata.version)

    @property
    def dependencies(self):
        return self.metadata.dependencies

    def get_content_path(self) -> Path:
        """Directory holding the package files, fetching them if needed."""
        with self._lock:
            if self._content_path is None:
                if self._fetch is None:
                    raise FileNotFoundError(f"Package {self} has no content")
                self._content_path = self._fetch()
            return self._content_path

    def __repr__(self) -> str:
        return f"Package('{self.id}', '{self.metadata.version}', source='{self.source}')"

    def __str__(self) -> str:
        return f"{self.id} {self.metadata.version}"


def _to_version(version: VersionLike) -> Optional[SemanticVersion]:
    if version is None or isinstance(version, SemanticVersion):
        return version
    return SemanticVersion(version)


class PackageRepository(ABC):
    """A place packages can be looked up in"""

    source: str = ""

    @abstractmethod
    def find_all_versions(self, package_id: str) -> List[Package]:
        """Every available version of a package, in no particular order."""

    def find_package(self, package_id: str, version: VersionLike = None) -> Optional[Package]:
        """
        Find one version of a package.

        Args:
            package_id: Package identifier (case-insensitive)
            version: Exact version, or None for the highest available

        Returns:
            Package handle or None
        """
        packages = self.find_all_versions(package_id)
        if not packages:
            return None

        wanted = _to_version(version)
        if wanted is None:
            return max(packages, key=lambda p: p.version)
        return next((p for p in packages if p.version == wanted), None)

    def exists(self, package_id: str, version: VersionLike = None) -> bool:
        return self.find_package(package_id, version) is not None

    @contextmanager
    def start_operation(self, operation: str) -> Iterator[None]:
        """Bracket a top-level operation; remote repositories report it upstream."""
        yield

    def set_connection_limit(self, limit: int):
        """Outbound connection limit; no-op for repositories without connections."""
