# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Path Resolver

Single responsibility: Map packages to directories under an install root
"""

from pathlib import Path

from pkgrestore.core.filesystem import PathLike
from pkgrestore.repositories.base import record_file_name


class PackagePathResolver:
    """
    Side-by-side installs use <id>.<version> directories so several
    versions can coexist; exclusive installs use <id>.
    """

    def __init__(self, root: PathLike, use_side_by_side_paths: bool = True):
        self.root = Path(root)
        self.use_side_by_side_paths = use_side_by_side_paths

    def get_package_directory_name(self, package_id: str, version: str) -> str:
        if self.use_side_by_side_paths:
            return f"{package_id}.{version}"
        return package_id

    def get_install_path(self, package_id: str, version: str) -> Path:
        return self.root / self.get_package_directory_name(package_id, version)

    def get_record_path(self, package_id: str, version: str) -> Path:
        return self.get_install_path(package_id, version) / record_file_name(package_id, version)
