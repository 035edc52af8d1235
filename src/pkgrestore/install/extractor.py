# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Extractor

Single responsibility: Write package files into an install directory

A package is copied into a staging directory next to the install root and
renamed into place, with its metadata record written last. A directory
under the final name is therefore always complete, and one that already
exists is treated as installed when it holds this package's record.
"""

import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import List

from pkgrestore.core.errors import DependencyResolutionError
from pkgrestore.repositories.base import RECORD_SUFFIX, Package, record_file_name
from pkgrestore.repositories.local import STAGING_DIR_NAME

logger = logging.getLogger(__name__)


def is_culture_file(relative_path: Path, language: str) -> bool:
    """True for files under lib/<culture>/ or lib/<framework>/<culture>/."""
    parts = [part.lower() for part in relative_path.parts]
    return len(parts) >= 3 and parts[0] == "lib" and language.lower() in parts[1:-1]


class PackageExtractor:
    """Copies package content into install directories"""

    def install(self, target_dir: Path, package: Package) -> bool:
        """
        Install a package into a directory.

        Args:
            target_dir: Final package directory
            package: Package to write

        Returns:
            True if the directory was created, False if it was already installed

        Raises:
            DependencyResolutionError: If the directory holds another package
        """
        target_dir = Path(target_dir)
        record = target_dir / record_file_name(package.id, package.metadata.version)
        if target_dir.exists():
            if record.is_file():
                logger.debug(f"{package} already installed in {target_dir}")
                return False
            other_records = sorted(p.name for p in target_dir.glob(f"*{RECORD_SUFFIX}"))
            if other_records:
                raise DependencyResolutionError(
                    f"Cannot install {package} into {target_dir}: it holds {', '.join(other_records)}",
                    package_id=package.id
                )
            # Left behind without any package record
            logger.warning(f"Replacing package directory {target_dir}")
            shutil.rmtree(target_dir)

        content = package.get_content_path()
        staging = target_dir.parent / STAGING_DIR_NAME / uuid.uuid4().hex
        staging.parent.mkdir(parents=True, exist_ok=True)
        try:
            shutil.copytree(content, staging, ignore=shutil.ignore_patterns(f"*{RECORD_SUFFIX}"))
            (staging / record.name).write_text(package.metadata.model_dump_json(indent=2), encoding="utf-8")
            try:
                os.rename(staging, target_dir)
            except OSError:
                if not record.is_file():
                    raise
                logger.debug(f"{package} was installed concurrently into {target_dir}")
                return False
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

        logger.info(f"Installed {package} into {target_dir}")
        return True

    def copy_culture_files(self, satellite: Package, language: str, runtime_dir: Path) -> List[Path]:
        """
        Copy the culture-specific lib files of a satellite package.

        Only files under lib/.../<language>/ are copied; nothing else in
        the runtime package directory is touched.

        Returns:
            Files created in the runtime directory
        """
        content = satellite.get_content_path()
        created = []
        for source in sorted(content.rglob("*")):
            if not source.is_file():
                continue
            relative = source.relative_to(content)
            if not is_culture_file(relative, language):
                continue
            destination = runtime_dir / relative
            if destination.exists():
                continue
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)
            created.append(destination)
        logger.info(f"Copied {len(created)} {language} files from {satellite} into {runtime_dir}")
        return created
