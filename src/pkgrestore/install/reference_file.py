# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Reference File

Single responsibility: Read and write the packages.config reference manifest

    <?xml version="1.0" encoding="utf-8"?>
    <packages>
      <package id="Contoso.Core" version="1.0.0" targetFramework="net45" />
    </packages>
"""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional

from pkgrestore.core.errors import ManifestError
from pkgrestore.core.filesystem import PathLike, PhysicalFileSystem
from pkgrestore.models import PackageReference, SemanticVersion

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "packages.config"


class PackageReferenceFile:
    """Reference manifest listing the packages a project uses"""

    def __init__(self, path: PathLike):
        self.path = Path(path)
        self.file_system = PhysicalFileSystem(self.path.parent)

    def _load_root(self) -> ET.Element:
        if not self.file_system.file_exists(self.path.name):
            raise ManifestError(f"Reference manifest '{self.path}' does not exist", manifest_file=str(self.path))
        try:
            return ET.fromstring(self.file_system.read_text(self.path.name))
        except ET.ParseError as e:
            raise ManifestError(f"Unable to parse '{self.path}': {e}", manifest_file=str(self.path)) from e

    def get_package_references(self, require_version: bool = True) -> List[PackageReference]:
        """
        Read all package references.

        Args:
            require_version: Fail on entries without a version

        Raises:
            ManifestError: If the file is missing or malformed, or an entry
                lacks a required id or version
        """
        references = []
        for element in self._load_root().iter("package"):
            package_id = element.get("id")
            version = element.get("version")
            if not package_id:
                raise ManifestError(f"A package entry in '{self.path}' has no id", manifest_file=str(self.path))
            if not version:
                if require_version:
                    raise ManifestError(
                        f"Package '{package_id}' in '{self.path}' has no version",
                        manifest_file=str(self.path)
                    )
                version = None
            else:
                try:
                    SemanticVersion(version)
                except ValueError as e:
                    raise ManifestError(
                        f"Package '{package_id}' in '{self.path}' has an invalid version: {e}",
                        manifest_file=str(self.path)
                    ) from e

            references.append(PackageReference(
                id=package_id,
                version=version,
                target_framework=element.get("targetFramework"),
                is_development_dependency=(element.get("developmentDependency") or "").lower() == "true",
            ))
        return references

    def add_entry(
        self,
        package_id: str,
        version: str,
        target_framework: Optional[str] = None,
        development_dependency: bool = False
    ):
        """Add or update a reference, creating the manifest if needed."""
        if self.file_system.file_exists(self.path.name):
            root = self._load_root()
        else:
            root = ET.Element("packages")

        element = next(
            (e for e in root.iter("package") if (e.get("id") or "").lower() == package_id.lower()),
            None
        )
        if element is None:
            element = ET.SubElement(root, "package")
        element.set("id", package_id)
        element.set("version", version)
        if target_framework:
            element.set("targetFramework", target_framework)
        if development_dependency:
            element.set("developmentDependency", "true")

        ET.indent(root, space="  ")
        with self.file_system.scoped_write(self.path.name) as writer:
            writer.write('<?xml version="1.0" encoding="utf-8"?>\n')
            writer.write(ET.tostring(root, encoding="unicode"))
            writer.write("\n")
