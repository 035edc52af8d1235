# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Dependency Resolver

Single responsibility: Resolve package dependencies with cycle detection
"""

import logging
from typing import Dict, List, Optional

import pkgrestore
from pkgrestore.core.errors import (
    DependencyResolutionError,
    IncompatibleFrameworkError,
    MinClientVersionError,
)
from pkgrestore.models import SemanticVersion, VersionSpec
from pkgrestore.repositories.base import Package, PackageRepository

logger = logging.getLogger(__name__)


def check_client_version(package: Package):
    """
    Raises:
        MinClientVersionError: If the package needs a newer pkgrestore
    """
    required = package.metadata.min_client_version
    if not required:
        return
    current = SemanticVersion(pkgrestore.__version__)
    if SemanticVersion(required) > current:
        raise MinClientVersionError(package.id, required, str(current))


def check_framework(package: Package, target_framework: Optional[str]):
    """
    Raises:
        IncompatibleFrameworkError: If the package lists frameworks and the target is not one
    """
    frameworks = package.metadata.frameworks
    if not target_framework or not frameworks:
        return
    if target_framework.lower() not in {f.lower() for f in frameworks}:
        raise IncompatibleFrameworkError(package.id, target_framework)


class DependencyResolver:
    """
    Resolves the packages an install has to write, dependencies first.

    Dependencies resolve to the lowest version inside their constraint.
    Anything already present in the local repository at a satisfying
    version is left out, along with its own dependencies.
    """

    def __init__(
        self,
        source_repository: PackageRepository,
        local_repository: PackageRepository,
        target_framework: Optional[str] = None,
        allow_prerelease: bool = False,
        ignore_dependencies: bool = False
    ):
        """
        Initialize dependency resolver.

        Args:
            source_repository: Where missing packages come from
            local_repository: What is already installed
            target_framework: Framework every package must support
            allow_prerelease: Whether prerelease versions may be picked
            ignore_dependencies: Resolve the requested package only
        """
        self.source_repository = source_repository
        self.local_repository = local_repository
        self.target_framework = target_framework
        self.allow_prerelease = allow_prerelease
        self.ignore_dependencies = ignore_dependencies
        # Installed packages the last resolve relied on instead of installing
        self.reused: List[Package] = []

    def resolve(self, package: Package) -> List[Package]:
        """
        Resolve a package and its dependencies.

        Every package is validated (client version, framework) before
        anything is returned, so nothing is written for a package that
        would fail later.

        Args:
            package: Requested package

        Returns:
            Packages to install, in install order, requested package last

        Raises:
            DependencyResolutionError: If a dependency cannot be satisfied or
                a circular dependency is found
            MinClientVersionError: If a package needs a newer client
        """
        ordered: List[Package] = []
        chosen: Dict[str, Package] = {}
        self.reused = []
        self._walk(package, [], chosen, ordered)
        return ordered

    def _walk(self, package: Package, chain: List[str], chosen: Dict[str, Package], ordered: List[Package]):
        key = package.id.lower()
        check_client_version(package)
        check_framework(package, self.target_framework)

        chosen[key] = package
        if not self.ignore_dependencies:
            path = chain + [key]
            for dependency in package.dependencies:
                spec = self._parse_spec(package, dependency.id, dependency.version)
                dependency_key = dependency.id.lower()

                if dependency_key in path:
                    cycle = " -> ".join(path + [dependency_key])
                    raise DependencyResolutionError(f"Circular dependency detected: {cycle}", package_id=dependency.id)

                if dependency_key in chosen:
                    if not spec.satisfies(chosen[dependency_key].version):
                        raise DependencyResolutionError(
                            f"Conflicting constraints for '{dependency.id}': {chosen[dependency_key]} "
                            f"does not satisfy {spec} required by {package}",
                            package_id=dependency.id
                        )
                    continue

                installed = self.find_installed(dependency.id, spec)
                if installed is not None:
                    logger.debug(f"Dependency {dependency.id} {spec} already installed as {installed}")
                    self.reused.append(installed)
                    continue

                resolved = self.find_best_version(dependency.id, spec)
                if resolved is None:
                    raise DependencyResolutionError(
                        f"Unable to resolve dependency '{dependency.id} {spec}' of {package}",
                        package_id=dependency.id
                    )
                self._walk(resolved, chain + [key], chosen, ordered)

        ordered.append(package)

    @staticmethod
    def _parse_spec(package: Package, dependency_id: str, text: Optional[str]) -> VersionSpec:
        try:
            return VersionSpec.parse(text)
        except ValueError as e:
            raise DependencyResolutionError(
                f"Package {package} declares an invalid version for '{dependency_id}': {e}",
                package_id=dependency_id
            ) from e

    def find_installed(self, package_id: str, spec: VersionSpec) -> Optional[Package]:
        """Highest installed version satisfying the constraint."""
        candidates = [p for p in self.local_repository.find_all_versions(package_id) if spec.satisfies(p.version)]
        if not candidates:
            return None
        return max(candidates, key=lambda p: p.version)

    def _allows(self, spec: VersionSpec, version: SemanticVersion) -> bool:
        if not version.is_prerelease or self.allow_prerelease:
            return True
        # A constraint that names a prerelease bound opts into prereleases
        bounds = (spec.min_version, spec.max_version)
        return any(bound is not None and bound.is_prerelease for bound in bounds)

    def find_best_version(self, package_id: str, spec: VersionSpec) -> Optional[Package]:
        """Lowest version satisfying the constraint."""
        candidates = [
            p for p in self.source_repository.find_all_versions(package_id)
            if spec.satisfies(p.version) and self._allows(spec, p.version)
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda p: p.version)
