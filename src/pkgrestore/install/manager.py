# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Manager

Single responsibility: Install and uninstall packages under one install root
"""

import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Set

from pkgrestore.core.errors import DependencyResolutionError, PackageNotFoundError, UninstallError
from pkgrestore.install.extractor import PackageExtractor
from pkgrestore.install.path_resolver import PackagePathResolver
from pkgrestore.install.resolver import DependencyResolver
from pkgrestore.install.scope import OperationScope, PackageUsage
from pkgrestore.install.transactions import TransactionLogger
from pkgrestore.models import OperationName, SemanticVersion, VersionSpec
from pkgrestore.repositories.base import Package, PackageRepository
from pkgrestore.repositories.local import LocalPackageRepository

logger = logging.getLogger(__name__)


class PackageManager:
    """Handles package installation and removal"""

    def __init__(
        self,
        source_repository: PackageRepository,
        install_root: Path,
        use_side_by_side_paths: bool = True,
        transaction_logger: Optional[TransactionLogger] = None,
        extractor: Optional[PackageExtractor] = None
    ):
        """
        Initialize package manager.

        Args:
            source_repository: Repository packages are resolved from
            install_root: Directory packages are installed into
            use_side_by_side_paths: Version-qualified directory names
            transaction_logger: Transaction logger for uninstall scopes
            extractor: Writes package files
        """
        self.source_repository = source_repository
        self.install_root = Path(install_root)
        self.path_resolver = PackagePathResolver(self.install_root, use_side_by_side_paths)
        self.local_repository = LocalPackageRepository(self.install_root)
        self.transaction_logger = transaction_logger or TransactionLogger(self.install_root / "transactions.jsonl")
        self.extractor = extractor or PackageExtractor()
        self.package_usage = PackageUsage()

    def create_scope(self, operation: OperationName, package_name: Optional[str] = None, version: Optional[str] = None, repository=None) -> OperationScope:
        """Scope sharing package usage with every other scope of this manager."""
        return OperationScope(operation, self.transaction_logger, package_name, version, repository, usage=self.package_usage)

    def get_install_path(self, package: Package) -> Path:
        return self.path_resolver.get_install_path(package.id, package.metadata.version)

    def install_package(
        self,
        package: Package,
        scope: OperationScope,
        ignore_dependencies: bool = False,
        allow_prerelease: bool = False,
        target_framework: Optional[str] = None
    ) -> bool:
        """
        Install a package and its missing dependencies.

        Resolution finishes before the first write; every directory created
        is tracked by the scope so a failure part way removes them all.

        Args:
            package: Package to install
            scope: Open operation scope
            ignore_dependencies: Install only the package itself
            allow_prerelease: Allow prerelease dependencies
            target_framework: Framework the packages must support

        Returns:
            True if any package directory was created
        """
        resolver = DependencyResolver(
            self.source_repository,
            self.local_repository,
            target_framework=target_framework,
            allow_prerelease=allow_prerelease,
            ignore_dependencies=ignore_dependencies
        )
        while True:
            to_install = resolver.resolve(package)
            reused = self._installed_closure(resolver.reused)
            if scope.claim([p.get_content_path() for p in reused]):
                break
            logger.debug(f"Installed dependencies of {package} were rolled back meanwhile, resolving again")

        if not self.path_resolver.use_side_by_side_paths:
            self._check_exclusive_conflicts(to_install)

        installed_any = False
        for item in to_install:
            installed_any = self._extract(item, scope) or installed_any
        return installed_any

    def _extract(self, package: Package, scope: OperationScope) -> bool:
        target = self.get_install_path(package)
        while True:
            if self.extractor.install(target, package):
                scope.track(target, str(package))
                return True
            if scope.claim([target]):
                return False
            logger.debug(f"{target} was rolled back by another operation, installing {package} again")

    def _installed_closure(self, packages: Iterable[Package]) -> List[Package]:
        """Installed packages plus the installed dependencies they rely on."""
        closure: List[Package] = []
        seen: Set[str] = set()
        pending = list(packages)
        while pending:
            package = pending.pop()
            key = f"{package.id.lower()} {package.version}"
            if key in seen:
                continue
            seen.add(key)
            closure.append(package)
            for dependency in package.dependencies:
                try:
                    spec = VersionSpec.parse(dependency.version)
                except ValueError:
                    continue
                installed = [p for p in self.local_repository.find_all_versions(dependency.id) if spec.satisfies(p.version)]
                if installed:
                    pending.append(max(installed, key=lambda p: p.version))
        return closure

    def _check_exclusive_conflicts(self, packages: List[Package]):
        """
        Raises:
            DependencyResolutionError: If another version of a package already occupies its directory
        """
        for package in packages:
            for installed in self.local_repository.find_all_versions(package.id):
                if installed.version == package.version:
                    continue
                dependents = self.find_dependents(installed)
                required_by = f", required by {', '.join(str(d) for d in dependents)}" if dependents else ""
                raise DependencyResolutionError(
                    f"Cannot install {package}: {installed} is already installed{required_by}",
                    package_id=package.id
                )

    def install_satellite_package(self, satellite: Package, runtime_package_id: str, language: str, scope: OperationScope) -> bool:
        """
        Install a localization package next to its runtime package.

        The satellite gets its own directory, ignoring its dependencies,
        and its culture files are copied into the runtime package.

        Raises:
            DependencyResolutionError: If the runtime package is not installed
        """
        runtime = self._find_installed_runtime(satellite, runtime_package_id)
        if runtime is None:
            raise DependencyResolutionError(
                f"Satellite package {satellite} requires '{runtime_package_id}', which is not installed",
                package_id=runtime_package_id
            )

        target = self.get_install_path(satellite)
        created = self.extractor.install(target, satellite)
        if created:
            scope.track(target, str(satellite))

        for path in self.extractor.copy_culture_files(satellite, language, runtime.get_content_path()):
            scope.track(path)
        return created

    def _find_installed_runtime(self, satellite: Package, runtime_package_id: str) -> Optional[Package]:
        dependency = next(d for d in satellite.dependencies if d.id.lower() == runtime_package_id.lower())
        spec = VersionSpec.parse(dependency.version)
        candidates = [p for p in self.local_repository.find_all_versions(runtime_package_id) if spec.satisfies(p.version)]
        if not candidates:
            return None
        return max(candidates, key=lambda p: p.version)

    def find_dependents(self, package: Package) -> List[Package]:
        """Installed packages that declare a dependency on this one."""
        dependents = []
        for installed in self.local_repository.get_packages():
            if installed.id.lower() == package.id.lower():
                continue
            for dependency in installed.dependencies:
                if dependency.id.lower() != package.id.lower():
                    continue
                try:
                    if VersionSpec.parse(dependency.version).satisfies(package.version):
                        dependents.append(installed)
                except ValueError:
                    dependents.append(installed)
        return dependents

    def uninstall_package(
        self,
        package_id: str,
        version: Optional[str] = None,
        force: bool = False,
        remove_dependencies: bool = False
    ) -> List[str]:
        """
        Remove an installed package.

        Args:
            package_id: Package id
            version: Installed version, None for the highest one
            force: Remove even if other packages depend on it
            remove_dependencies: Also remove dependencies nothing else needs

        Returns:
            Labels of removed packages

        Raises:
            PackageNotFoundError: If the package is not installed
            UninstallError: If other packages depend on it and force is False
        """
        package = self.local_repository.find_package(package_id, version)
        if package is None:
            raise PackageNotFoundError(package_id, version)

        with self.create_scope(OperationName.UNINSTALL, package.id, package.metadata.version) as scope:
            removed = self._uninstall(package, force, remove_dependencies)
            scope.transaction.packages_installed = removed
        return removed

    def _uninstall(self, package: Package, force: bool, remove_dependencies: bool) -> List[str]:
        if not force:
            dependents = self.find_dependents(package)
            if dependents:
                raise UninstallError(package.id, [str(d) for d in dependents])

        shutil.rmtree(package.get_content_path())
        logger.info(f"Uninstalled {package} from {self.install_root}")
        removed = [str(package)]

        if remove_dependencies:
            for dependency in package.dependencies:
                spec = VersionSpec.parse(dependency.version)
                for installed in self.local_repository.find_all_versions(dependency.id):
                    if not spec.satisfies(installed.version) or self.find_dependents(installed):
                        continue
                    removed.extend(self._uninstall(installed, force=False, remove_dependencies=True))
        return removed

    def is_installed(self, package_id: str, version: Optional[str] = None) -> bool:
        if version is None:
            return self.local_repository.exists(package_id)
        return self.local_repository.exists(package_id, SemanticVersion(version))
