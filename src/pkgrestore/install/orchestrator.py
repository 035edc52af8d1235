# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Installation Orchestrator

Single responsibility: Install one package or restore a reference manifest

Restore runs one task per reference on worker threads, bounded by a
semaphore. Satellite (localization) packages found by the workers are
published to a queue and installed after every task has settled, so a
satellite always lands after the runtime package it augments.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from pkgrestore.configuration.defaults import ConfigurationDefaults
from pkgrestore.configuration.settings import (
    MachineWideSettings,
    SettingsChain,
    get_repository_path,
    load_default_settings,
)
from pkgrestore.core.config import ClientConfig, get_config
from pkgrestore.core.errors import ConsentRequiredError, PackageNotFoundError
from pkgrestore.core.logging import log_event
from pkgrestore.install.consent import PackageRestoreConsent
from pkgrestore.install.manager import PackageManager
from pkgrestore.install.reference_file import PackageReferenceFile
from pkgrestore.install.transactions import TransactionLogger
from pkgrestore.models import (
    InstallOptions,
    InstallUnit,
    InstallUnitKind,
    OperationName,
    PackageReference,
    PackageSource,
    SemanticVersion,
)
from pkgrestore.repositories.aggregate import AggregateRepository, get_aggregate
from pkgrestore.repositories.base import Package, PackageRepository
from pkgrestore.repositories.factory import PackageRepositoryFactory
from pkgrestore.sources.provider import CachedPackageSourceProvider, PackageSourceProvider

logger = logging.getLogger(__name__)


def is_parallel_restore_supported() -> bool:
    """Runtimes without real threads restore sequentially."""
    return sys.platform not in ("emscripten", "wasi")


def get_satellite_runtime_id(package: Package) -> Optional[str]:
    """
    Runtime package id a satellite package augments.

    A satellite declares a language, has an id ending in .<language> and
    depends on exactly one package whose id is its own minus that suffix.
    """
    language = package.metadata.language
    if not language:
        return None
    suffix = f".{language}".lower()
    if not package.id.lower().endswith(suffix):
        return None
    runtime_id = package.id[:-len(suffix)]
    if len(package.dependencies) != 1 or package.dependencies[0].id.lower() != runtime_id.lower():
        return None
    return runtime_id


class InstallationOrchestrator:
    """Drives single-package installs and manifest restores"""

    def __init__(
        self,
        settings: SettingsChain,
        source_provider: PackageSourceProvider,
        repository_factory: Optional[PackageRepositoryFactory] = None,
        config: Optional[ClientConfig] = None,
        configuration_defaults: Optional[ConfigurationDefaults] = None,
        machine_wide_settings: Optional[MachineWideSettings] = None,
        user_config_dir: Optional[Path] = None,
        working_directory: Optional[Path] = None
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Settings chain for the working directory
            source_provider: Package source registry
            repository_factory: Creates repositories for source locations
            config: Client configuration
            configuration_defaults: Curated defaults (restore consent fallback)
            machine_wide_settings: Machine-wide layers for solution settings
            user_config_dir: User config directory for solution settings
            working_directory: Last-resort install root
        """
        self.settings = settings
        self.source_provider = source_provider
        self.config = config or get_config()
        self.repository_factory = repository_factory or PackageRepositoryFactory(self.config)
        self.configuration_defaults = configuration_defaults
        self.machine_wide_settings = machine_wide_settings
        self.user_config_dir = user_config_dir
        self.working_directory = Path(working_directory) if working_directory else Path.cwd()
        self.restore_failures: List[Tuple[str, Exception]] = []

    # ------------------------------------------------------------------
    # Shared plumbing
    # ------------------------------------------------------------------

    def resolve_install_path(self, options: InstallOptions) -> Path:
        """
        Pick the install root.

        Precedence: output directory, repositoryPath from the solution
        settings, repositoryPath from the working settings, packages
        under the solution directory, then the working directory.
        """
        if options.output_directory:
            return Path(os.path.abspath(options.output_directory))

        if options.solution_directory:
            solution_settings = load_default_settings(
                Path(options.solution_directory) / self.config.solution_settings_folder,
                machine_wide_settings=self.machine_wide_settings,
                user_config_dir=self.user_config_dir,
                settings_file_name=self.config.settings_file_name
            )
            repository_path = get_repository_path(solution_settings)
            if repository_path:
                return Path(repository_path)

        repository_path = get_repository_path(self.settings)
        if repository_path:
            return Path(repository_path)

        if options.solution_directory:
            return Path(os.path.abspath(options.solution_directory)) / self.config.packages_dir_name

        return self.working_directory

    def _get_repository(self, options: InstallOptions, source_provider) -> AggregateRepository:
        if options.sources:
            sources = [
                PackageSource.from_location(source_provider.resolve_source(source))
                for source in options.sources
            ]
            aggregate = get_aggregate(self.repository_factory, sources, ignore_failing_repositories=False)
        else:
            aggregate = source_provider.get_aggregate(self.repository_factory, ignore_failing_repositories=True)

        repositories: List[PackageRepository] = list(aggregate.repositories)
        if not options.no_cache:
            repositories.insert(0, self.repository_factory.create_machine_cache())
        return AggregateRepository(repositories, aggregate.ignore_failing_repositories)

    def _create_manager(self, repository: PackageRepository, install_root: Path, options: InstallOptions) -> PackageManager:
        return PackageManager(
            repository,
            install_root,
            use_side_by_side_paths=options.allow_multiple_versions,
            transaction_logger=TransactionLogger(install_root / self.config.transaction_log_name)
        )

    @staticmethod
    def _find_package(
        repository: PackageRepository,
        package_id: str,
        version: Optional[str],
        allow_prerelease: bool
    ) -> Package:
        if version is not None:
            package = repository.find_package(package_id, SemanticVersion(version))
        else:
            candidates = [
                p for p in repository.find_all_versions(package_id)
                if allow_prerelease or not p.version.is_prerelease
            ]
            package = max(candidates, key=lambda p: p.version) if candidates else None
        if package is None:
            raise PackageNotFoundError(package_id, version)
        return package

    # ------------------------------------------------------------------
    # Single package
    # ------------------------------------------------------------------

    def install_single(self, package_id: str, version: Optional[str] = None, options: Optional[InstallOptions] = None) -> bool:
        """
        Install one package with its dependencies.

        In exclusive mode an installed copy at the same or a higher
        version makes this a no-op; a lower installed version is
        uninstalled (with its orphaned dependencies) once the requested
        version has been found.

        Args:
            package_id: Package id
            version: Exact version, None for the latest
            options: Install options

        Returns:
            True if anything was installed

        Raises:
            PackageNotFoundError: If the package cannot be found
            DependencyResolutionError: If dependencies cannot be satisfied
        """
        options = options or InstallOptions()
        install_root = self.resolve_install_path(options)
        repository = self._get_repository(options, self.source_provider)
        manager = self._create_manager(repository, install_root, options)

        package = None
        if not options.allow_multiple_versions:
            installed = manager.local_repository.find_package(package_id)
            if installed is not None:
                if version is not None and SemanticVersion(version) <= installed.version:
                    logger.info(f"{installed} is already installed")
                    return False
                # The replacement has to exist before the installed copy goes
                package = self._find_package(repository, package_id, version, options.prerelease)
                if package.version <= installed.version:
                    logger.info(f"{installed} is already installed")
                    return False
                manager.uninstall_package(installed.id, installed.metadata.version, force=False, remove_dependencies=True)

        with manager.create_scope(OperationName.INSTALL, package_id, version, repository) as scope:
            if package is None:
                package = self._find_package(repository, package_id, version, options.prerelease)
            installed_any = manager.install_package(
                package,
                scope,
                ignore_dependencies=options.ignore_dependencies,
                allow_prerelease=options.prerelease,
                target_framework=options.target_framework
            )

        log_event(logger, "package_installed" if installed_any else "package_already_installed",
                  package_id=package_id, version=str(package.version), install_root=str(install_root))
        return installed_any

    # ------------------------------------------------------------------
    # Manifest restore
    # ------------------------------------------------------------------

    def install_from_manifest(self, manifest_path: Path, options: Optional[InstallOptions] = None) -> bool:
        """Synchronous wrapper around install_from_manifest_async."""
        return asyncio.run(self.install_from_manifest_async(manifest_path, options))

    async def install_from_manifest_async(self, manifest_path: Path, options: Optional[InstallOptions] = None) -> bool:
        """
        Restore every package listed in a reference manifest.

        References already on disk are skipped. The rest are restored in
        parallel (or sequentially when parallel restore is disabled),
        each inside its own Restore scope: a failing reference is rolled
        back and recorded in restore_failures without stopping the others.

        Args:
            manifest_path: packages.config to restore
            options: Install options

        Returns:
            True if any package was installed or any satellite package was
            collected, even when installing that satellite later failed

        Raises:
            ManifestError: If the manifest is missing, malformed or has unversioned entries
            ConsentRequiredError: If consent is required and not granted
        """
        options = options or InstallOptions()
        self.restore_failures = []
        references = PackageReferenceFile(manifest_path).get_package_references(require_version=True)
        if not references:
            return False

        install_root = self.resolve_install_path(options)
        source_provider = CachedPackageSourceProvider(self.source_provider)
        repository = self._get_repository(options, source_provider)
        manager = self._create_manager(repository, install_root, options)

        pending = [r for r in references if not self._is_restored(manager, r, options)]
        if not pending:
            logger.info("All packages listed in the manifest are already installed")
            return False

        if options.require_consent:
            self._ensure_consent()

        satellites: asyncio.Queue = asyncio.Queue()
        with repository.start_operation(OperationName.RESTORE.value):
            if options.disable_parallel or not is_parallel_restore_supported():
                results = []
                for reference in pending:
                    results.append(await self._settle(self._restore_reference(manager, reference, options, satellites, None)))
            else:
                limit = self.config.default_connection_limit
                if len(pending) > limit:
                    repository.set_connection_limit(min(self.config.max_parallel_restores, len(pending)))
                semaphore = asyncio.Semaphore(min(self.config.max_parallel_restores, len(pending)))
                results = await asyncio.gather(
                    *(self._restore_reference(manager, r, options, satellites, semaphore) for r in pending),
                    return_exceptions=True
                )

            for reference, result in zip(pending, results):
                if isinstance(result, Exception):
                    self.restore_failures.append((reference.id, result))
                    logger.error(f"Restore of {reference.id} {reference.version} failed: {result}")

            satellites_installed = await self._install_satellites(manager, satellites)

        restored = any(result is True for result in results)
        log_event(logger, "restore_completed", manifest=str(manifest_path), references=len(references),
                  pending=len(pending), failures=len(self.restore_failures))
        return restored or satellites_installed

    @staticmethod
    async def _settle(awaitable):
        try:
            return await awaitable
        except Exception as e:
            return e

    def _is_restored(self, manager: PackageManager, reference: PackageReference, options: InstallOptions) -> bool:
        if not options.allow_multiple_versions:
            return manager.local_repository.exists(reference.id)
        return manager.path_resolver.get_record_path(reference.id, reference.version).is_file()

    def _ensure_consent(self):
        consent = PackageRestoreConsent(self.settings, self.configuration_defaults)
        if not consent.is_granted:
            raise ConsentRequiredError()

    async def _restore_reference(
        self,
        manager: PackageManager,
        reference: PackageReference,
        options: InstallOptions,
        satellites: asyncio.Queue,
        semaphore: Optional[asyncio.Semaphore]
    ) -> bool:
        if semaphore is None:
            unit = await asyncio.to_thread(self._restore_package, manager, reference, options)
        else:
            async with semaphore:
                unit = await asyncio.to_thread(self._restore_package, manager, reference, options)

        if unit is None:
            return False
        if unit.kind == InstallUnitKind.SATELLITE:
            await satellites.put(unit)
        return True

    def _restore_package(self, manager: PackageManager, reference: PackageReference, options: InstallOptions) -> Optional[InstallUnit]:
        with manager.create_scope(OperationName.RESTORE, reference.id, reference.version) as scope:
            package = self._find_package(manager.source_repository, reference.id, reference.version, True)

            runtime_id = get_satellite_runtime_id(package)
            if runtime_id is not None:
                logger.debug(f"Deferring satellite package {package} until {runtime_id} is installed")
                return InstallUnit(
                    package_id=package.id,
                    version=package.metadata.version,
                    kind=InstallUnitKind.SATELLITE,
                    runtime_package_id=runtime_id,
                    package=package
                )

            installed = manager.install_package(
                package,
                scope,
                ignore_dependencies=options.ignore_dependencies,
                allow_prerelease=True,
                target_framework=reference.target_framework or options.target_framework
            )
        if not installed:
            return None
        return InstallUnit(package_id=package.id, version=package.metadata.version, package=package)

    async def _install_satellites(self, manager: PackageManager, satellites: asyncio.Queue) -> bool:
        installed_any = False
        while not satellites.empty():
            unit: InstallUnit = satellites.get_nowait()
            try:
                installed = await asyncio.to_thread(self._install_satellite, manager, unit)
            except Exception as e:
                self.restore_failures.append((unit.package_id, e))
                logger.error(f"Satellite package {unit.package_id} {unit.version} failed: {e}")
                continue
            installed_any = installed_any or installed
        return installed_any

    def _install_satellite(self, manager: PackageManager, unit: InstallUnit) -> bool:
        package: Package = unit.package
        with manager.create_scope(OperationName.RESTORE, unit.package_id, unit.version) as scope:
            return manager.install_satellite_package(package, unit.runtime_package_id, package.metadata.language, scope)
