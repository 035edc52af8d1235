# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Aggregate Repository

Single responsibility: Present many repositories as one

Members are queried in order and the first definite answer wins. When
failing repositories are ignored, a member that raises is logged and
skipped; otherwise its error propagates.
"""

import logging
from contextlib import ExitStack, contextmanager
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from pkgrestore.core.errors import SourceConstructionError
from pkgrestore.models import PackageSource, SemanticVersion
from pkgrestore.repositories.base import Package, PackageRepository, VersionLike

logger = logging.getLogger(__name__)

RepositoryFactory = Callable[[str], PackageRepository]


class AggregateRepository(PackageRepository):
    """Ordered composition of repositories"""

    def __init__(self, repositories: Sequence[PackageRepository], ignore_failing_repositories: bool = False):
        self.repositories: List[PackageRepository] = list(repositories)
        self.ignore_failing_repositories = ignore_failing_repositories
        self.source = ";".join(repository.source for repository in self.repositories)

    def _tolerate(self, repository: PackageRepository, error: Exception):
        if not self.ignore_failing_repositories:
            raise error
        logger.warning(f"Ignoring failing repository {repository.source}: {error}")

    def exists(self, package_id: str, version: VersionLike = None) -> bool:
        for repository in self.repositories:
            try:
                if repository.exists(package_id, version):
                    return True
            except Exception as e:
                self._tolerate(repository, e)
        return False

    def find_package(self, package_id: str, version: VersionLike = None) -> Optional[Package]:
        """
        Find a package.

        An exact version short-circuits on the first member that has it;
        without a version the highest one across all members is returned.
        """
        if version is None:
            return super().find_package(package_id, None)

        for repository in self.repositories:
            try:
                package = repository.find_package(package_id, version)
            except Exception as e:
                self._tolerate(repository, e)
                continue
            if package is not None:
                return package
        return None

    def find_all_versions(self, package_id: str) -> List[Package]:
        """Union of all members' versions; earlier members win on duplicates."""
        found: Dict[SemanticVersion, Package] = {}
        for repository in self.repositories:
            try:
                packages = repository.find_all_versions(package_id)
            except Exception as e:
                self._tolerate(repository, e)
                continue
            for package in packages:
                found.setdefault(package.version, package)
        return list(found.values())

    @contextmanager
    def start_operation(self, operation: str) -> Iterator[None]:
        with ExitStack() as stack:
            for repository in self.repositories:
                stack.enter_context(repository.start_operation(operation))
            yield

    def set_connection_limit(self, limit: int):
        for repository in self.repositories:
            repository.set_connection_limit(limit)


def get_aggregate(
    factory: RepositoryFactory,
    sources: Iterable[PackageSource],
    ignore_failing_repositories: bool = False
) -> AggregateRepository:
    """
    Build an aggregate over the enabled sources.

    Args:
        factory: Creates a repository for a source location
        sources: Package sources in priority order
        ignore_failing_repositories: Skip sources whose repository cannot be created

    Raises:
        SourceConstructionError: If a repository cannot be created and failures are not ignored
    """
    repositories = []
    for source in sources:
        if not source.is_enabled:
            continue
        try:
            repositories.append(factory(source.location))
        except Exception as e:
            if not ignore_failing_repositories:
                if isinstance(e, SourceConstructionError):
                    raise
                raise SourceConstructionError(
                    f"Unable to create a repository for source '{source.location}': {e}",
                    source=source.location
                ) from e
            logger.warning(f"Skipping package source {source}: {e}")
    return AggregateRepository(repositories, ignore_failing_repositories)
