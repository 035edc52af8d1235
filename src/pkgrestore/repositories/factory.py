# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Repository Factory

Single responsibility: Create a repository for a source location
"""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from pkgrestore.core.config import ClientConfig, get_config
from pkgrestore.core.errors import SourceConstructionError
from pkgrestore.core.filesystem import PathLike
from pkgrestore.repositories.base import PackageRepository
from pkgrestore.repositories.http import HttpPackageRepository
from pkgrestore.repositories.local import LocalPackageRepository

logger = logging.getLogger(__name__)


class PackageRepositoryFactory:
    """
    Maps source locations to repositories.

    http(s) URLs become HTTP repositories; file:// URLs and existing
    directories become local repositories. Anything else is rejected.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        credential_provider=None,
        machine_cache_directory: Optional[PathLike] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.config = config or get_config()
        self.credential_provider = credential_provider
        self.machine_cache_directory = Path(machine_cache_directory or self.config.machine_cache_path)
        self.transport = transport

    def create_repository(self, location: str) -> PackageRepository:
        """
        Create a repository.

        Raises:
            SourceConstructionError: If the location is not a usable source
        """
        if not location:
            raise SourceConstructionError("Package source location cannot be empty", source=location)

        parsed = urlparse(location)
        scheme = parsed.scheme.lower()

        if scheme in ("http", "https"):
            return HttpPackageRepository(
                location,
                cache_directory=self.machine_cache_directory,
                credential_provider=self.credential_provider,
                timeout=self.config.http_timeout,
                connection_limit=self.config.default_connection_limit,
                transport=self.transport
            )

        path = Path(url2pathname(parsed.path)) if scheme == "file" else Path(location)
        path = path.expanduser()
        if path.is_dir():
            return LocalPackageRepository(path)

        raise SourceConstructionError(f"The source '{location}' is not a valid package source", source=location)

    __call__ = create_repository

    def create_machine_cache(self) -> LocalPackageRepository:
        return LocalPackageRepository(self.machine_cache_directory)
