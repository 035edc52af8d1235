# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
HTTP Package Repository

Single responsibility: Serve packages from a remote feed over HTTP

Feed layout:
    GET {source}/packages/{id}/index.json       -> {"versions": [<metadata>, ...]}
    GET {source}/packages/{id}/{version}.tar.gz -> package archive

Archives are unpacked into the machine cache, which is consulted before
downloading again.
"""

import logging
import threading
from contextlib import contextmanager
from functools import partial
from pathlib import Path
from typing import Iterator, List, Optional

import httpx
from pydantic import ValidationError

from pkgrestore.core.errors import PackageNotFoundError
from pkgrestore.core.filesystem import PathLike
from pkgrestore.models import PackageMetadata
from pkgrestore.repositories.base import Package, PackageRepository
from pkgrestore.repositories.local import LocalPackageRepository

logger = logging.getLogger(__name__)

OPERATION_HEADER = "X-PkgRestore-Operation"


class HttpPackageRepository(PackageRepository):
    """Remote feed reached with httpx"""

    def __init__(
        self,
        source: str,
        cache_directory: PathLike,
        credential_provider=None,
        timeout: float = 100.0,
        connection_limit: int = 2,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize HTTP repository.

        Args:
            source: Feed base URL
            cache_directory: Machine cache directory for downloaded packages
            credential_provider: Asked for credentials after a 401
            timeout: Request timeout in seconds
            connection_limit: Maximum concurrent connections
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.source = source.rstrip("/")
        self.cache = LocalPackageRepository(cache_directory)
        self.credential_provider = credential_provider
        self.timeout = timeout
        self.connection_limit = connection_limit
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._auth: Optional[httpx.Auth] = None
        self._operation: Optional[str] = None
        self._lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(
                    timeout=self.timeout,
                    limits=httpx.Limits(max_connections=self.connection_limit),
                    transport=self._transport,
                    follow_redirects=True
                )
            return self._client

    def set_connection_limit(self, limit: int):
        with self._lock:
            if limit == self.connection_limit:
                return
            self.connection_limit = limit
            if self._client is not None:
                self._client.close()
                self._client = None
        logger.debug(f"Connection limit for {self.source} set to {limit}")

    @contextmanager
    def start_operation(self, operation: str) -> Iterator[None]:
        previous = self._operation
        self._operation = operation
        try:
            yield
        finally:
            self._operation = previous

    def close(self):
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def _request(self, client: httpx.Client, url: str) -> httpx.Response:
        headers = {OPERATION_HEADER: self._operation} if self._operation else {}
        if self._auth is not None:
            return client.get(url, headers=headers, auth=self._auth)
        return client.get(url, headers=headers)

    def _get(self, url: str) -> Optional[httpx.Response]:
        """
        GET a feed URL.

        Returns:
            The response, or None on 404

        Raises:
            httpx.HTTPStatusError: On any other error status
        """
        client = self._get_client()
        response = self._request(client, url)

        if response.status_code == 401 and self.credential_provider is not None:
            credentials = self.credential_provider.get_credentials(self.source)
            if credentials is not None:
                logger.debug(f"Retrying {url} with credentials")
                self._auth = httpx.BasicAuth(*credentials)
                response = self._request(client, url)

        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response

    def find_all_versions(self, package_id: str) -> List[Package]:
        response = self._get(f"{self.source}/packages/{package_id.lower()}/index.json")
        if response is None:
            return []

        packages = []
        for entry in response.json().get("versions", []):
            try:
                metadata = PackageMetadata(**entry)
            except ValidationError as e:
                logger.warning(f"Skipping invalid metadata for {package_id} from {self.source}: {e}")
                continue
            packages.append(Package(metadata, self.source, fetch=partial(self._download, metadata)))
        return packages

    def _download(self, metadata: PackageMetadata) -> Path:
        cached = self.cache.find_package(metadata.id, metadata.version)
        if cached is not None:
            return cached.get_content_path()

        url = f"{self.source}/packages/{metadata.id.lower()}/{metadata.version}.tar.gz"
        logger.info(f"Downloading {metadata.id} {metadata.version} from {self.source}")
        response = self._get(url)
        if response is None:
            raise PackageNotFoundError(metadata.id, metadata.version)
        return self.cache.add_archive(metadata, response.content)
