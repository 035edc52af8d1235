# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Settings Credential Provider

Single responsibility: Supply credentials for an authenticated source
"""

import logging
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

Credentials = Tuple[str, str]
CredentialPrompt = Callable[[str], Optional[Credentials]]


def _normalize(uri: str) -> str:
    return uri.rstrip("/").lower()


class SettingsCredentialProvider:
    """
    Credentials from the configured sources, then an optional prompt.

    Stored credentials are looked up by source location; the prompt is
    only called when none are stored and its answer is remembered for
    the rest of the run.
    """

    def __init__(self, source_provider, prompt: Optional[CredentialPrompt] = None):
        self.source_provider = source_provider
        self.prompt = prompt
        self._cache = {}

    def get_credentials(self, uri: str) -> Optional[Credentials]:
        """
        Find credentials for a request URI.

        Args:
            uri: Source location or a URL under it

        Returns:
            (user_name, password) or None
        """
        target = _normalize(uri)
        if target in self._cache:
            return self._cache[target]

        for source in self.source_provider.load_package_sources():
            location = _normalize(source.location)
            if source.credentials is not None and (target == location or target.startswith(location + "/")):
                logger.debug(f"Using stored credentials for source '{source.name}'")
                return source.user_name, source.password

        if self.prompt is None:
            return None

        credentials = self.prompt(uri)
        if credentials is not None:
            self._cache[target] = credentials
        return credentials
