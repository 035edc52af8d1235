# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

from .credentials import SettingsCredentialProvider
from .protection import decrypt_string, encrypt_string
from .provider import CachedPackageSourceProvider, PackageSourceProvider

__all__ = [
    "CachedPackageSourceProvider",
    "PackageSourceProvider",
    "SettingsCredentialProvider",
    "decrypt_string",
    "encrypt_string",
]
