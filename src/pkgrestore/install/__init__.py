# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

from .consent import PackageRestoreConsent
from .extractor import PackageExtractor
from .manager import PackageManager
from .orchestrator import InstallationOrchestrator, get_satellite_runtime_id
from .path_resolver import PackagePathResolver
from .reference_file import PackageReferenceFile
from .resolver import DependencyResolver
from .scope import OperationScope
from .transactions import TransactionLogger

__all__ = [
    "DependencyResolver",
    "InstallationOrchestrator",
    "OperationScope",
    "PackageExtractor",
    "PackageManager",
    "PackagePathResolver",
    "PackageReferenceFile",
    "PackageRestoreConsent",
    "TransactionLogger",
    "get_satellite_runtime_id",
]
