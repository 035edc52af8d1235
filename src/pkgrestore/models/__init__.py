# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

from .package_models import (
    InstallOptions,
    InstallUnit,
    InstallUnitKind,
    OperationName,
    PackageDependency,
    PackageMetadata,
    PackageReference,
    PackageSource,
    SettingValue,
    SourceCredentials,
    TransactionRecord,
    TransactionStatus,
)
from .versions import SemanticVersion, VersionSpec

__all__ = [
    "InstallOptions",
    "InstallUnit",
    "InstallUnitKind",
    "OperationName",
    "PackageDependency",
    "PackageMetadata",
    "PackageReference",
    "PackageSource",
    "SettingValue",
    "SourceCredentials",
    "TransactionRecord",
    "TransactionStatus",
    "SemanticVersion",
    "VersionSpec",
]
