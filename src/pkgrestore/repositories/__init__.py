# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

from .aggregate import AggregateRepository, get_aggregate
from .base import Package, PackageRepository, record_file_name
from .factory import PackageRepositoryFactory
from .http import HttpPackageRepository
from .local import LocalPackageRepository

__all__ = [
    "AggregateRepository",
    "HttpPackageRepository",
    "LocalPackageRepository",
    "Package",
    "PackageRepository",
    "PackageRepositoryFactory",
    "get_aggregate",
    "record_file_name",
]
