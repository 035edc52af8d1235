# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Data Models

Defines data structures for package sources, package metadata, package
references, install units, install options and transaction records.
"""

from typing import List, Dict, Optional, Any
from datetime import datetime
from pydantic import BaseModel, Field
from enum import Enum


class TransactionStatus(str, Enum):
    """Transaction status"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class OperationName(str, Enum):
    """Named bracket around one top-level operation"""
    INSTALL = "Install"
    RESTORE = "Restore"
    UNINSTALL = "Uninstall"


class InstallUnitKind(str, Enum):
    """Classification of a resolved unit of work"""
    NORMAL = "normal"
    SATELLITE = "satellite"


class SettingValue(BaseModel):
    """One key/value entry read from a configuration layer"""
    key: str
    value: str
    is_machine_wide: bool = False


class SourceCredentials(BaseModel):
    """Credentials stored for a package source"""
    user_name: str
    password: str
    is_password_clear_text: bool = False


class PackageSource(BaseModel):
    """
    A named package source.

    Two sources are equal when both name and location match,
    case-insensitively.
    """
    name: str
    location: str
    is_enabled: bool = True
    is_machine_wide: bool = False
    is_official: bool = False
    credentials: Optional[SourceCredentials] = None

    @classmethod
    def from_location(cls, location: str, **kwargs) -> "PackageSource":
        """Source whose name is its location"""
        return cls(name=location, location=location, **kwargs)

    @property
    def user_name(self) -> Optional[str]:
        return self.credentials.user_name if self.credentials else None

    @property
    def password(self) -> Optional[str]:
        return self.credentials.password if self.credentials else None

    @property
    def is_password_clear_text(self) -> bool:
        return bool(self.credentials and self.credentials.is_password_clear_text)

    def clone(self) -> "PackageSource":
        return self.model_copy(deep=True)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PackageSource):
            return NotImplemented
        return (
            self.name.lower() == other.name.lower()
            and self.location.lower() == other.location.lower()
        )

    def __hash__(self) -> int:
        return hash((self.name.lower(), self.location.lower()))

    def __str__(self) -> str:
        return f"{self.name} [{self.location}]"


class PackageDependency(BaseModel):
    """Dependency declared by a package"""
    id: str
    version: Optional[str] = None  # Interval notation, None means any


class PackageMetadata(BaseModel):
    """Package metadata stored alongside every package directory"""
    id: str
    version: str
    description: str = ""
    authors: List[str] = Field(default_factory=list)
    dependencies: List[PackageDependency] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)  # Empty means any framework
    language: Optional[str] = None
    min_client_version: Optional[str] = None
    development_dependency: bool = False
    tags: List[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "Contoso.Logging",
                "version": "1.2.0",
                "dependencies": [{"id": "Contoso.Core", "version": "[1.0,2.0)"}],
                "frameworks": ["net45"]
            }
        }


class PackageReference(BaseModel):
    """Package listed in a reference manifest"""
    id: str
    version: Optional[str] = None  # None means unconstrained
    target_framework: Optional[str] = None
    is_development_dependency: bool = False


class InstallUnit(BaseModel):
    """One resolved unit of install work"""
    package_id: str
    version: str
    kind: InstallUnitKind = InstallUnitKind.NORMAL
    runtime_package_id: Optional[str] = None  # Set for satellite units
    package: Any = None  # Resolved repository package handle


class InstallOptions(BaseModel):
    """Options for package installation and restore"""
    sources: List[str] = Field(default_factory=list)  # Explicit sources (names or locations)
    output_directory: Optional[str] = None
    solution_directory: Optional[str] = None
    exclude_version: bool = False  # Exclusive mode: one copy per id, no version in folder name
    prerelease: bool = False
    no_cache: bool = False
    require_consent: bool = False
    disable_parallel: bool = False
    ignore_dependencies: bool = False
    target_framework: Optional[str] = None

    @property
    def allow_multiple_versions(self) -> bool:
        return not self.exclude_version


class TransactionRecord(BaseModel):
    """Transaction record for one operation scope"""
    id: str
    operation: OperationName
    package_name: Optional[str] = None
    version: Optional[str] = None
    packages_installed: List[str] = Field(default_factory=list)
    paths_created: List[str] = Field(default_factory=list)
    status: TransactionStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "id": self.id,
            "operation": self.operation.value,
            "package_name": self.package_name,
            "version": self.version,
            "packages_installed": self.packages_installed,
            "paths_created": self.paths_created,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error
        }
