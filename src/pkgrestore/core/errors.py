# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom exceptions for pkgrestore.

All exceptions inherit from PkgRestoreError for consistent error handling.
"""

from typing import Optional


class PkgRestoreError(Exception):
    """Base exception for all pkgrestore errors."""

    def __init__(
        self,
        message: str,
        exit_code: int = 1,
        details: Optional[dict] = None
    ):
        """
        Initialize pkgrestore error.

        Args:
            message: Human-readable error message
            exit_code: Process exit code used by the command line
            details: Additional error details
        """
        self.message = message
        self.exit_code = exit_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for structured output."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "exit_code": self.exit_code,
            "details": self.details
        }


class InvalidArgumentError(PkgRestoreError, ValueError):
    """Empty or null argument passed to a settings or source call."""

    def __init__(self, argument: str, details: Optional[dict] = None):
        """
        Initialize invalid argument error.

        Args:
            argument: Name of the offending argument
            details: Additional error details
        """
        super().__init__(f"Argument cannot be null or empty: {argument}", exit_code=2, details=details)
        self.argument = argument


class ConfigurationParseError(PkgRestoreError):
    """A configuration file could not be parsed."""

    def __init__(self, message: str, config_file: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize configuration parse error.

        Args:
            message: Parse error message
            config_file: Configuration file path
            details: Additional error details
        """
        super().__init__(message, details=details)
        self.config_file = config_file


class NoWritableConfigurationError(PkgRestoreError):
    """A write targeted a chain without any writable layer."""

    def __init__(self, message: str = "There are no writable config files.", details: Optional[dict] = None):
        super().__init__(message, details=details)


class CredentialProtectionError(PkgRestoreError):
    """A stored password could not be encrypted or decrypted."""


class SourceConstructionError(PkgRestoreError):
    """A repository could not be created for a package source."""

    def __init__(self, message: str, source: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize source construction error.

        Args:
            message: Error message
            source: Source location that failed
            details: Additional error details
        """
        super().__init__(message, details=details)
        self.source = source


class ConsentRequiredError(PkgRestoreError):
    """Package restore was attempted without granted consent."""

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(
            message or (
                "Package restore consent not granted. Set packageRestore/enabled to true "
                "or the PKGRESTORE_RESTORE_CONSENT environment variable."
            ),
            details=details
        )


class PackageNotFoundError(PkgRestoreError):
    """A package could not be found in any repository."""

    def __init__(self, package_id: str, version: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize package not found error.

        Args:
            package_id: Package identifier
            version: Requested version, if any
            details: Additional error details
        """
        label = f"{package_id} {version}" if version else package_id
        super().__init__(f"Unable to find package '{label}'", details=details)
        self.package_id = package_id
        self.version = version


class DependencyResolutionError(PkgRestoreError):
    """A package or one of its dependencies cannot be satisfied."""

    def __init__(self, message: str, package_id: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.package_id = package_id


class IncompatibleFrameworkError(DependencyResolutionError):
    """A package does not support the requested target framework."""

    def __init__(self, package_id: str, target_framework: str, details: Optional[dict] = None):
        """
        Initialize incompatible framework error.

        Args:
            package_id: Package identifier
            target_framework: Framework the install targets
            details: Additional error details
        """
        super().__init__(
            f"Package '{package_id}' does not support target framework '{target_framework}'",
            package_id=package_id,
            details=details
        )
        self.target_framework = target_framework


class MinClientVersionError(PkgRestoreError):
    """A package requires a newer client than the one running."""

    def __init__(self, package_id: str, required: str, current: str, details: Optional[dict] = None):
        super().__init__(
            f"Package '{package_id}' requires pkgrestore version {required} or above, "
            f"but the current version is {current}",
            details=details
        )
        self.package_id = package_id
        self.required = required
        self.current = current


class UninstallError(PkgRestoreError):
    """A package cannot be uninstalled because others depend on it."""

    def __init__(self, package_id: str, dependents: list, details: Optional[dict] = None):
        super().__init__(
            f"Unable to uninstall '{package_id}' because it is required by {', '.join(dependents)}",
            details=details
        )
        self.package_id = package_id
        self.dependents = dependents


class ManifestError(PkgRestoreError):
    """The package reference manifest is missing or malformed."""

    def __init__(self, message: str, manifest_file: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.manifest_file = manifest_file
