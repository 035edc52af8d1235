# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Configuration Defaults

Single responsibility: Expose the curated defaults document

The defaults file lives in the machine-wide config directory and is never
written by the client. It lists the default package sources, an optional
default push source and the default restore consent.
"""

import logging
from pathlib import Path
from typing import List, Optional

from pkgrestore.configuration.layer import MachineWideConfigLayer
from pkgrestore.configuration.settings import NullSettings, Settings, SettingsChain
from pkgrestore.core.config import get_config
from pkgrestore.core.errors import ConfigurationParseError
from pkgrestore.core.filesystem import PathLike, PhysicalFileSystem
from pkgrestore.models import PackageSource

logger = logging.getLogger(__name__)

DEFAULTS_FILE_NAME = "pkgrestore.defaults.config"


class ConfigurationDefaults:
    """Read-only defaults shipped with an installation"""

    def __init__(self, settings: SettingsChain):
        self._settings = settings
        self._default_sources: Optional[List[PackageSource]] = None

    @classmethod
    def load(cls, directory: Optional[PathLike] = None, file_name: str = DEFAULTS_FILE_NAME) -> "ConfigurationDefaults":
        """
        Load the defaults file, falling back to empty defaults.

        Args:
            directory: Directory holding the defaults file (machine config dir by default)
            file_name: Defaults file name
        """
        directory = Path(directory) if directory is not None else get_config().machine_config_path
        file_system = PhysicalFileSystem(directory)
        if not file_system.file_exists(file_name):
            return cls(NullSettings())
        try:
            return cls(Settings([MachineWideConfigLayer(file_system, file_name)]))
        except ConfigurationParseError as e:
            logger.warning(f"Ignoring configuration defaults: {e.message}")
            return cls(NullSettings())

    @property
    def default_package_sources(self) -> List[PackageSource]:
        """Default sources, with disabled entries marked."""
        if self._default_sources is None:
            disabled = {key.lower() for key, _ in self._settings.get_values("disabledPackageSources")}
            self._default_sources = [
                PackageSource(
                    name=key,
                    location=value,
                    is_enabled=key.lower() not in disabled,
                    is_official=True,
                )
                for key, value in self._settings.get_values("packageSources")
            ]
        return [source.clone() for source in self._default_sources]

    @property
    def default_push_source(self) -> Optional[str]:
        return self._settings.get_value("config", "DefaultPushSource")

    @property
    def default_package_restore_consent(self) -> Optional[str]:
        return self._settings.get_value("packageRestore", "enabled")
