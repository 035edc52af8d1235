# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

from .defaults import ConfigurationDefaults
from .layer import ConfigLayer, MachineWideConfigLayer
from .settings import (
    MachineWideSettings,
    NullSettings,
    Settings,
    SettingsChain,
    get_repository_path,
    load_default_settings,
    load_machine_wide_settings,
)

__all__ = [
    "ConfigLayer",
    "ConfigurationDefaults",
    "MachineWideConfigLayer",
    "MachineWideSettings",
    "NullSettings",
    "Settings",
    "SettingsChain",
    "get_repository_path",
    "load_default_settings",
    "load_machine_wide_settings",
]
