# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Settings Chain

Single responsibility: Merge configuration layers into one settings view

Layers are held in an ordered list. Index 0 is the head: the last layer
constructed, and the first one visited by a lookup. Lookups visit every
layer in order and keep the last match that changed, so the layer at the
end of the list (the working directory file) has the final word.
Writes go to the first layer in the list that is not machine-wide.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from pkgrestore.configuration.layer import ConfigLayer, MachineWideConfigLayer, read_layer
from pkgrestore.core.config import get_config
from pkgrestore.core.errors import InvalidArgumentError, NoWritableConfigurationError
from pkgrestore.core.filesystem import PathLike, PhysicalFileSystem
from pkgrestore.models import SettingValue

logger = logging.getLogger(__name__)

CONFIG_SECTION = "config"
REPOSITORY_PATH_KEY = "repositoryPath"


def _require(value: Optional[str], name: str):
    if not value:
        raise InvalidArgumentError(name)


class Settings:
    """Layered view over every configuration file that applies to a directory"""

    def __init__(self, layers: Sequence[ConfigLayer]):
        """
        Initialize the chain.

        Args:
            layers: Layers in lookup order, head first
        """
        if not layers:
            raise InvalidArgumentError("layers")
        self._layers: Tuple[ConfigLayer, ...] = tuple(layers)

    @classmethod
    def from_file(cls, file_system: PhysicalFileSystem, file_name: str, is_machine_wide: bool = False) -> "Settings":
        """Single-layer chain over one file."""
        layer_type = MachineWideConfigLayer if is_machine_wide else ConfigLayer
        return cls([layer_type(file_system, file_name)])

    @property
    def layers(self) -> Tuple[ConfigLayer, ...]:
        return self._layers

    @property
    def head(self) -> ConfigLayer:
        return self._layers[0]

    @property
    def is_machine_wide(self) -> bool:
        return self.head.is_machine_wide

    @property
    def config_file_path(self) -> Path:
        return self.head.config_file_path

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_value(self, section: str, key: str, is_path: bool = False) -> Optional[str]:
        """
        Look up one value across the chain.

        Each layer is handed the element matched so far and answers with
        its own match; a clear element resets the match to nothing.
        Whenever a layer changes the match, the value is recomputed
        against that layer, so relative paths anchor at the file that
        supplied them.

        Args:
            section: Section name
            key: Entry key (case-insensitive)
            is_path: Resolve relative values against the owning file

        Returns:
            The value, or None if no layer defines the key
        """
        _require(section, "section")
        _require(key, "key")

        current = None
        result = None
        for layer in self._layers:
            matched = layer.find_element(section, key, current)
            if matched is not current:
                result = layer.element_to_value(matched, is_path)
                current = matched
        return result

    def get_values(self, section: str, is_path: bool = False) -> List[Tuple[str, str]]:
        """Every (key, value) entry of a section, layer by layer, without collapsing."""
        return [(s.key, s.value) for s in self.get_setting_values(section, is_path)]

    def get_setting_values(self, section: str, is_path: bool = False) -> List[SettingValue]:
        """
        Every entry of a section with its provenance.

        Each layer contributes its own list in chain order; a clear element
        only empties the list of the layer that holds it.
        """
        _require(section, "section")

        values: List[SettingValue] = []
        for layer in self._layers:
            for key, value in layer.read_values(section, is_path):
                values.append(SettingValue(key=key, value=value, is_machine_wide=layer.is_machine_wide))
        return values

    def get_nested_values(self, section: str, key: str) -> List[Tuple[str, str]]:
        """Entries of <section><key> from every layer in chain order."""
        _require(section, "section")
        _require(key, "key")

        values: List[Tuple[str, str]] = []
        for layer in self._layers:
            values.extend(layer.read_nested_values(section, key))
        return values

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _writable_layer(self) -> ConfigLayer:
        for layer in self._layers:
            if not layer.is_machine_wide:
                return layer
        raise NoWritableConfigurationError()

    def set_value(self, section: str, key: str, value: str):
        _require(section, "section")
        _require(key, "key")
        self._writable_layer().set_value(section, key, value)

    def set_values(self, section: str, values: Iterable[Tuple[str, str]]):
        _require(section, "section")
        values = list(values)
        for key, _ in values:
            _require(key, "key")
        self._writable_layer().set_values(section, values)

    def set_nested_values(self, section: str, key: str, values: Iterable[Tuple[str, str]]):
        _require(section, "section")
        _require(key, "key")
        self._writable_layer().set_nested_values(section, key, list(values))

    def delete_value(self, section: str, key: str) -> bool:
        """
        Remove a key from the writable layer.

        Returns:
            True if the key existed there
        """
        _require(section, "section")
        _require(key, "key")
        return self._writable_layer().delete_value(section, key)

    def delete_section(self, section: str) -> bool:
        _require(section, "section")
        return self._writable_layer().delete_section(section)

    def __repr__(self) -> str:
        return f"Settings({[str(layer.config_file_path) for layer in self._layers]})"


class NullSettings:
    """
    Chain with no layers.

    Every query answers absent; every write fails.
    """

    layers: Tuple[ConfigLayer, ...] = ()
    is_machine_wide = False
    config_file_path = None

    def get_value(self, section: str, key: str, is_path: bool = False) -> Optional[str]:
        return None

    def get_values(self, section: str, is_path: bool = False) -> List[Tuple[str, str]]:
        return []

    def get_setting_values(self, section: str, is_path: bool = False) -> List[SettingValue]:
        return []

    def get_nested_values(self, section: str, key: str) -> List[Tuple[str, str]]:
        return []

    def set_value(self, section: str, key: str, value: str):
        raise NoWritableConfigurationError()

    def set_values(self, section: str, values: Iterable[Tuple[str, str]]):
        raise NoWritableConfigurationError()

    def set_nested_values(self, section: str, key: str, values: Iterable[Tuple[str, str]]):
        raise NoWritableConfigurationError()

    def delete_value(self, section: str, key: str) -> bool:
        raise NoWritableConfigurationError()

    def delete_section(self, section: str) -> bool:
        raise NoWritableConfigurationError()


SettingsChain = Union[Settings, NullSettings]


class MachineWideSettings:
    """
    Machine-wide layers loaded from a base directory.

    For paths ("a", "b") the files are read from <base>/a/b, <base>/a and
    <base>, most specific first.
    """

    def __init__(self, base_directory: Optional[PathLike] = None, *paths: str):
        if base_directory is None:
            base_directory = get_config().machine_config_path
        self.base_directory = Path(base_directory)
        self.paths = paths
        self._settings: Optional[List[ConfigLayer]] = None

    @property
    def settings(self) -> List[ConfigLayer]:
        if self._settings is None:
            self._settings = load_machine_wide_settings(PhysicalFileSystem(self.base_directory), *self.paths)
        return self._settings


def load_machine_wide_settings(file_system: PhysicalFileSystem, *paths: str) -> List[ConfigLayer]:
    """
    Load every *.config file under the machine-wide directory tree.

    Args:
        file_system: File system rooted at the machine-wide base directory
        paths: Sub-directory names, outermost first

    Returns:
        Machine-wide layers, most specific directory first
    """
    layers: List[ConfigLayer] = []
    for depth in range(len(paths), -1, -1):
        directory = os.path.join(*paths[:depth]) if depth else "."
        for config_file in file_system.list_files(directory, "*.config"):
            layer = read_layer(file_system, str(config_file), is_machine_wide=True)
            if layer is not None:
                logger.debug(f"Loaded machine wide configuration {config_file}")
                layers.append(layer)
    return layers


def _walk_directory_layers(working_directory: Path, settings_file_name: str) -> List[ConfigLayer]:
    layers: List[ConfigLayer] = []
    directory = working_directory
    while True:
        if (directory / settings_file_name).is_file():
            layer = read_layer(PhysicalFileSystem(directory), settings_file_name)
            if layer is not None:
                layers.append(layer)
        parent = directory.parent
        if parent == directory:
            break
        directory = parent
    return layers


def _load_user_layer(
    working_directory: Optional[Path],
    config_file_name: Optional[str],
    user_config_dir: Path,
    settings_file_name: str
) -> Optional[ConfigLayer]:
    if config_file_name:
        root = working_directory if working_directory is not None else Path.cwd()
        return ConfigLayer(PhysicalFileSystem(root), config_file_name)

    try:
        return ConfigLayer(PhysicalFileSystem(user_config_dir), settings_file_name)
    except OSError as e:
        logger.warning(f"User configuration directory {user_config_dir} is not usable: {e}")
        return None


def load_default_settings(
    working_directory: Optional[PathLike],
    config_file_name: Optional[str] = None,
    machine_wide_settings: Optional[MachineWideSettings] = None,
    user_config_dir: Optional[PathLike] = None,
    settings_file_name: Optional[str] = None
) -> SettingsChain:
    """
    Build the settings chain for a working directory.

    Layers are collected from the working directory up to the filesystem
    root, then the user file (created when missing), then the machine-wide
    files. The last one collected becomes the head.

    Args:
        working_directory: Directory to start the walk from; None skips the walk
        config_file_name: Explicit user config file, relative to the working directory
        machine_wide_settings: Provider of machine-wide layers
        user_config_dir: Directory holding the conventional user file
        settings_file_name: Name of the per-directory settings file

    Returns:
        Settings chain, or NullSettings if nothing could be loaded

    Raises:
        ConfigurationParseError: If the user config file cannot be parsed
    """
    config = get_config()
    settings_file_name = settings_file_name or config.settings_file_name
    user_config_dir = Path(user_config_dir).expanduser() if user_config_dir else config.user_config_path
    root = Path(os.path.abspath(working_directory)) if working_directory is not None else None

    collected: List[ConfigLayer] = []
    if root is not None:
        collected.extend(_walk_directory_layers(root, settings_file_name))

    user_layer = _load_user_layer(root, config_file_name, user_config_dir, settings_file_name)
    if user_layer is not None:
        collected.append(user_layer)

    if machine_wide_settings is not None:
        collected.extend(machine_wide_settings.settings)

    if not collected:
        logger.warning("No configuration files could be loaded")
        return NullSettings()

    logger.debug(f"Loaded {len(collected)} configuration layers for {root}")
    return Settings(list(reversed(collected)))


def get_repository_path(settings: SettingsChain) -> Optional[str]:
    """Configured packages directory, anchored at the file that set it."""
    return settings.get_value(CONFIG_SECTION, REPOSITORY_PATH_KEY, is_path=True)
