# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Configuration Layer

Single responsibility: Read and write one pkgrestore.config document

A document looks like:

    <configuration>
      <packageSources>
        <clear />
        <add key="main" value="https://packages.example.com/" />
      </packageSources>
      <packageSourceCredentials>
        <main>
          <add key="Username" value="build" />
        </main>
      </packageSourceCredentials>
    </configuration>
"""

import logging
import os
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pkgrestore.core.errors import (
    ConfigurationParseError,
    InvalidArgumentError,
    NoWritableConfigurationError,
)
from pkgrestore.core.filesystem import PhysicalFileSystem

logger = logging.getLogger(__name__)

ROOT_ELEMENT = "configuration"

_ESCAPED_CHAR = re.compile(r"_x[0-9A-Fa-f]{4}_")
_URI_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


def encode_local_name(name: str) -> str:
    """
    Encode an arbitrary section name into a legal XML element name.

    Characters that cannot appear in an element name become _xHHHH_,
    and a literal _xHHHH_ sequence escapes its leading underscore.
    """
    encoded = []
    for index, char in enumerate(name):
        if char == "_" and _ESCAPED_CHAR.match(name, index):
            encoded.append("_x005F_")
        elif char.isalpha() or char == "_":
            encoded.append(char)
        elif index > 0 and (char.isdigit() or char in ".-"):
            encoded.append(char)
        else:
            encoded.append(f"_x{ord(char):04X}_")
    return "".join(encoded)


def is_relative_path(value: str) -> bool:
    """True when a setting value is a relative path rather than a URI or rooted path."""
    if not value:
        return False
    if os.path.isabs(value) or value.startswith(("/", "\\")):
        return False
    return not _URI_SCHEME.match(value)


def _local_name(element: ET.Element) -> str:
    tag = element.tag if isinstance(element.tag, str) else ""
    return tag.rsplit("}", 1)[-1]


def _is_add(element: ET.Element) -> bool:
    return _local_name(element).lower() == "add"


def _is_clear(element: ET.Element) -> bool:
    return _local_name(element).lower() == "clear"


class ConfigLayer:
    """One parsed configuration file that may be edited and saved"""

    def __init__(self, file_system: PhysicalFileSystem, file_name: str):
        """
        Load a configuration file, creating it if it does not exist.

        Args:
            file_system: File system the file name is relative to
            file_name: Configuration file name or path

        Raises:
            InvalidArgumentError: If file_name is empty
            ConfigurationParseError: If the file exists but is not valid XML
        """
        if file_system is None:
            raise InvalidArgumentError("file_system")
        if not file_name:
            raise InvalidArgumentError("file_name")

        self.file_system = file_system
        self.file_name = file_name
        self._root = self._load_or_create()

    @property
    def is_machine_wide(self) -> bool:
        return False

    @property
    def config_file_path(self) -> Path:
        return self.file_system.get_full_path(self.file_name)

    @property
    def config_directory(self) -> Path:
        return self.config_file_path.parent

    def _load_or_create(self) -> ET.Element:
        if self.file_system.file_exists(self.file_name):
            text = self.file_system.read_text(self.file_name)
            try:
                return ET.fromstring(text)
            except ET.ParseError as e:
                raise ConfigurationParseError(
                    f"Unable to parse config file '{self.config_file_path}': {e}",
                    config_file=str(self.config_file_path)
                ) from e

        root = ET.Element(ROOT_ELEMENT)
        self._write(root)
        logger.info(f"Created configuration file {self.config_file_path}")
        return root

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _get_section(self, parent: ET.Element, section: str) -> Optional[ET.Element]:
        return parent.find(encode_local_name(section))

    def find_element(self, section: str, key: str, current: Optional[ET.Element]) -> Optional[ET.Element]:
        """
        Match an add element for a key, starting from a previous match.

        A clear element resets the match; a later add with the key
        replaces it. Returns `current` untouched when this layer has no
        such section.
        """
        section_element = self._get_section(self._root, section)
        if section_element is None:
            return current
        return self._find_element_by_key(section_element, key, current)

    @staticmethod
    def _find_element_by_key(
        section_element: ET.Element,
        key: str,
        current: Optional[ET.Element]
    ) -> Optional[ET.Element]:
        result = current
        for element in section_element:
            if _is_clear(element):
                result = None
            elif _is_add(element) and (element.get("key") or "").lower() == key.lower():
                result = element
        return result

    def _resolve_path(self, value: str) -> str:
        if not is_relative_path(value):
            return value
        return os.path.normpath(os.path.join(self.config_directory, value))

    def element_to_value(self, element: Optional[ET.Element], is_path: bool) -> Optional[str]:
        """Text value of a matched element, anchored to this file when it is a path."""
        if element is None:
            return None
        value = element.get("value")
        if not is_path or not value:
            return value
        return self._resolve_path(value)

    def _read_value(self, element: ET.Element, is_path: bool) -> Tuple[str, str]:
        key = element.get("key")
        value = element.get("value")
        if not key or value is None:
            raise ConfigurationParseError(
                f"Unable to parse config file '{self.config_file_path}': "
                f"add elements need both key and value",
                config_file=str(self.config_file_path)
            )
        if is_path:
            value = self._resolve_path(value)
        return key, value

    def _read_section(self, section_element: ET.Element, is_path: bool) -> List[Tuple[str, str]]:
        values: List[Tuple[str, str]] = []
        for element in section_element:
            if _is_add(element):
                values.append(self._read_value(element, is_path))
            elif _is_clear(element):
                values.clear()
        return values

    def read_values(self, section: str, is_path: bool = False) -> List[Tuple[str, str]]:
        """All entries of a section in this layer, honoring clear within it."""
        section_element = self._get_section(self._root, section)
        if section_element is None:
            return []
        return self._read_section(section_element, is_path)

    def read_nested_values(self, section: str, key: str) -> List[Tuple[str, str]]:
        """Entries of the <section><key> sub-section in this layer."""
        section_element = self._get_section(self._root, section)
        if section_element is None:
            return []
        sub_section = self._get_section(section_element, key)
        if sub_section is None:
            return []
        return self._read_section(sub_section, is_path=False)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _get_or_create_section(self, parent: ET.Element, section: str) -> ET.Element:
        element = self._get_section(parent, section)
        if element is None:
            element = ET.SubElement(parent, encode_local_name(section))
        return element

    def _set_value_internal(self, section_element: ET.Element, key: str, value: str):
        if not key:
            raise InvalidArgumentError("key")
        if value is None:
            raise InvalidArgumentError("value")

        element = self._find_element_by_key(section_element, key, None)
        if element is not None:
            element.set("value", value)
        else:
            ET.SubElement(section_element, "add", {"key": key, "value": value})

    def set_value(self, section: str, key: str, value: str):
        section_element = self._get_or_create_section(self._root, section)
        self._set_value_internal(section_element, key, value)
        self.save()

    def set_values(self, section: str, values: Sequence[Tuple[str, str]]):
        section_element = self._get_or_create_section(self._root, section)
        for key, value in values:
            self._set_value_internal(section_element, key, value)
        self.save()

    def set_nested_values(self, section: str, key: str, values: Sequence[Tuple[str, str]]):
        section_element = self._get_or_create_section(self._root, section)
        element = self._get_or_create_section(section_element, key)
        for nested_key, value in values:
            self._set_value_internal(element, nested_key, value)
        self.save()

    def delete_value(self, section: str, key: str) -> bool:
        section_element = self._get_section(self._root, section)
        if section_element is None:
            return False
        element = self._find_element_by_key(section_element, key, None)
        if element is None:
            return False
        section_element.remove(element)
        self.save()
        return True

    def delete_section(self, section: str) -> bool:
        section_element = self._get_section(self._root, section)
        if section_element is None:
            return False
        self._root.remove(section_element)
        self.save()
        return True

    def save(self):
        """Persist the document immediately."""
        self._write(self._root)

    def _write(self, root: ET.Element):
        ET.indent(root, space="  ")
        body = ET.tostring(root, encoding="unicode")
        with self.file_system.scoped_write(self.file_name) as writer:
            writer.write('<?xml version="1.0" encoding="utf-8"?>\n')
            writer.write(body)
            writer.write("\n")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}('{self.config_file_path}')"


class MachineWideConfigLayer(ConfigLayer):
    """
    Read-only layer provisioned centrally.

    Never written: the chain routes writes past it, and save() refuses.
    """

    def _load_or_create(self) -> ET.Element:
        if not self.file_system.file_exists(self.file_name):
            return ET.Element(ROOT_ELEMENT)
        return super()._load_or_create()

    @property
    def is_machine_wide(self) -> bool:
        return True

    def save(self):
        raise NoWritableConfigurationError(
            f"Machine wide config file '{self.config_file_path}' cannot be modified."
        )


def read_layer(
    file_system: PhysicalFileSystem,
    file_name: str,
    is_machine_wide: bool = False
) -> Optional[ConfigLayer]:
    """
    Read a layer, dropping it when the file cannot be parsed.

    Returns:
        The layer, or None if parsing failed
    """
    layer_type = MachineWideConfigLayer if is_machine_wide else ConfigLayer
    try:
        return layer_type(file_system, file_name)
    except ConfigurationParseError as e:
        logger.warning(f"Ignoring configuration file: {e.message}")
        return None
