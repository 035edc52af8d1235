# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Source Provider

Single responsibility: Load, reconcile and persist the package source list

Sources live in three sections of the settings chain:
- packageSources: one <add key="name" value="location"/> per source
- disabledPackageSources: one <add key="name" value="true"/> per disabled source
- packageSourceCredentials/<name>: Username plus Password or ClearTextPassword

Enablement and credentials are kept apart from the source list so they
survive rewrites of it.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from pkgrestore.configuration.settings import SettingsChain
from pkgrestore.models import PackageSource, SettingValue, SourceCredentials
from pkgrestore.repositories.aggregate import AggregateRepository, get_aggregate
from pkgrestore.sources.protection import decrypt_string, encrypt_string

logger = logging.getLogger(__name__)

PACKAGE_SOURCES_SECTION = "packageSources"
DISABLED_PACKAGE_SOURCES_SECTION = "disabledPackageSources"
CREDENTIALS_SECTION = "packageSourceCredentials"
USERNAME_KEY = "Username"
PASSWORD_KEY = "Password"
CLEAR_TEXT_PASSWORD_KEY = "ClearTextPassword"


class PackageSourceProvider:
    """Registry of package sources backed by a settings chain"""

    def __init__(
        self,
        settings: SettingsChain,
        provider_default_sources: Optional[Sequence[PackageSource]] = None,
        migrate_package_sources: Optional[Dict[PackageSource, PackageSource]] = None,
        configuration_default_sources: Optional[Sequence[PackageSource]] = None
    ):
        """
        Initialize source provider.

        Args:
            settings: Settings chain sources are read from and saved to
            provider_default_sources: Fallback sources when nothing is configured
            migrate_package_sources: Rewrite table, old source -> new source
            configuration_default_sources: Curated defaults reconciled into the list
        """
        self.settings = settings
        self.provider_default_sources = list(provider_default_sources or [])
        self.migrate_package_sources = migrate_package_sources
        self.configuration_default_sources = list(configuration_default_sources or [])

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load_package_sources(self) -> List[PackageSource]:
        """
        Load the ordered, de-duplicated source list.

        Returns:
            Sources with enablement, credentials and official flags applied
        """
        setting_values = self.settings.get_setting_values(PACKAGE_SOURCES_SECTION, is_path=True)
        disabled = {key.lower() for key, _ in self.settings.get_values(DISABLED_PACKAGE_SOURCES_SECTION)}

        sources = []
        for value in self._deduplicate(setting_values):
            source = PackageSource(
                name=value.key,
                location=value.value,
                is_enabled=value.key.lower() not in disabled,
                is_machine_wide=value.is_machine_wide,
            )
            source.credentials = self._read_credentials(source.name)
            sources.append(source)

        if self.migrate_package_sources:
            self._migrate_sources(sources)

        if self.configuration_default_sources:
            self._set_default_package_sources(sources)
        elif not sources and self.provider_default_sources:
            logger.debug("No package sources configured, using provider defaults")
            return [source.clone() for source in self.provider_default_sources]

        return sources

    @staticmethod
    def _deduplicate(values: Sequence[SettingValue]) -> List[SettingValue]:
        # Last occurrence of a name wins and keeps its own position;
        # machine-wide sources go after everything else
        last_index = {value.key.lower(): index for index, value in enumerate(values)}
        survivors = [value for index, value in enumerate(values) if last_index[value.key.lower()] == index]
        return (
            [value for value in survivors if not value.is_machine_wide]
            + [value for value in survivors if value.is_machine_wide]
        )

    def _read_credentials(self, source_name: str) -> Optional[SourceCredentials]:
        values = {
            key.lower(): value
            for key, value in self.settings.get_nested_values(CREDENTIALS_SECTION, source_name)
        }
        user_name = values.get(USERNAME_KEY.lower())
        encrypted = values.get(PASSWORD_KEY.lower())

        if encrypted:
            password = decrypt_string(encrypted)
            is_clear_text = False
        else:
            password = values.get(CLEAR_TEXT_PASSWORD_KEY.lower())
            is_clear_text = True

        if not user_name or not password:
            if user_name or password:
                logger.debug(f"Ignoring incomplete credentials for source '{source_name}'")
            return None

        return SourceCredentials(user_name=user_name, password=password, is_password_clear_text=is_clear_text)

    def _migrate_sources(self, sources: List[PackageSource]):
        changed = False
        for index in range(len(sources) - 1, -1, -1):
            source = sources[index]
            target = self.migrate_package_sources.get(source)
            if target is None or target == source:
                continue

            if target in sources:
                del sources[index]
            else:
                migrated = target.clone()
                migrated.is_enabled = source.is_enabled
                migrated.credentials = source.credentials
                sources[index] = migrated
            logger.info(f"Migrated package source {source} to {target}")
            changed = True

        if changed:
            self.save_package_sources(sources)

    def _set_default_package_sources(self, sources: List[PackageSource]):
        for default in self.configuration_default_sources:
            name_and_location = next(
                (s for s in sources
                 if s.name.lower() == default.name.lower()
                 and s.location.lower() == default.location.lower()),
                None
            )
            if name_and_location is not None:
                name_and_location.is_official = True
                continue

            if any(s.location.lower() == default.location.lower() for s in sources):
                continue

            same_name = next((s for s in sources if s.name.lower() == default.name.lower()), None)
            if same_name is not None:
                same_name.location = default.location
                same_name.is_official = True
                continue

            added = default.clone()
            added.is_official = True
            sources.append(added)

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save_package_sources(self, sources: Sequence[PackageSource]):
        """
        Rewrite the source sections of the writable configuration file.

        Machine-wide sources are not written back, but their disabled
        state is.
        """
        self.settings.delete_section(PACKAGE_SOURCES_SECTION)
        self.settings.set_values(
            PACKAGE_SOURCES_SECTION,
            [(s.name, s.location) for s in sources if not s.is_machine_wide]
        )

        self.settings.delete_section(DISABLED_PACKAGE_SOURCES_SECTION)
        disabled = [(s.name, "true") for s in sources if not s.is_enabled]
        if disabled:
            self.settings.set_values(DISABLED_PACKAGE_SOURCES_SECTION, disabled)

        self.settings.delete_section(CREDENTIALS_SECTION)
        for source in sources:
            if source.credentials is None:
                continue
            if source.is_password_clear_text:
                password_entry = (CLEAR_TEXT_PASSWORD_KEY, source.password)
            else:
                password_entry = (PASSWORD_KEY, encrypt_string(source.password))
            self.settings.set_nested_values(
                CREDENTIALS_SECTION,
                source.name,
                [(USERNAME_KEY, source.user_name), password_entry]
            )

        logger.info(f"Saved {len(sources)} package sources to {self.settings.config_file_path}")

    def disable_package_source(self, source: PackageSource):
        self.settings.set_value(DISABLED_PACKAGE_SOURCES_SECTION, source.name, "true")

    def is_package_source_enabled(self, source: PackageSource) -> bool:
        return not self.settings.get_value(DISABLED_PACKAGE_SOURCES_SECTION, source.name)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve_source(self, value: str) -> str:
        """
        Map a source name or location to a location.

        Returns:
            Location of the first enabled source matching by name or
            location, else the value unchanged
        """
        for source in self.load_package_sources():
            if not source.is_enabled:
                continue
            if source.name.lower() == value.lower() or source.location.lower() == value.lower():
                return source.location
        return value

    def get_enabled_package_sources(self) -> List[PackageSource]:
        return [source for source in self.load_package_sources() if source.is_enabled]

    def get_aggregate(
        self,
        factory: Callable[[PackageSource], object],
        ignore_failing_repositories: bool = False
    ) -> AggregateRepository:
        """Aggregate repository over the enabled sources."""
        return get_aggregate(factory, self.get_enabled_package_sources(), ignore_failing_repositories)


class CachedPackageSourceProvider:
    """
    Snapshot of a provider's source list.

    Loaded once so concurrent restores do not re-read the chain or
    decrypt passwords per package.
    """

    def __init__(self, source_provider: PackageSourceProvider):
        self._source_provider = source_provider
        self._sources = source_provider.load_package_sources()

    @property
    def settings(self) -> SettingsChain:
        return self._source_provider.settings

    def load_package_sources(self) -> List[PackageSource]:
        return [source.clone() for source in self._sources]

    def save_package_sources(self, sources: Sequence[PackageSource]):
        self._source_provider.save_package_sources(sources)
        self._sources = [source.clone() for source in sources]

    def disable_package_source(self, source: PackageSource):
        self._source_provider.disable_package_source(source)
        for cached in self._sources:
            if cached.name.lower() == source.name.lower():
                cached.is_enabled = False

    def is_package_source_enabled(self, source: PackageSource) -> bool:
        return self._source_provider.is_package_source_enabled(source)

    def resolve_source(self, value: str) -> str:
        for source in self._sources:
            if not source.is_enabled:
                continue
            if source.name.lower() == value.lower() or source.location.lower() == value.lower():
                return source.location
        return value

    def get_enabled_package_sources(self) -> List[PackageSource]:
        return [source.clone() for source in self._sources if source.is_enabled]

    def get_aggregate(
        self,
        factory: Callable[[PackageSource], object],
        ignore_failing_repositories: bool = False
    ) -> AggregateRepository:
        return get_aggregate(factory, self.get_enabled_package_sources(), ignore_failing_repositories)
