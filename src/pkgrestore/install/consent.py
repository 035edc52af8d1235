# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Restore Consent

Single responsibility: Decide whether restore may download packages
"""

from typing import Optional

from pkgrestore.configuration.defaults import ConfigurationDefaults
from pkgrestore.configuration.settings import SettingsChain
from pkgrestore.core.config import get_restore_consent_override

PACKAGE_RESTORE_SECTION = "packageRestore"
ENABLED_KEY = "enabled"


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("true", "1")


class PackageRestoreConsent:
    """
    Consent is granted by PKGRESTORE_RESTORE_CONSENT, or by
    packageRestore/enabled in the settings chain, falling back to the
    configuration defaults when the chain does not say.
    """

    def __init__(self, settings: SettingsChain, configuration_defaults: Optional[ConfigurationDefaults] = None):
        self.settings = settings
        self.configuration_defaults = configuration_defaults

    @property
    def is_granted_in_settings(self) -> bool:
        value = self.settings.get_value(PACKAGE_RESTORE_SECTION, ENABLED_KEY)
        if not value and self.configuration_defaults is not None:
            value = self.configuration_defaults.default_package_restore_consent
        return _is_true(value)

    @is_granted_in_settings.setter
    def is_granted_in_settings(self, granted: bool):
        self.settings.set_value(PACKAGE_RESTORE_SECTION, ENABLED_KEY, "true" if granted else "false")

    @property
    def is_granted(self) -> bool:
        return _is_true(get_restore_consent_override()) or self.is_granted_in_settings
