# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
pkgrestore client configuration.
YAML for behavior. Env vars ONLY for secrets.

The layered package settings (pkgrestore.config files) are handled by
pkgrestore.configuration; this module only covers how the client itself
runs: where it looks for those files, caches, limits and logging.
"""

import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class ClientConfig:
    """
    Immutable client configuration.
    All values from YAML. No hidden state.
    """

    # -- Settings files --
    settings_file_name: str = "pkgrestore.config"
    user_config_dir: str = "~/.config/pkgrestore"
    machine_config_dir: str = "/etc/pkgrestore"
    solution_settings_folder: str = ".pkgrestore"

    # -- Install layout --
    packages_dir_name: str = "packages"
    machine_cache_dir: str = "~/.cache/pkgrestore/packages"
    transaction_log_name: str = "transactions.jsonl"

    # -- HTTP --
    http_timeout: float = 100.0
    default_connection_limit: int = 2

    # -- Restore --
    max_parallel_restores: int = 10

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def user_config_path(self) -> Path:
        return Path(self.user_config_dir).expanduser()

    @property
    def machine_config_path(self) -> Path:
        return Path(self.machine_config_dir).expanduser()

    @property
    def machine_cache_path(self) -> Path:
        return Path(self.machine_cache_dir).expanduser()


# =============================================================================
# SECRETS - The ONLY thing from environment variables
# =============================================================================

def get_credential_key() -> Optional[str]:
    """Fernet key used to protect stored source passwords."""
    return os.getenv("PKGRESTORE_CREDENTIAL_KEY")


def get_restore_consent_override() -> Optional[str]:
    """Restore consent granted out of band, e.g. on build agents."""
    return os.getenv("PKGRESTORE_RESTORE_CONSENT")


# =============================================================================
# LOADER
# =============================================================================

def _default_user_config_dir() -> str:
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "pkgrestore")
    return "~/.config/pkgrestore"


def _default_cache_dir() -> str:
    xdg = os.getenv("XDG_CACHE_HOME")
    if xdg:
        return str(Path(xdg) / "pkgrestore" / "packages")
    return "~/.cache/pkgrestore/packages"


def load_config(path: Optional[str] = None) -> ClientConfig:
    """
    Load configuration from YAML.
    Returns defaults if file doesn't exist.
    """
    defaults = ClientConfig(
        user_config_dir=_default_user_config_dir(),
        machine_cache_dir=_default_cache_dir(),
    )

    if not path or not Path(path).exists():
        return defaults

    with open(path) as f:
        y = yaml.safe_load(f) or {}

    # Helper to safely navigate nested dicts
    def get(d: dict, *keys, default=None):
        for k in keys:
            if not isinstance(d, dict):
                return default
            d = d.get(k, {})
        return d if d != {} else default

    return ClientConfig(
        # Settings files
        settings_file_name=get(y, "settings", "file_name") or defaults.settings_file_name,
        user_config_dir=get(y, "settings", "user_dir") or defaults.user_config_dir,
        machine_config_dir=get(y, "settings", "machine_dir") or defaults.machine_config_dir,
        solution_settings_folder=get(y, "settings", "solution_folder") or defaults.solution_settings_folder,

        # Install layout
        packages_dir_name=get(y, "install", "packages_dir_name") or defaults.packages_dir_name,
        machine_cache_dir=get(y, "install", "machine_cache_dir") or defaults.machine_cache_dir,
        transaction_log_name=get(y, "install", "transaction_log") or defaults.transaction_log_name,

        # HTTP
        http_timeout=float(get(y, "http", "timeout") or defaults.http_timeout),
        default_connection_limit=int(get(y, "http", "connection_limit") or defaults.default_connection_limit),

        # Restore
        max_parallel_restores=int(get(y, "restore", "max_parallel") or defaults.max_parallel_restores),

        # Logging
        log_level=os.getenv("LOG_LEVEL", get(y, "logging", "level") or defaults.log_level),
        log_format=get(y, "logging", "format") or defaults.log_format,
    )


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = load_config(os.getenv("PKGRESTORE_CONFIG_PATH"))
    return _config


def reload_config() -> ClientConfig:
    """Force reload configuration."""
    global _config
    _config = None
    return get_config()
