# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Fixtures and Utilities

Provides isolated config directories, a client configuration pointing at
them, and helpers that lay out package feeds and config files on disk.
"""

import io
import logging
import os
import sys
import tarfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from cryptography.fernet import Fernet

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from pkgrestore.core import config as config_module
from pkgrestore.core.config import ClientConfig
from pkgrestore.models import PackageDependency, PackageMetadata
from pkgrestore.repositories.base import record_file_name


# ============================================================================
# Environment
# ============================================================================

@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep tests away from real consent overrides and config paths"""
    monkeypatch.delenv("PKGRESTORE_RESTORE_CONSENT", raising=False)
    monkeypatch.delenv("PKGRESTORE_CONFIG_PATH", raising=False)
    monkeypatch.setenv("PKGRESTORE_CREDENTIAL_KEY", Fernet.generate_key().decode("ascii"))
    yield
    # configure_logging may have bound a handler to a captured stream
    logging.getLogger("pkgrestore").handlers = []


@pytest.fixture
def client_config(tmp_path, monkeypatch) -> ClientConfig:
    """
    Client configuration rooted in the test's temp directory.

    Also installed as the global config so code calling get_config()
    sees the same directories.
    """
    config = ClientConfig(
        user_config_dir=str(tmp_path / "user"),
        machine_config_dir=str(tmp_path / "machine"),
        machine_cache_dir=str(tmp_path / "cache"),
    )
    monkeypatch.setattr(config_module, "_config", config)
    return config


# ============================================================================
# File helpers
# ============================================================================

def write_config(path: Path, body: str) -> Path:
    """Write a configuration document, wrapping the body in <configuration>."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f"<configuration>\n{body}\n</configuration>\n",
        encoding="utf-8"
    )
    return path


def make_metadata(
    package_id: str,
    version: str,
    dependencies: Optional[Dict[str, Optional[str]]] = None,
    **kwargs
) -> PackageMetadata:
    return PackageMetadata(
        id=package_id,
        version=version,
        dependencies=[PackageDependency(id=k, version=v) for k, v in (dependencies or {}).items()],
        **kwargs
    )


def add_feed_package(
    feed: Path,
    package_id: str,
    version: str,
    dependencies: Optional[Dict[str, Optional[str]]] = None,
    files: Optional[Dict[str, str]] = None,
    **kwargs
) -> Path:
    """
    Lay out a package in a directory feed.

    Args:
        feed: Feed directory
        package_id: Package id
        version: Package version
        dependencies: Dependency id -> version constraint
        files: Relative path -> content; defaults to one lib file

    Returns:
        Package directory
    """
    metadata = make_metadata(package_id, version, dependencies, **kwargs)
    directory = feed / f"{package_id}.{version}"
    directory.mkdir(parents=True, exist_ok=True)
    if files is None:
        files = {f"lib/net45/{package_id}.dll": f"{package_id} {version}"}
    for relative, content in files.items():
        target = directory / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    (directory / record_file_name(package_id, version)).write_text(
        metadata.model_dump_json(indent=2), encoding="utf-8"
    )
    return directory


def make_archive(files: Dict[str, str], top_level: Optional[str] = None) -> bytes:
    """Build a gzipped tar archive in memory."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for relative, content in files.items():
            data = content.encode("utf-8")
            name = f"{top_level}/{relative}" if top_level else relative
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def installed_directories(root: Path) -> List[str]:
    """Package directories under an install root, sorted."""
    if not root.is_dir():
        return []
    return sorted(p.name for p in root.iterdir() if p.is_dir() and not p.name.startswith("."))


@pytest.fixture
def feed(tmp_path) -> Path:
    """
    Directory feed with a small package graph:

        Contoso.Core     1.0.0, 2.0.0, 3.0.0-beta
        Contoso.Logging  1.0.0 -> Contoso.Core [1.0.0,3.0.0)
        Contoso.Core.fr  1.0.0 -> Contoso.Core [1.0.0]  (French satellite)
    """
    feed = tmp_path / "feed"
    add_feed_package(feed, "Contoso.Core", "1.0.0")
    add_feed_package(feed, "Contoso.Core", "2.0.0")
    add_feed_package(feed, "Contoso.Core", "3.0.0-beta")
    add_feed_package(feed, "Contoso.Logging", "1.0.0", {"Contoso.Core": "[1.0.0,3.0.0)"})
    add_feed_package(
        feed,
        "Contoso.Core.fr",
        "1.0.0",
        {"Contoso.Core": "[1.0.0]"},
        files={
            "lib/net45/fr/Contoso.Core.resources.dll": "fr resources",
            "content/readme.txt": "satellite readme",
        },
        language="fr",
    )
    return feed
