# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for PackageManager and the pieces it is built from

Tests transactional installs and rollback, uninstall with dependents,
the extractor, the transaction log, the reference manifest and restore
consent.
"""

import json
from pathlib import PurePosixPath

import pytest

from pkgrestore.configuration import ConfigLayer, ConfigurationDefaults, Settings
from pkgrestore.core.errors import DependencyResolutionError, ManifestError, PackageNotFoundError, UninstallError
from pkgrestore.core.filesystem import PhysicalFileSystem
from pkgrestore.install import (
    OperationScope,
    PackageExtractor,
    PackageManager,
    PackagePathResolver,
    PackageReferenceFile,
    PackageRestoreConsent,
    TransactionLogger,
)
from pkgrestore.install.extractor import is_culture_file
from pkgrestore.install.scope import PackageUsage
from pkgrestore.models import OperationName, TransactionStatus
from pkgrestore.repositories import LocalPackageRepository, Package

from conftest import add_feed_package, installed_directories, write_config


class BrokenContentRepository(LocalPackageRepository):
    """Feed whose Contoso.Logging archives cannot be fetched"""

    def find_all_versions(self, package_id):
        packages = super().find_all_versions(package_id)
        if package_id.lower() != "contoso.logging":
            return packages
        return [Package(p.metadata, p.source, fetch=self._fail) for p in packages]

    @staticmethod
    def _fail():
        raise ConnectionError("connection reset while downloading")


@pytest.fixture
def out(tmp_path):
    return tmp_path / "packages"


@pytest.fixture
def manager(feed, out):
    return PackageManager(LocalPackageRepository(feed), out)


def _install(manager, package_id, version):
    package = manager.source_repository.find_package(package_id, version)
    with manager.create_scope(OperationName.INSTALL, package_id, version) as scope:
        return manager.install_package(package, scope)


class TestInstallPackage:
    """Test install_package"""

    def test_installs_dependencies_first(self, manager, out):
        assert _install(manager, "Contoso.Logging", "1.0.0") is True

        assert installed_directories(out) == ["Contoso.Core.1.0.0", "Contoso.Logging.1.0.0"]
        assert manager.is_installed("Contoso.Core", "1.0.0")
        assert manager.is_installed("Contoso.Logging")

    def test_installed_dependency_is_reused(self, manager, out):
        _install(manager, "Contoso.Core", "2.0.0")
        _install(manager, "Contoso.Logging", "1.0.0")

        assert installed_directories(out) == ["Contoso.Core.2.0.0", "Contoso.Logging.1.0.0"]

    def test_scope_records_created_packages(self, manager, out):
        _install(manager, "Contoso.Logging", "1.0.0")

        entry = manager.transaction_logger.list_transactions(limit=1)[0]
        assert entry["status"] == TransactionStatus.COMPLETED.value
        assert entry["packages_installed"] == ["Contoso.Core 1.0.0", "Contoso.Logging 1.0.0"]

    def test_failure_rolls_back_everything_written(self, feed, out):
        manager = PackageManager(BrokenContentRepository(feed), out)

        with pytest.raises(ConnectionError):
            _install(manager, "Contoso.Logging", "1.0.0")

        assert installed_directories(out) == []
        statuses = [entry["status"] for entry in manager.transaction_logger.list_transactions()]
        assert statuses[:2] == [TransactionStatus.ROLLED_BACK.value, TransactionStatus.FAILED.value]

    def test_rollback_leaves_previous_installs_alone(self, feed, out):
        _install(PackageManager(LocalPackageRepository(feed), out), "Contoso.Core", "1.0.0")
        manager = PackageManager(BrokenContentRepository(feed), out)

        with pytest.raises(ConnectionError):
            _install(manager, "Contoso.Logging", "1.0.0")

        assert installed_directories(out) == ["Contoso.Core.1.0.0"]

    def test_rollback_keeps_dependency_another_scope_relies_on(self, manager, feed, out):
        add_feed_package(feed, "Contoso.App", "1.0.0", {"Contoso.Core": "1.0.0"})
        add_feed_package(feed, "Contoso.Tool", "1.0.0", {"Contoso.Core": "1.0.0"})
        source = manager.source_repository

        with pytest.raises(ConnectionError):
            with manager.create_scope(OperationName.RESTORE, "Contoso.App", "1.0.0") as app_scope:
                manager.install_package(source.find_package("Contoso.Core", "1.0.0"), app_scope)
                with manager.create_scope(OperationName.RESTORE, "Contoso.Tool", "1.0.0") as tool_scope:
                    assert manager.install_package(source.find_package("Contoso.Tool", "1.0.0"), tool_scope) is True
                raise ConnectionError("connection reset while downloading Contoso.App")

        assert installed_directories(out) == ["Contoso.Core.1.0.0", "Contoso.Tool.1.0.0"]

    def test_rollback_removes_dependency_nobody_else_uses(self, manager, out):
        source = manager.source_repository

        with pytest.raises(ConnectionError):
            with manager.create_scope(OperationName.RESTORE, "Contoso.Logging", "1.0.0") as scope:
                manager.install_package(source.find_package("Contoso.Core", "1.0.0"), scope)
                raise ConnectionError("connection reset while downloading Contoso.Logging")

        assert installed_directories(out) == []

    def test_exclusive_dependency_conflict_writes_nothing(self, feed, out):
        add_feed_package(feed, "Contoso.Shared", "1.0.0")
        add_feed_package(feed, "Contoso.Shared", "2.0.0")
        add_feed_package(feed, "Contoso.Old", "1.0.0", {"Contoso.Shared": "[1.0.0]"})
        add_feed_package(feed, "Contoso.New", "1.0.0", {"Contoso.Shared": "2.0.0"})
        manager = PackageManager(LocalPackageRepository(feed), out, use_side_by_side_paths=False)
        _install(manager, "Contoso.Old", "1.0.0")

        with pytest.raises(DependencyResolutionError, match="Contoso.Shared 1.0.0 is already installed"):
            _install(manager, "Contoso.New", "1.0.0")

        assert installed_directories(out) == ["Contoso.Old", "Contoso.Shared"]
        assert manager.local_repository.find_package("Contoso.Shared").metadata.version == "1.0.0"

    def test_exclusive_paths(self, feed, out):
        manager = PackageManager(LocalPackageRepository(feed), out, use_side_by_side_paths=False)
        _install(manager, "Contoso.Core", "1.0.0")

        assert installed_directories(out) == ["Contoso.Core"]
        assert manager.local_repository.find_package("Contoso.Core") is not None


class TestUninstallPackage:
    """Test uninstall_package"""

    def test_refuses_when_other_packages_depend(self, manager):
        _install(manager, "Contoso.Logging", "1.0.0")

        with pytest.raises(UninstallError, match="Contoso.Logging"):
            manager.uninstall_package("Contoso.Core")

    def test_force_removes_anyway(self, manager, out):
        _install(manager, "Contoso.Logging", "1.0.0")

        assert manager.uninstall_package("Contoso.Core", force=True) == ["Contoso.Core 1.0.0"]
        assert installed_directories(out) == ["Contoso.Logging.1.0.0"]

    def test_removes_orphaned_dependencies(self, manager, out):
        _install(manager, "Contoso.Logging", "1.0.0")

        removed = manager.uninstall_package("Contoso.Logging", remove_dependencies=True)

        assert removed == ["Contoso.Logging 1.0.0", "Contoso.Core 1.0.0"]
        assert installed_directories(out) == []

    def test_keeps_dependencies_outside_the_constraint(self, manager, feed, out):
        add_feed_package(feed, "Contoso.Core", "4.0.0")
        _install(manager, "Contoso.Core", "4.0.0")
        _install(manager, "Contoso.Logging", "1.0.0")

        manager.uninstall_package("Contoso.Logging", remove_dependencies=True)

        assert installed_directories(out) == ["Contoso.Core.4.0.0"]

    def test_missing_package_raises(self, manager):
        with pytest.raises(PackageNotFoundError):
            manager.uninstall_package("Contoso.Core")

    def test_uninstall_is_logged(self, manager):
        _install(manager, "Contoso.Core", "1.0.0")
        manager.uninstall_package("Contoso.Core")

        entry = manager.transaction_logger.list_transactions(limit=1)[0]
        assert entry["operation"] == OperationName.UNINSTALL.value
        assert entry["status"] == TransactionStatus.COMPLETED.value


class TestPackageExtractor:
    """Test writing package directories"""

    def test_existing_install_is_not_rewritten(self, feed, tmp_path):
        package = LocalPackageRepository(feed).find_package("Contoso.Core", "1.0.0")
        target = tmp_path / "packages" / "Contoso.Core.1.0.0"
        extractor = PackageExtractor()

        assert extractor.install(target, package) is True
        (target / "marker.txt").write_text("kept")
        assert extractor.install(target, package) is False
        assert (target / "marker.txt").exists()

    def test_directory_without_record_is_replaced(self, feed, tmp_path):
        package = LocalPackageRepository(feed).find_package("Contoso.Core", "1.0.0")
        target = tmp_path / "packages" / "Contoso.Core.1.0.0"
        target.mkdir(parents=True)
        (target / "partial.txt").write_text("left over")

        assert PackageExtractor().install(target, package) is True
        assert not (target / "partial.txt").exists()
        assert (target / "Contoso.Core.1.0.0.pkg.json").is_file()

    def test_directory_holding_another_version_is_refused(self, feed, tmp_path):
        repository = LocalPackageRepository(feed)
        target = tmp_path / "packages" / "Contoso.Core"
        extractor = PackageExtractor()
        extractor.install(target, repository.find_package("Contoso.Core", "1.0.0"))

        with pytest.raises(DependencyResolutionError, match="Contoso.Core.1.0.0.pkg.json"):
            extractor.install(target, repository.find_package("Contoso.Core", "2.0.0"))

        assert sorted(p.name for p in target.glob("*.pkg.json")) == ["Contoso.Core.1.0.0.pkg.json"]

    @pytest.mark.parametrize("path,expected", [
        ("lib/fr/a.resources.dll", True),
        ("lib/net45/FR/a.resources.dll", True),
        ("lib/net45/a.dll", False),
        ("content/fr/readme.txt", False),
        ("lib/fr.txt", False),
    ])
    def test_culture_file_detection(self, path, expected):
        assert is_culture_file(PurePosixPath(path), "fr") is expected


class TestPackagePathResolver:
    """Test directory naming"""

    def test_side_by_side_and_exclusive_names(self, tmp_path):
        assert PackagePathResolver(tmp_path).get_install_path("A", "1.0") == tmp_path / "A.1.0"
        assert PackagePathResolver(tmp_path, False).get_install_path("A", "1.0") == tmp_path / "A"
        assert PackagePathResolver(tmp_path, False).get_record_path("A", "1.0") == tmp_path / "A" / "A.1.0.pkg.json"


class TestTransactionLogger:
    """Test the append-only transaction log"""

    def test_logs_and_lists_most_recent_first(self, tmp_path):
        logger = TransactionLogger(tmp_path / "logs" / "transactions.jsonl")
        first = logger.create_transaction(OperationName.INSTALL, "A", "1.0")
        second = logger.create_transaction(OperationName.RESTORE)
        logger.log(first)
        logger.log(second)

        assert [entry["id"] for entry in logger.list_transactions()] == [second.id, first.id]
        assert logger.list_transactions(limit=1)[0]["package_name"] is None
        assert logger.list_transactions()[1]["package_name"] == "A"

    def test_skips_corrupt_lines(self, tmp_path):
        log_file = tmp_path / "transactions.jsonl"
        logger = TransactionLogger(log_file)
        logger.log(logger.create_transaction(OperationName.INSTALL, "A"))
        with open(log_file, "a") as f:
            f.write("{not json\n")

        assert len(logger.list_transactions()) == 1

    def test_missing_log_is_empty(self, tmp_path):
        assert TransactionLogger(tmp_path / "none.jsonl").list_transactions() == []


class TestOperationScope:
    """Test the transactional bracket directly"""

    def test_rollback_removes_tracked_paths_newest_first(self, tmp_path):
        logger = TransactionLogger(tmp_path / "transactions.jsonl")
        created = tmp_path / "created"
        created.mkdir()
        (created / "file.txt").write_text("x")
        loose = tmp_path / "loose.txt"
        loose.write_text("y")

        with pytest.raises(RuntimeError):
            with OperationScope(OperationName.RESTORE, logger, "A", "1.0") as scope:
                scope.track(created, "A 1.0")
                scope.track(loose)
                raise RuntimeError("boom")

        assert not created.exists()
        assert not loose.exists()
        entry = logger.list_transactions(limit=1)[0]
        assert entry["status"] == TransactionStatus.ROLLED_BACK.value
        assert entry["error"] == "boom"

    def test_rollback_keeps_paths_claimed_by_another_scope(self, tmp_path):
        logger = TransactionLogger(tmp_path / "transactions.jsonl")
        usage = PackageUsage()
        shared = tmp_path / "Shared.1.0"
        shared.mkdir()

        with OperationScope(OperationName.RESTORE, logger, "B", usage=usage) as other:
            assert other.claim([tmp_path / "missing"]) is False
            assert other.claim([shared]) is True

        with pytest.raises(RuntimeError):
            with OperationScope(OperationName.RESTORE, logger, "A", usage=usage) as scope:
                scope.track(shared, "Shared 1.0")
                raise RuntimeError("boom")

        assert shared.is_dir()

    def test_failed_scope_releases_its_claims(self, tmp_path):
        logger = TransactionLogger(tmp_path / "transactions.jsonl")
        usage = PackageUsage()
        shared = tmp_path / "Shared.1.0"
        shared.mkdir()

        with pytest.raises(RuntimeError):
            with OperationScope(OperationName.RESTORE, logger, "B", usage=usage) as other:
                other.claim([shared])
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            with OperationScope(OperationName.RESTORE, logger, "A", usage=usage) as scope:
                scope.track(shared, "Shared 1.0")
                raise RuntimeError("boom")

        assert not shared.exists()

    def test_success_keeps_paths(self, tmp_path):
        logger = TransactionLogger(tmp_path / "transactions.jsonl")
        created = tmp_path / "created"
        created.mkdir()

        with OperationScope(OperationName.INSTALL, logger) as scope:
            scope.track(created)

        assert created.exists()
        lines = (tmp_path / "transactions.jsonl").read_text().splitlines()
        assert [json.loads(line)["status"] for line in lines] == ["in_progress", "completed"]


class TestPackageReferenceFile:
    """Test the packages.config manifest"""

    def test_add_entry_creates_and_updates(self, tmp_path):
        manifest = PackageReferenceFile(tmp_path / "packages.config")
        manifest.add_entry("Contoso.Core", "1.0.0", target_framework="net45")
        manifest.add_entry("contoso.core", "2.0.0")
        manifest.add_entry("Contoso.Tools", "1.0.0", development_dependency=True)

        references = manifest.get_package_references()

        assert [(r.id, r.version) for r in references] == [("contoso.core", "2.0.0"), ("Contoso.Tools", "1.0.0")]
        assert references[0].target_framework == "net45"
        assert references[1].is_development_dependency is True

    def test_unversioned_entries_allowed_when_not_required(self, tmp_path):
        path = tmp_path / "packages.config"
        path.write_text('<packages><package id="Contoso.Core" /></packages>')

        references = PackageReferenceFile(path).get_package_references(require_version=False)

        assert references[0].version is None

    @pytest.mark.parametrize("body,message", [
        ('<packages><package version="1.0" /></packages>', "no id"),
        ('<packages><package id="A" version="one" /></packages>', "invalid version"),
        ("<packages>", "Unable to parse"),
    ])
    def test_malformed_manifests_raise(self, tmp_path, body, message):
        path = tmp_path / "packages.config"
        path.write_text(body)

        with pytest.raises(ManifestError, match=message):
            PackageReferenceFile(path).get_package_references()


class TestPackageRestoreConsent:
    """Test consent resolution"""

    @pytest.fixture
    def settings(self, tmp_path):
        return Settings([ConfigLayer(PhysicalFileSystem(tmp_path / "user"), "pkgrestore.config")])

    def test_not_granted_by_default(self, settings):
        assert PackageRestoreConsent(settings).is_granted is False

    def test_granted_in_settings(self, settings):
        consent = PackageRestoreConsent(settings)
        consent.is_granted_in_settings = True

        assert settings.get_value("packageRestore", "enabled") == "true"
        assert consent.is_granted is True

    def test_falls_back_to_configuration_defaults(self, settings, tmp_path):
        write_config(
            tmp_path / "machine" / "pkgrestore.defaults.config",
            '<packageRestore><add key="enabled" value="1" /></packageRestore>'
        )
        defaults = ConfigurationDefaults.load(tmp_path / "machine")

        assert PackageRestoreConsent(settings, defaults).is_granted is True

    def test_settings_override_defaults(self, settings, tmp_path):
        write_config(
            tmp_path / "machine" / "pkgrestore.defaults.config",
            '<packageRestore><add key="enabled" value="true" /></packageRestore>'
        )
        settings.set_value("packageRestore", "enabled", "false")

        consent = PackageRestoreConsent(settings, ConfigurationDefaults.load(tmp_path / "machine"))

        assert consent.is_granted is False

    def test_environment_override(self, settings, monkeypatch):
        monkeypatch.setenv("PKGRESTORE_RESTORE_CONSENT", "1")

        assert PackageRestoreConsent(settings).is_granted is True
