# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for package repositories

Tests the directory repository, the aggregate over several sources and
the repository factory.
"""

from pathlib import Path
from typing import List

import pytest

from pkgrestore.core.errors import SourceConstructionError
from pkgrestore.models import PackageSource, SemanticVersion
from pkgrestore.repositories import (
    AggregateRepository,
    HttpPackageRepository,
    LocalPackageRepository,
    Package,
    PackageRepository,
    PackageRepositoryFactory,
    get_aggregate,
)

from conftest import add_feed_package, make_archive, make_metadata


class FailingRepository(PackageRepository):
    """Repository whose every lookup fails"""

    source = "https://broken.example.com/"

    def find_all_versions(self, package_id: str) -> List[Package]:
        raise ConnectionError("feed unreachable")


class TestLocalPackageRepository:
    """Test the directory repository"""

    def test_finds_all_versions(self, feed):
        repository = LocalPackageRepository(feed)

        versions = sorted(str(p.version) for p in repository.find_all_versions("contoso.core"))

        assert versions == ["1.0.0", "2.0.0", "3.0.0-beta"]

    def test_prefix_match_does_not_leak_other_ids(self, feed):
        """Contoso.Core.fr lives in a Contoso.Core.* directory but is another package"""
        repository = LocalPackageRepository(feed)

        assert all(p.id == "Contoso.Core" for p in repository.find_all_versions("Contoso.Core"))

    def test_find_package_without_version_returns_highest(self, feed):
        package = LocalPackageRepository(feed).find_package("Contoso.Core")

        assert str(package.version) == "3.0.0-beta"
        assert package.get_content_path() == feed / "Contoso.Core.3.0.0-beta"

    def test_find_exact_version(self, feed):
        repository = LocalPackageRepository(feed)

        assert repository.find_package("Contoso.Core", "2.0") is not None
        assert repository.find_package("Contoso.Core", "9.0.0") is None
        assert not repository.exists("Missing.Package")

    def test_missing_root_is_empty(self, tmp_path):
        repository = LocalPackageRepository(tmp_path / "nowhere")

        assert repository.find_all_versions("Contoso.Core") == []
        assert repository.get_packages() == []

    def test_skips_unreadable_records(self, feed):
        broken = feed / "Broken.1.0.0"
        broken.mkdir()
        (broken / "Broken.1.0.0.pkg.json").write_text("{not json")

        assert LocalPackageRepository(feed).find_all_versions("Broken") == []

    def test_add_archive_unwraps_package_folder(self, tmp_path):
        repository = LocalPackageRepository(tmp_path / "cache")
        data = make_archive({"lib/net45/Contoso.Core.dll": "binary"}, top_level="Contoso.Core.1.0.0")

        directory = repository.add_archive(make_metadata("Contoso.Core", "1.0.0"), data)

        assert directory == tmp_path / "cache" / "Contoso.Core.1.0.0"
        assert (directory / "lib" / "net45" / "Contoso.Core.dll").read_text() == "binary"
        assert repository.exists("Contoso.Core", "1.0.0")
        assert not any((tmp_path / "cache" / ".staging").iterdir())


class TestAggregateRepository:
    """Test composition of repositories"""

    def test_union_of_versions_prefers_earlier_members(self, tmp_path, feed):
        other = tmp_path / "other"
        add_feed_package(other, "Contoso.Core", "2.0.0")
        add_feed_package(other, "Contoso.Core", "4.0.0")
        first = LocalPackageRepository(feed)
        aggregate = AggregateRepository([first, LocalPackageRepository(other)])

        packages = {str(p.version): p for p in aggregate.find_all_versions("Contoso.Core")}

        assert sorted(packages) == ["1.0.0", "2.0.0", "3.0.0-beta", "4.0.0"]
        assert packages["2.0.0"].source == first.source

    def test_find_package_without_version_returns_highest_across_members(self, tmp_path, feed):
        other = tmp_path / "other"
        add_feed_package(other, "Contoso.Core", "4.0.0")
        aggregate = AggregateRepository([LocalPackageRepository(feed), LocalPackageRepository(other)])

        assert str(aggregate.find_package("Contoso.Core").version) == "4.0.0"

    def test_exact_version_short_circuits(self, feed):
        aggregate = AggregateRepository([LocalPackageRepository(feed), FailingRepository()])

        assert aggregate.find_package("Contoso.Core", SemanticVersion("1.0.0")) is not None

    def test_failing_member_propagates_by_default(self, feed):
        aggregate = AggregateRepository([FailingRepository(), LocalPackageRepository(feed)])

        with pytest.raises(ConnectionError):
            aggregate.find_all_versions("Contoso.Core")

    def test_failing_member_is_skipped_when_ignored(self, feed):
        aggregate = AggregateRepository(
            [FailingRepository(), LocalPackageRepository(feed)],
            ignore_failing_repositories=True
        )

        assert len(aggregate.find_all_versions("Contoso.Core")) == 3
        assert aggregate.exists("Contoso.Core", "1.0.0")
        assert aggregate.find_package("Contoso.Core", "2.0.0") is not None

    def test_set_connection_limit_reaches_members(self, tmp_path):
        http = HttpPackageRepository("https://feed.example.com/", cache_directory=tmp_path / "cache")
        aggregate = AggregateRepository([http, LocalPackageRepository(tmp_path)])

        aggregate.set_connection_limit(6)

        assert http.connection_limit == 6


class TestGetAggregate:
    """Test building an aggregate from sources"""

    def test_skips_disabled_sources(self, feed):
        created = []

        def factory(location):
            created.append(location)
            return LocalPackageRepository(location)

        get_aggregate(factory, [
            PackageSource.from_location(str(feed)),
            PackageSource(name="off", location="/srv/off", is_enabled=False),
        ])

        assert created == [str(feed)]

    def test_construction_failure_raises(self, tmp_path, client_config):
        factory = PackageRepositoryFactory(client_config)

        with pytest.raises(SourceConstructionError) as exc_info:
            get_aggregate(factory, [PackageSource.from_location(str(tmp_path / "missing"))])
        assert exc_info.value.source == str(tmp_path / "missing")

    def test_construction_failure_is_skipped_when_ignored(self, tmp_path, feed, client_config):
        factory = PackageRepositoryFactory(client_config)

        aggregate = get_aggregate(
            factory,
            [PackageSource.from_location(str(tmp_path / "missing")), PackageSource.from_location(str(feed))],
            ignore_failing_repositories=True
        )

        assert [r.source for r in aggregate.repositories] == [str(feed)]

    def test_foreign_factory_errors_are_wrapped(self):
        def factory(location):
            raise RuntimeError("boom")

        with pytest.raises(SourceConstructionError, match="boom"):
            get_aggregate(factory, [PackageSource.from_location("https://x/")])


class TestPackageRepositoryFactory:
    """Test create_repository"""

    def test_http_locations(self, client_config):
        repository = PackageRepositoryFactory(client_config).create_repository("https://feed.example.com/v1/")

        assert isinstance(repository, HttpPackageRepository)
        assert repository.source == "https://feed.example.com/v1"
        assert repository.cache.root == Path(client_config.machine_cache_dir)

    def test_directory_and_file_urls(self, feed, client_config):
        factory = PackageRepositoryFactory(client_config)

        assert isinstance(factory(str(feed)), LocalPackageRepository)
        assert isinstance(factory(feed.as_uri()), LocalPackageRepository)

    @pytest.mark.parametrize("location", ["", "ftp://feed.example.com/", "/does/not/exist"])
    def test_rejects_unusable_locations(self, location, client_config):
        with pytest.raises(SourceConstructionError):
            PackageRepositoryFactory(client_config).create_repository(location)
