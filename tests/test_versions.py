# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for package versions and version constraints
"""

import pytest

from pkgrestore.models import SemanticVersion, VersionSpec


class TestSemanticVersion:
    """Test version parsing and ordering"""

    def test_missing_parts_compare_as_zero(self):
        """1.0 and 1.0.0.0 are the same version"""
        assert SemanticVersion("1.0") == SemanticVersion("1.0.0.0")
        assert hash(SemanticVersion("1.0")) == hash(SemanticVersion("1.0.0"))

    def test_release_sorts_above_prerelease(self):
        """A release is newer than any prerelease of the same numbers"""
        assert SemanticVersion("1.0.0-beta") < SemanticVersion("1.0.0")
        assert SemanticVersion("1.0.0-alpha") < SemanticVersion("1.0.0-beta")
        assert SemanticVersion("1.0.0-BETA") == SemanticVersion("1.0.0-beta")

    def test_numeric_parts_compare_numerically(self):
        assert SemanticVersion("1.10.0") > SemanticVersion("1.9.0")

    def test_keeps_original_text(self):
        assert str(SemanticVersion("1.0")) == "1.0"

    @pytest.mark.parametrize("text", ["", "abc", "1.0.0.0.0", "1..0", "-beta"])
    def test_rejects_invalid_versions(self, text):
        with pytest.raises(ValueError):
            SemanticVersion(text)


class TestVersionSpec:
    """Test interval notation constraints"""

    def test_plain_version_is_minimum(self):
        spec = VersionSpec.parse("1.0")
        assert spec.satisfies(SemanticVersion("1.0"))
        assert spec.satisfies(SemanticVersion("5.0"))
        assert not spec.satisfies(SemanticVersion("0.9"))

    def test_exact_version(self):
        spec = VersionSpec.parse("[1.0]")
        assert spec.satisfies(SemanticVersion("1.0.0"))
        assert not spec.satisfies(SemanticVersion("1.0.1"))

    def test_half_open_range(self):
        spec = VersionSpec.parse("[1.0, 2.0)")
        assert spec.satisfies(SemanticVersion("1.5"))
        assert not spec.satisfies(SemanticVersion("2.0"))

    def test_exclusive_minimum_and_open_bounds(self):
        assert not VersionSpec.parse("(1.0,)").satisfies(SemanticVersion("1.0"))
        assert VersionSpec.parse("(,2.0]").satisfies(SemanticVersion("2.0"))

    def test_empty_constraint_allows_anything(self):
        assert VersionSpec.parse(None).satisfies(SemanticVersion("0.0.1"))
        assert VersionSpec.parse("  ").satisfies(SemanticVersion("99.0"))

    @pytest.mark.parametrize("text", ["(1.0)", "[,]", "[2.0,1.0]", "[1.0,2.0", "[1,2,3]"])
    def test_rejects_malformed_constraints(self, text):
        with pytest.raises(ValueError):
            VersionSpec.parse(text)
