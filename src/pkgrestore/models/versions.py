# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Versions

Single responsibility: Parse, compare and constrain package versions
"""

import re
from functools import total_ordering
from typing import Optional

_VERSION_PATTERN = re.compile(
    r"^(?P<numbers>\d+(?:\.\d+){0,3})(?:-(?P<special>[0-9A-Za-z][0-9A-Za-z.\-]*))?$"
)


@total_ordering
class SemanticVersion:
    """
    Package version: one to four numeric parts plus an optional prerelease tag.

    Missing numeric parts compare as zero, so 1.0 == 1.0.0.0. A release
    sorts above any prerelease of the same numbers; prerelease tags compare
    case-insensitively.
    """

    def __init__(self, text: str):
        match = _VERSION_PATTERN.match(text.strip()) if text else None
        if not match:
            raise ValueError(f"'{text}' is not a valid version string")
        self.original = text.strip()
        parts = [int(p) for p in match.group("numbers").split(".")]
        self.parts = tuple(parts + [0] * (4 - len(parts)))
        self.special = match.group("special") or ""

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["SemanticVersion"]:
        """Parse a version, passing None through."""
        if text is None:
            return None
        return cls(text)

    @property
    def is_prerelease(self) -> bool:
        return bool(self.special)

    def _key(self):
        return (self.parts, 0 if self.special else 1, self.special.lower())

    def __eq__(self, other) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.original

    def __repr__(self) -> str:
        return f"SemanticVersion('{self.original}')"


class VersionSpec:
    """
    Version constraint in interval notation.

    Examples:
        1.0        -> 1.0 <= v
        [1.0]      -> v == 1.0
        (1.0,)     -> 1.0 < v
        [1.0,2.0)  -> 1.0 <= v < 2.0
        (,2.0]     -> v <= 2.0
    """

    def __init__(
        self,
        min_version: Optional[SemanticVersion] = None,
        max_version: Optional[SemanticVersion] = None,
        is_min_inclusive: bool = True,
        is_max_inclusive: bool = False
    ):
        self.min_version = min_version
        self.max_version = max_version
        self.is_min_inclusive = is_min_inclusive
        self.is_max_inclusive = is_max_inclusive

    @classmethod
    def parse(cls, text: Optional[str]) -> "VersionSpec":
        """
        Parse a constraint string. Empty or None means any version.

        Raises:
            ValueError: If the constraint is malformed
        """
        if text is None or not text.strip():
            return cls()

        value = text.strip()
        if value[0] not in "[(":
            return cls(min_version=SemanticVersion(value), is_min_inclusive=True)

        if len(value) < 3 or value[-1] not in "])":
            raise ValueError(f"'{text}' is not a valid version constraint")

        is_min_inclusive = value[0] == "["
        is_max_inclusive = value[-1] == "]"
        inner = value[1:-1]
        bounds = inner.split(",")

        if len(bounds) == 1:
            # [1.0] is the only legal single-bound form
            if not (is_min_inclusive and is_max_inclusive):
                raise ValueError(f"'{text}' is not a valid version constraint")
            exact = SemanticVersion(bounds[0])
            return cls(exact, exact, True, True)

        if len(bounds) != 2:
            raise ValueError(f"'{text}' is not a valid version constraint")

        low = SemanticVersion(bounds[0]) if bounds[0].strip() else None
        high = SemanticVersion(bounds[1]) if bounds[1].strip() else None
        if low is None and high is None:
            raise ValueError(f"'{text}' is not a valid version constraint")
        if low is not None and high is not None and high < low:
            raise ValueError(f"'{text}' has a maximum below its minimum")
        return cls(low, high, is_min_inclusive, is_max_inclusive)

    @classmethod
    def exact(cls, version: SemanticVersion) -> "VersionSpec":
        return cls(version, version, True, True)

    def satisfies(self, version: SemanticVersion) -> bool:
        """Check whether a version falls inside the interval."""
        if self.min_version is not None:
            if self.is_min_inclusive:
                if version < self.min_version:
                    return False
            elif version <= self.min_version:
                return False
        if self.max_version is not None:
            if self.is_max_inclusive:
                if version > self.max_version:
                    return False
            elif version >= self.max_version:
                return False
        return True

    def __str__(self) -> str:
        if self.min_version is not None and self.max_version is None and self.is_min_inclusive:
            return str(self.min_version)
        if self.min_version is not None and self.min_version == self.max_version:
            return f"[{self.min_version}]"
        low = str(self.min_version) if self.min_version else ""
        high = str(self.max_version) if self.max_version else ""
        return f"{'[' if self.is_min_inclusive else '('}{low}, {high}{']' if self.is_max_inclusive else ')'}"
