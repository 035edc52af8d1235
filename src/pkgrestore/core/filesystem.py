# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Physical File System

Single responsibility: Rooted file access with atomic writes
"""

import fnmatch
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, TextIO, Union

PathLike = Union[str, Path]


class PhysicalFileSystem:
    """File access relative to a root directory"""

    def __init__(self, root: PathLike):
        """
        Initialize file system.

        Args:
            root: Base path used to resolve relative paths
        """
        self.root = Path(os.path.abspath(Path(root).expanduser()))

    def get_full_path(self, path: PathLike) -> Path:
        """Resolve a path against the root; absolute paths pass through normalized."""
        return Path(os.path.normpath(self.root / Path(path)))

    def exists(self, path: PathLike) -> bool:
        return self.get_full_path(path).exists()

    def file_exists(self, path: PathLike) -> bool:
        return self.get_full_path(path).is_file()

    def read_text(self, path: PathLike) -> str:
        return self.get_full_path(path).read_text(encoding="utf-8")

    @contextmanager
    def scoped_write(self, path: PathLike) -> Iterator[TextIO]:
        """
        Open a writer whose content replaces the file only on clean exit.

        The data goes to a temp file in the target directory and is moved
        into place with os.replace, so readers never see a partial file.

        Args:
            path: File to write

        Yields:
            Text writer
        """
        target = self.get_full_path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as writer:
                yield writer
                writer.flush()
                os.fsync(writer.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def list_files(self, directory: PathLike, pattern: str = "*") -> List[Path]:
        """
        List files directly under a directory matching a glob pattern.

        Args:
            directory: Directory relative to the root
            pattern: fnmatch-style pattern (case-insensitive)

        Returns:
            Sorted list of full file paths, empty if the directory is missing
        """
        full = self.get_full_path(directory)
        if not full.is_dir():
            return []
        pattern = pattern.lower()
        return sorted(
            p for p in full.iterdir()
            if p.is_file() and fnmatch.fnmatch(p.name.lower(), pattern)
        )
