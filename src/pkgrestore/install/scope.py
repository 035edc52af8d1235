# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Operation Scope

Single responsibility: Bracket one install or restore and undo it on failure

Everything written inside the scope is tracked; if the block raises,
tracked paths are removed newest first and the transaction is logged as
rolled back. Paths that existed before the scope are never tracked, and a
tracked package directory that another scope has come to rely on is kept,
so a failing scope cannot take packages away from its siblings.
"""

import logging
import os
import shutil
import threading
from contextlib import ExitStack
from datetime import datetime, UTC
from pathlib import Path
from typing import Dict, List, Optional, Set

from pkgrestore.install.transactions import TransactionLogger
from pkgrestore.models import OperationName, TransactionRecord, TransactionStatus

logger = logging.getLogger(__name__)


def _key(path) -> Path:
    return Path(os.path.abspath(path))


class PackageUsage:
    """
    Which scopes rely on package directories they did not create.

    Shared by every scope of one install root. A claim lasts until the
    claiming scope rolls back; claims of completed scopes are kept.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[Path, Set["OperationScope"]] = {}

    def claim(self, paths: List[Path], scope: "OperationScope") -> bool:
        """
        Record that a scope relies on existing package directories.

        Returns:
            False if any of the directories is gone, in which case nothing is claimed
        """
        with self._lock:
            paths = [_key(p) for p in paths]
            if not all(p.is_dir() for p in paths):
                return False
            for path in paths:
                self._users.setdefault(path, set()).add(scope)
            return True

    def remove_unless_used(self, path: Path, scope: "OperationScope") -> bool:
        """Remove a path created by a scope unless another scope relies on it."""
        path = _key(path)
        with self._lock:
            if self._users.get(path, set()) - {scope}:
                return False
            if path.is_dir():
                shutil.rmtree(path, ignore_errors=True)
            elif path.exists():
                path.unlink()
            return True

    def release(self, scope: "OperationScope"):
        with self._lock:
            for path in list(self._users):
                self._users[path].discard(scope)
                if not self._users[path]:
                    del self._users[path]


class OperationScope:
    """Transactional bracket around one top-level operation"""

    def __init__(
        self,
        operation: OperationName,
        transaction_logger: TransactionLogger,
        package_name: Optional[str] = None,
        version: Optional[str] = None,
        repository=None,
        usage: Optional[PackageUsage] = None
    ):
        """
        Initialize scope.

        Args:
            operation: Scope name (Install, Restore, Uninstall)
            transaction_logger: Where scope state changes are recorded
            package_name: Top-level package id
            version: Requested version, if any
            repository: Repository told about the operation while the scope is open
            usage: Package usage shared with sibling scopes
        """
        self.operation = operation
        self.transaction_logger = transaction_logger
        self.package_name = package_name
        self.version = version
        self.repository = repository
        self.usage = usage or PackageUsage()
        self.transaction: Optional[TransactionRecord] = None
        self._created: List[Path] = []
        self._stack = ExitStack()

    def __enter__(self) -> "OperationScope":
        self.transaction = self.transaction_logger.create_transaction(
            self.operation, self.package_name, self.version
        )
        self.transaction.status = TransactionStatus.IN_PROGRESS
        self.transaction_logger.log(self.transaction)
        if self.repository is not None:
            self._stack.enter_context(self.repository.start_operation(self.operation.value))
        return self

    def track(self, path: Path, package_label: Optional[str] = None):
        """
        Record a path created by this scope.

        Args:
            path: Directory or file to remove on rollback
            package_label: "<id> <version>" when the path is a package directory
        """
        self._created.append(Path(path))
        self.transaction.paths_created.append(str(path))
        if package_label:
            self.transaction.packages_installed.append(package_label)

    def claim(self, paths: List[Path]) -> bool:
        """Mark installed package directories this scope relies on."""
        return self.usage.claim(paths, self)

    def rollback(self):
        """Remove every tracked path, newest first."""
        for path in reversed(self._created):
            if self.usage.remove_unless_used(path, self):
                logger.info(f"Rolled back {path}")
            else:
                logger.info(f"Kept {path}, another operation relies on it")
        self._created.clear()
        self.usage.release(self)

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._stack.close()
        self.transaction.completed_at = datetime.now(UTC)

        if exc is None:
            self.transaction.status = TransactionStatus.COMPLETED
            self.transaction_logger.log(self.transaction)
            return False

        logger.error(f"{self.operation.value} of {self.package_name or 'packages'} failed: {exc}")
        self.transaction.status = TransactionStatus.FAILED
        self.transaction.error = str(exc)
        self.transaction_logger.log(self.transaction)

        self.rollback()
        if self.transaction.paths_created:
            self.transaction.status = TransactionStatus.ROLLED_BACK
            self.transaction_logger.log(self.transaction)
        return False
