# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Transaction Logger

Single responsibility: Log and retrieve operation scopes (append-only JSONL)
"""

import json
import logging
import threading
import uuid
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional

from pkgrestore.models import OperationName, TransactionRecord, TransactionStatus

logger = logging.getLogger(__name__)


class TransactionLogger:
    """Appends one JSON line per scope state change"""

    def __init__(self, log_file: Path):
        """
        Initialize transaction logger.

        Args:
            log_file: Path to transactions.jsonl, created on first write
        """
        self.log_file = Path(log_file)
        self._lock = threading.Lock()

    def create_transaction(
        self,
        operation: OperationName,
        package_name: Optional[str] = None,
        version: Optional[str] = None
    ) -> TransactionRecord:
        """
        Create a new transaction record.

        Args:
            operation: Scope name
            package_name: Top-level package of the scope
            version: Requested version

        Returns:
            New pending transaction record
        """
        return TransactionRecord(
            id=f"txn-{uuid.uuid4().hex[:12]}",
            operation=operation,
            package_name=package_name,
            version=version,
            status=TransactionStatus.PENDING,
            started_at=datetime.now(UTC)
        )

    def log(self, transaction: TransactionRecord):
        """Append a transaction record to the log file."""
        log_line = json.dumps(transaction.to_dict())
        with self._lock:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(log_line + "\n")

    def list_transactions(self, limit: Optional[int] = 50) -> List[Dict[str, Any]]:
        """
        List recent transactions from log.

        Args:
            limit: Maximum number of entries to return, None for all

        Returns:
            Transaction entries, most recent first
        """
        if not self.log_file.exists():
            return []

        transactions = []
        with open(self.log_file, "r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    transactions.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.error(f"Failed to parse transaction log line: {e}")

        if limit is not None:
            transactions = transactions[-limit:]
        return list(reversed(transactions))
