# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Transaction Logger

Single responsibility: Log and retrieve lifecycle transactions (append-only JSONL)
"""

import json
import logging
import threading
import uuid
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional

from criage.core.errors import LocalIOError
from criage.core.logging import log_event
from criage.models.registry_models import (
    Scope,
    TransactionOperation,
    TransactionRecord,
    TransactionStatus,
)

logger = logging.getLogger(__name__)

TRANSACTION_LOG = "transactions.jsonl"


class TransactionLogger:
    """Appends install/update/remove outcomes to a JSONL file"""

    def __init__(self, log_file: Path):
        """
        Initialize transaction logger.

        Args:
            log_file: Path to transactions.jsonl; parent directories are created
        """
        self.log_file = Path(log_file)
        self._lock = threading.Lock()

        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            self.log_file.touch(exist_ok=True)
        except OSError as e:
            raise LocalIOError(f"Cannot create transaction log: {e}", path=str(self.log_file)) from e

    def begin(
        self,
        operation: TransactionOperation,
        package_name: str,
        version: Optional[str] = None,
        scope: Optional[Scope] = None
    ) -> TransactionRecord:
        """New in-progress transaction; nothing is written until it finishes."""
        return TransactionRecord(
            id=f"txn-{uuid.uuid4().hex[:12]}",
            operation=operation,
            package_name=package_name,
            version=version,
            scope=scope,
            status=TransactionStatus.IN_PROGRESS,
            started_at=datetime.now(UTC)
        )

    def complete(self, transaction: TransactionRecord, version: Optional[str] = None) -> TransactionRecord:
        """Mark completed and append to the log."""
        transaction.status = TransactionStatus.COMPLETED
        transaction.completed_at = datetime.now(UTC)
        if version:
            transaction.version = version
        self.log(transaction)
        return transaction

    def fail(self, transaction: TransactionRecord, error: Exception) -> TransactionRecord:
        """Mark failed with the error message and append to the log."""
        transaction.status = TransactionStatus.FAILED
        transaction.completed_at = datetime.now(UTC)
        transaction.error = getattr(error, "message", None) or str(error)
        self.log(transaction)
        return transaction

    def log(self, transaction: TransactionRecord):
        """
        Append transaction to JSONL log file.

        A log that cannot be written is reported but never fails the
        operation being logged.
        """
        log_line = json.dumps(transaction.to_dict())
        try:
            with self._lock, open(self.log_file, "a", encoding="utf-8") as f:
                f.write(log_line + "\n")
        except OSError as e:
            logger.error(f"Failed to append transaction {transaction.id}: {e}")
            return

        log_event(
            logger,
            f"transaction_{transaction.status.value}",
            level="DEBUG",
            transaction_id=transaction.id,
            operation=transaction.operation.value,
            package=transaction.package_name,
            package_version=transaction.version
        )

    def list_transactions(self, limit: int = 50) -> List[Dict[str, Any]]:
        """
        List recent transactions from log.

        Args:
            limit: Maximum number of transactions to return

        Returns:
            List of transaction records (most recent first)
        """
        if limit <= 0 or not self.log_file.exists():
            return []

        transactions = []
        with open(self.log_file, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    transactions.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.error(f"Failed to parse transaction log line: {e}")

        return list(reversed(transactions[-limit:]))

    def get_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        """Latest log entry for a transaction id, or None."""
        if not self.log_file.exists():
            return None

        found = None
        with open(self.log_file, "r", encoding="utf-8") as f:
            for line in f:
                try:
                    txn = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if txn.get("id") == transaction_id:
                    found = txn

        return found
