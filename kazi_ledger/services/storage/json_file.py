"""
JSON File Storage Implementation

DESIGN DECISION: One JSON file per owner under the data directory,
mirroring the per-user ledger keys of the browser app. Good enough for a
single-device ledger; swap in a database behind the same interface later.

TRADEOFFS:
- The whole ledger is read and rewritten on each save (fine for a small shop)
- No cross-process locking

Amounts are written as strings so Decimal values survive the round trip.
"""

import base64
import json
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from kazi_ledger.models.audit import AuditEvent
from kazi_ledger.models.transaction import Transaction
from kazi_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    newest_first,
)


logger = structlog.get_logger(__name__)

LEDGER_FILE_PREFIX = "kazi_ledger_data"
AUDIT_FILE_NAME = "kazi_ledger_audit.jsonl"

_SAFE_ID_RE = re.compile(r"[A-Za-z0-9_.@-]+")


class JsonFileTransactionStorage(TransactionStorageInterface):
    """
    Ledger stored as <data_dir>/kazi_ledger_data_<user>.json.

    Each file holds a JSON list of transactions.
    """

    def __init__(self, data_dir: Union[str, Path]):
        self._data_dir = Path(data_dir)

    def ledger_path(self, user_id: str) -> Path:
        """
        Path of one owner's ledger file.

        Ids made of filename-safe characters are used as they are. Any other
        id is written as "~" plus its urlsafe base64, so "a/b" and "a_b" never
        share a file.
        """
        if not user_id:
            raise StorageError("A user id is required")
        if _SAFE_ID_RE.fullmatch(user_id):
            safe_id = user_id
        else:
            safe_id = "~" + base64.urlsafe_b64encode(user_id.encode("utf-8")).decode("ascii").rstrip("=")
        return self._data_dir / f"{LEDGER_FILE_PREFIX}_{safe_id}.json"

    def _read(self, user_id: str) -> list[Transaction]:
        path = self.ledger_path(user_id)
        if not path.exists():
            return []
        try:
            rows = json.loads(path.read_text(encoding="utf-8"))
            return [Transaction.model_validate(row) for row in rows]
        except (OSError, ValueError, ValidationError) as e:
            raise StorageError(f"Failed to read ledger {path}: {e}")

    def _write(self, user_id: str, transactions: list[Transaction]) -> None:
        path = self.ledger_path(user_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            rows = [tx.model_dump(mode="json") for tx in transactions]
            tmp_path = path.with_name(path.name + ".tmp")
            tmp_path.write_text(json.dumps(rows, indent=2), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(f"Failed to write ledger {path}: {e}")

    async def save_transaction(self, user_id: str, transaction: Transaction) -> UUID:
        transactions = self._read(user_id)
        if any(tx.id == transaction.id for tx in transactions):
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        transactions.append(transaction)
        self._write(user_id, transactions)
        logger.debug("transaction_written", user_id=user_id, transaction_id=str(transaction.id))
        return transaction.id

    async def get_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        for tx in self._read(user_id):
            if tx.id == transaction_id:
                return tx
        return None

    async def list_transactions(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        return newest_first(self._read(user_id), since, limit)

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        transactions = self._read(user_id)
        remaining = [tx for tx in transactions if tx.id != transaction_id]
        if len(remaining) == len(transactions):
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        self._write(user_id, remaining)
        return True

    async def clear(self, user_id: str) -> int:
        count = len(self._read(user_id))
        path = self.ledger_path(user_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to clear ledger {path}: {e}")
        return count


class JsonFileAuditStorage(AuditStorageInterface):
    """
    Audit events appended as JSON lines to <data_dir>/kazi_ledger_audit.jsonl.

    Append-only.
    """

    def __init__(self, data_dir: Union[str, Path]):
        self._path = Path(data_dir) / AUDIT_FILE_NAME

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> list[AuditEvent]:
        if not self._path.exists():
            return []
        events = []
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise StorageError(f"Failed to read audit log: {e}")
        for line in lines:
            if not line.strip():
                continue
            try:
                events.append(AuditEvent.model_validate_json(line))
            except ValidationError:
                # A torn line from an interrupted write
                logger.warning("audit_line_skipped", path=str(self._path))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(event.model_dump_json() + "\n")
            return True
        except OSError as e:
            # Don't raise - audit logging should not break the main flow
            logger.error("audit_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._read_all() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._read_all()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._read_all(), key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
