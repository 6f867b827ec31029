"""
In-Memory Storage Implementation

Keeps everything in dictionaries for the life of the process.
Used by tests, demos, and as the default when no data directory is set.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from kazi_ledger.models.audit import AuditEvent
from kazi_ledger.models.transaction import Transaction
from kazi_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    TransactionStorageInterface,
    newest_first,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Ledger entries keyed by owner, then by transaction id."""

    def __init__(self):
        self._ledgers: dict[str, dict[UUID, Transaction]] = {}

    async def save_transaction(self, user_id: str, transaction: Transaction) -> UUID:
        ledger = self._ledgers.setdefault(user_id, {})
        if transaction.id in ledger:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        ledger[transaction.id] = transaction
        return transaction.id

    async def get_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        return self._ledgers.get(user_id, {}).get(transaction_id)

    async def list_transactions(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        return newest_first(list(self._ledgers.get(user_id, {}).values()), since, limit)

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        ledger = self._ledgers.get(user_id, {})
        if transaction_id not in ledger:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        del ledger[transaction_id]
        return True

    async def clear(self, user_id: str) -> int:
        return len(self._ledgers.pop(user_id, {}))


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
