"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger in memory for tests and demos
2. Persist to a local JSON file per owner
3. Move to a real database later
4. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations the ledger needs.

CRITICAL: Every transaction call is scoped by the owner's user_id.
One owner never sees another owner's entries.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from kazi_ledger.models.audit import AuditEvent
from kazi_ledger.models.transaction import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for ledger storage.

    Only CONFIRMED transactions reach this layer.
    """

    @abstractmethod
    async def save_transaction(self, user_id: str, transaction: Transaction) -> UUID:
        """
        Save a confirmed transaction for an owner.

        Args:
            user_id: The owning user
            transaction: The confirmed transaction

        Returns:
            The durable record identifier

        Raises:
            DuplicateError: If the id was already used
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        """
        Retrieve one transaction by id.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """
        List an owner's transactions, newest first.

        Args:
            user_id: The owning user
            since: Only entries dated on or after this moment
            limit: Maximum number of results

        Returns:
            Transactions ordered by date descending
        """
        pass

    @abstractmethod
    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        """
        Delete one transaction.

        Raises:
            NotFoundError: If the owner has no such transaction
        """
        pass

    @abstractmethod
    async def clear(self, user_id: str) -> int:
        """
        Remove every transaction for an owner.

        Returns:
            How many entries were removed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one typed sentence).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


def newest_first(
    transactions: list[Transaction],
    since: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> list[Transaction]:
    """Filter by date and order newest first. Shared by the implementations."""
    selected = [
        tx for tx in transactions
        if since is None or tx.date >= since
    ]
    selected.sort(key=lambda tx: tx.date, reverse=True)
    if limit is not None:
        selected = selected[:limit]
    return selected
