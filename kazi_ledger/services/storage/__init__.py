"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory and per-owner JSON files today, designed to be swappable.
"""

from kazi_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from kazi_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
)
from kazi_ledger.services.storage.json_file import (
    JsonFileAuditStorage,
    JsonFileTransactionStorage,
)
from kazi_ledger.services.storage.demo import generate_demo_transactions

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryTransactionStorage",
    # JSON file implementation
    "JsonFileAuditStorage",
    "JsonFileTransactionStorage",
    # Demo data
    "generate_demo_transactions",
]
