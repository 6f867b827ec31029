"""Services package."""

from kazi_ledger.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    JsonFileAuditStorage,
    JsonFileTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    generate_demo_transactions,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryTransactionStorage",
    "JsonFileAuditStorage",
    "JsonFileTransactionStorage",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
    "generate_demo_transactions",
]
