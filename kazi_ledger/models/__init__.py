"""
Data Models Package

This package contains all Pydantic models used in Kazi Ledger.
All data flowing through the system must conform to these schemas.
"""

from kazi_ledger.models.transaction import (
    DEFAULT_CATEGORY,
    BusinessProfile,
    DebtBalance,
    Intent,
    ParseResult,
    QueryRange,
    ReceiptFields,
    ReceiptImage,
    ReportSummary,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from kazi_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_CATEGORY",
    "BusinessProfile",
    "DebtBalance",
    "Intent",
    "ParseResult",
    "QueryRange",
    "ReceiptFields",
    "ReceiptImage",
    "ReportSummary",
    "Transaction",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
