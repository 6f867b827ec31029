"""
Audit Models for Kazi Ledger

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability from typed sentence to saved transaction
2. A way to tell "backend down" apart from "text made no sense"
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step from input to saved transaction has its own event type.
    """
    # Input
    TEXT_SUBMITTED = "text_submitted"
    RECEIPT_SUBMITTED = "receipt_submitted"

    # Extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    INPUT_NOT_UNDERSTOOD = "input_not_understood"
    QUERY_RECOGNIZED = "query_recognized"

    # Confirmation
    VALIDATION_FAILED = "validation_failed"
    USER_CONFIRMED = "user_confirmed"
    USER_REJECTED = "user_rejected"

    # Persistence
    TRANSACTION_SAVED = "transaction_saved"
    DEBT_SETTLED = "debt_settled"
    SAVE_FAILED = "save_failed"

    # Reports
    REPORT_GENERATED = "report_generated"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'input', 'report')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="Owner the event belongs to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one typed sentence and its save)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.text_submitted(text, user_id, correlation_id)
        event = AuditEventBuilder.transaction_saved(tx, user_id, correlation_id)
    """

    @staticmethod
    def text_submitted(
        text: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TEXT_SUBMITTED,
            entity_type="input",
            user_id=user_id,
            correlation_id=correlation_id,
            description="Text submitted for extraction",
            details={"text": text},
            is_user_action=True,
        )

    @staticmethod
    def receipt_submitted(
        source: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SUBMITTED,
            entity_type="input",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Receipt submitted ({source})",
            details={"source": source},
            is_user_action=True,
        )

    @staticmethod
    def extraction_completed(
        intent: str,
        transaction_type: Optional[str],
        low_confidence: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            severity=AuditSeverity.WARNING if low_confidence else AuditSeverity.INFO,
            entity_type="input",
            correlation_id=correlation_id,
            description=f"Extraction completed: {intent}",
            details={
                "intent": intent,
                "type": transaction_type,
                "low_confidence": low_confidence,
            },
        )

    @staticmethod
    def input_not_understood(
        raw_text: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_NOT_UNDERSTOOD,
            severity=AuditSeverity.WARNING,
            entity_type="input",
            correlation_id=correlation_id,
            description="Input could not be understood",
            details={"raw_text": raw_text},
        )

    @staticmethod
    def query_recognized(
        query_range: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_RECOGNIZED,
            entity_type="query",
            correlation_id=correlation_id,
            description=f"Query recognized (range: {query_range or 'none'})",
            details={"query_range": query_range},
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="input",
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def user_confirmed(
        transaction_id: UUID,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="User confirmed extracted transaction",
            is_user_action=True,
        )

    @staticmethod
    def user_rejected(
        raw_text: str,
        reason: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REJECTED,
            entity_type="input",
            correlation_id=correlation_id,
            description="User rejected extracted transaction",
            details={
                "raw_text": raw_text,
                "reason": reason or "No reason provided",
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_saved(
        transaction_id: UUID,
        transaction_type: str,
        amount: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Transaction saved: {transaction_type} {amount}",
            details={
                "type": transaction_type,
                "amount": amount,
            },
        )

    @staticmethod
    def debt_settled(
        transaction_id: UUID,
        counterparty: str,
        amount: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_SETTLED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Debt settled: {counterparty} {amount}",
            details={
                "counterparty": counterparty,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        error_message: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transaction",
            user_id=user_id,
            correlation_id=correlation_id,
            description="Transaction could not be saved",
            error_message=error_message,
        )

    @staticmethod
    def report_generated(
        period: str,
        transaction_count: int,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            entity_type="report",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Report generated: {period} covering {transaction_count} transactions",
            details={
                "period": period,
                "transaction_count": transaction_count,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
