"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability from typed sentence to saved transaction
2. A way to tell "backend down" apart from "text made no sense"
3. History the owner can look back on

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from kazi_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from kazi_ledger.models.transaction import ParseResult, Transaction
from kazi_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and owner visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_text_submitted(
        self,
        text: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log a typed sentence."""
        await self.log(AuditEventBuilder.text_submitted(text, user_id, correlation_id))

    async def log_receipt_submitted(
        self,
        source: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log a receipt scan (fields or image)."""
        await self.log(AuditEventBuilder.receipt_submitted(source, user_id, correlation_id))

    async def log_extraction(
        self,
        result: ParseResult,
        correlation_id: UUID,
    ) -> None:
        """Log what the extractor made of the input."""
        if result.is_unknown:
            event = AuditEventBuilder.input_not_understood(result.raw_text, correlation_id)
        elif result.is_query:
            event = AuditEventBuilder.query_recognized(
                result.query_range.value if result.query_range else None,
                correlation_id,
            )
        else:
            event = AuditEventBuilder.extraction_completed(
                intent=result.intent.value,
                transaction_type=result.type.value if result.type else None,
                low_confidence=result.low_confidence,
                correlation_id=correlation_id,
            )
        await self.log(event)

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(issues, correlation_id))

    async def log_user_confirmed(
        self,
        transaction_id: UUID,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log user confirmation."""
        await self.log(AuditEventBuilder.user_confirmed(transaction_id, user_id, correlation_id))

    async def log_user_rejected(
        self,
        raw_text: str,
        reason: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log user rejection."""
        await self.log(AuditEventBuilder.user_rejected(raw_text, reason, correlation_id))

    async def log_transaction_saved(
        self,
        transaction: Transaction,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log a saved ledger entry."""
        await self.log(AuditEventBuilder.transaction_saved(
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=str(transaction.amount),
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_debt_settled(
        self,
        transaction: Transaction,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log a full settlement of someone's debt."""
        await self.log(AuditEventBuilder.debt_settled(
            transaction_id=transaction.id,
            counterparty=transaction.counterparty or "",
            amount=str(transaction.amount),
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        error_message: str,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log a storage failure on save."""
        await self.log(AuditEventBuilder.save_failed(error_message, user_id, correlation_id))

    async def log_report_generated(
        self,
        period: str,
        transaction_count: int,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log report generation."""
        await self.log(AuditEventBuilder.report_generated(
            period, transaction_count, user_id, correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., one typed sentence).
    Pass it through all subsequent operations.
    """
    return uuid4()
