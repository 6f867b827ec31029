"""
Main Orchestrator for Kazi Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Recording (sentence or receipt → extract → validate → confirm → save)
2. Reports (window → totals from storage, debt balances, settlements)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No entry persists without human confirmation
- One outstanding extraction per input surface
- Report numbers only ever come from storage
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from kazi_ledger.audit import AuditLogger, create_correlation_id
from kazi_ledger.config import get_settings
from kazi_ledger.extraction import TransactionExtractor, create_extractor
from kazi_ledger.extraction.backends import InferenceBackend
from kazi_ledger.models.transaction import (
    BusinessProfile,
    DebtBalance,
    ParseResult,
    QueryRange,
    ReceiptFields,
    ReceiptImage,
    ReportSummary,
    Transaction,
    TransactionType,
    ValidationResult,
)
from kazi_ledger.reports import ReportExecutor, total_outstanding
from kazi_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    JsonFileAuditStorage,
    JsonFileTransactionStorage,
    StorageError,
    TransactionStorageInterface,
    generate_demo_transactions,
)
from kazi_ledger.validation import ParseResultValidator, get_user_friendly_summary


logger = structlog.get_logger(__name__)

UNKNOWN_TEXT_MESSAGE = "I couldn't understand that. Try: 'Sold bread 5000'"
UNKNOWN_RECEIPT_MESSAGE = "Couldn't read this receipt. Try taking a clearer photo."
UNDATED_QUERY_MESSAGE = "Which period? Try 'today', 'this week' or 'this month'."

EDITABLE_FIELDS = ("type", "amount", "category", "counterparty")

_PERIOD_LABELS = {
    QueryRange.TODAY: "Today",
    QueryRange.WEEK: "Last 7 days",
    QueryRange.MONTH: "Last 30 days",
}


class ExtractionInProgressError(Exception):
    """A second extraction was started on a surface that is still busy."""

    def __init__(self, surface: str):
        self.surface = surface
        super().__init__(f"An extraction is already running for {surface}")


class ConfirmationRejectedError(Exception):
    """The owner tried to confirm a result that still has blocking issues."""

    def __init__(self, validation: ValidationResult):
        self.validation = validation
        messages = [i.message for i in validation.issues if i.severity == "error"]
        super().__init__("Cannot confirm: " + "; ".join(messages))


class OutcomeKind(str, Enum):
    """What the UI should do next."""
    CONFIRM = "confirm"
    QUERY = "query"
    UNKNOWN = "unknown"


@dataclass
class FlowOutcome:
    """One handled input, ready to present."""

    kind: OutcomeKind
    result: ParseResult
    correlation_id: UUID
    message: str
    validation: Optional[ValidationResult] = None
    report: Optional[ReportSummary] = None


def format_report_message(report: ReportSummary, currency: str) -> str:
    """One-line spoken summary of a report."""
    label = _PERIOD_LABELS[report.period]
    if not report.transactions:
        return f"{label}: no transactions yet."
    return (
        f"{label}: money in {currency} {report.total_in:,}, "
        f"money out {currency} {report.total_out:,}, "
        f"net {currency} {report.net:,} "
        f"({report.transaction_count} entries)"
    )


class RecordFlow:
    """
    Orchestrates turning what the owner typed or scanned into a ledger entry.

    Flow:
    1. Extract → ParseResult (never raises)
    2. QUERY → answer from storage; UNKNOWN → retry prompt
    3. Validate → issues shown with the proposal
    4. Review → Present to owner (PAUSE - require confirmation)
    5. Confirm → Owner explicitly approves, possibly after edits
    6. Save → Persist to storage

    Human confirmation (step 5) is MANDATORY.
    The system NEVER auto-saves.
    """

    def __init__(
        self,
        extractor: Optional[TransactionExtractor] = None,
        validator: Optional[ParseResultValidator] = None,
        transaction_storage: Optional[TransactionStorageInterface] = None,
        report_executor: Optional[ReportExecutor] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._extractor = extractor or TransactionExtractor()
        self._storage = transaction_storage
        self._validator = validator or ParseResultValidator(transaction_storage)
        self._report_executor = report_executor or (
            ReportExecutor(transaction_storage) if transaction_storage else None
        )
        self._audit_logger = audit_logger
        self._in_flight: set[str] = set()

    # -------------------------------------------------------------------------
    # Surface guard
    # -------------------------------------------------------------------------

    def is_busy(self, profile: BusinessProfile, surface: str) -> bool:
        return self._surface_key(profile, surface) in self._in_flight

    @staticmethod
    def _surface_key(profile: BusinessProfile, surface: str) -> str:
        return f"{profile.id}:{surface}"

    @contextmanager
    def _claim(self, profile: BusinessProfile, surface: str):
        key = self._surface_key(profile, surface)
        if key in self._in_flight:
            raise ExtractionInProgressError(surface)
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)

    # -------------------------------------------------------------------------
    # Input handling
    # -------------------------------------------------------------------------

    async def handle_text(
        self,
        text: str,
        profile: BusinessProfile,
        surface: str = "text",
        default_type: Optional[TransactionType] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowOutcome:
        """
        Handle one typed sentence.

        Raises:
            ExtractionInProgressError: if this surface is still busy.
        """
        correlation_id = correlation_id or create_correlation_id()

        with self._claim(profile, surface):
            if self._audit_logger:
                await self._audit_logger.log_text_submitted(text, profile.id, correlation_id)
            result = await self._extractor.extract(text, default_type=default_type)

        return await self._present(result, profile, correlation_id, UNKNOWN_TEXT_MESSAGE)

    async def handle_receipt_fields(
        self,
        fields: Union[ReceiptFields, dict],
        profile: BusinessProfile,
        surface: str = "receipt",
        default_type: TransactionType = TransactionType.EXPENSE,
        correlation_id: Optional[UUID] = None,
    ) -> FlowOutcome:
        """Handle receipt fields already read by an OCR step."""
        correlation_id = correlation_id or create_correlation_id()

        with self._claim(profile, surface):
            if self._audit_logger:
                await self._audit_logger.log_receipt_submitted("fields", profile.id, correlation_id)
            result = await self._extractor.extract_from_receipt_fields(fields, default_type)

        return await self._present(result, profile, correlation_id, UNKNOWN_RECEIPT_MESSAGE)

    async def handle_receipt_image(
        self,
        image: ReceiptImage,
        profile: BusinessProfile,
        surface: str = "receipt",
        correlation_id: Optional[UUID] = None,
    ) -> FlowOutcome:
        """Handle a receipt photo; the backend reads it."""
        correlation_id = correlation_id or create_correlation_id()

        with self._claim(profile, surface):
            if self._audit_logger:
                await self._audit_logger.log_receipt_submitted(
                    image.mime_type, profile.id, correlation_id,
                )
            result = await self._extractor.extract_from_receipt_image(image)

        return await self._present(result, profile, correlation_id, UNKNOWN_RECEIPT_MESSAGE)

    async def _present(
        self,
        result: ParseResult,
        profile: BusinessProfile,
        correlation_id: UUID,
        unknown_message: str,
    ) -> FlowOutcome:
        if self._audit_logger:
            await self._audit_logger.log_extraction(result, correlation_id)

        if result.is_unknown:
            return FlowOutcome(
                kind=OutcomeKind.UNKNOWN,
                result=result,
                correlation_id=correlation_id,
                message=unknown_message,
            )

        if result.is_query:
            report = None
            message = UNDATED_QUERY_MESSAGE
            if result.query_range is not None and self._report_executor:
                report = await self._report_executor.summary(profile.id, result.query_range)
                message = format_report_message(report, profile.currency)
                if self._audit_logger:
                    await self._audit_logger.log_report_generated(
                        period=report.period.value,
                        transaction_count=report.transaction_count,
                        user_id=profile.id,
                        correlation_id=correlation_id,
                    )
            return FlowOutcome(
                kind=OutcomeKind.QUERY,
                result=result,
                correlation_id=correlation_id,
                message=message,
                report=report,
            )

        validation = await self._validator.validate(result, user_id=profile.id)
        if self._audit_logger and not validation.can_confirm:
            await self._audit_logger.log_validation_failed(
                [
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in validation.issues
                ],
                correlation_id,
            )

        return FlowOutcome(
            kind=OutcomeKind.CONFIRM,
            result=result,
            correlation_id=correlation_id,
            message=get_user_friendly_summary(result, validation, profile.currency),
            validation=validation,
        )

    # -------------------------------------------------------------------------
    # Confirmation
    # -------------------------------------------------------------------------

    async def confirm_and_save(
        self,
        result: ParseResult,
        profile: BusinessProfile,
        correlation_id: Optional[UUID] = None,
        date: Optional[datetime] = None,
        note: Optional[str] = None,
        **edits: Any,
    ) -> Transaction:
        """
        Confirm and save an entry.

        CRITICAL: This is called ONLY after explicit owner confirmation.

        Args:
            result: The proposal the owner saw
            profile: The signed-in owner
            date: When it happened (defaults to now)
            note: Free-text note
            **edits: Fields the owner changed (type, amount, category,
                     counterparty)

        Returns:
            The saved Transaction

        Raises:
            ConfirmationRejectedError: if the (edited) result has blocking issues
            StorageError: if the save fails
        """
        correlation_id = correlation_id or create_correlation_id()

        unknown = set(edits) - set(EDITABLE_FIELDS)
        if unknown:
            raise TypeError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        if edits:
            result = ParseResult.model_validate({**result.model_dump(), **edits})

        validation = await self._validator.validate(result, check_duplicates=False)
        if not validation.can_confirm:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    [
                        {"field": i.field, "type": i.issue_type, "message": i.message}
                        for i in validation.issues
                    ],
                    correlation_id,
                )
            raise ConfirmationRejectedError(validation)

        transaction = result.to_transaction(date=date, note=note)

        if self._audit_logger:
            await self._audit_logger.log_user_confirmed(transaction.id, profile.id, correlation_id)

        if self._storage:
            await self._save(transaction, profile, correlation_id)

        return transaction

    async def _save(
        self,
        transaction: Transaction,
        profile: BusinessProfile,
        correlation_id: UUID,
    ) -> None:
        try:
            await self._storage.save_transaction(profile.id, transaction)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(str(e), profile.id, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_saved(transaction, profile.id, correlation_id)

    async def reject(
        self,
        result: ParseResult,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Record that the owner discarded the proposal.

        Nothing is saved.
        """
        correlation_id = correlation_id or create_correlation_id()

        if self._audit_logger:
            await self._audit_logger.log_user_rejected(result.raw_text, reason, correlation_id)


class ReportFlow:
    """
    Orchestrates reports and debt settlement.

    CRITICAL BOUNDARIES:
    - Totals come from storage only
    - A settlement is a normal DEBT_PAYMENT entry, saved like any other
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = transaction_storage
        self._executor = ReportExecutor(transaction_storage)
        self._audit_logger = audit_logger

    @property
    def executor(self) -> ReportExecutor:
        return self._executor

    async def run(
        self,
        profile: BusinessProfile,
        query_range: QueryRange,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ReportSummary, list[DebtBalance]]:
        """
        Build the report screen: window totals plus who still owes what.

        Returns:
            (summary, debt_balances)
        """
        correlation_id = correlation_id or create_correlation_id()

        summary = await self._executor.summary(profile.id, query_range, now)
        debts = await self._executor.debts(profile.id)

        if self._audit_logger:
            await self._audit_logger.log_report_generated(
                period=summary.period.value,
                transaction_count=summary.transaction_count,
                user_id=profile.id,
                correlation_id=correlation_id,
            )
        logger.info(
            "report_built",
            period=summary.period.value,
            debtors=len(debts),
            outstanding=str(total_outstanding(debts)),
        )
        return summary, debts

    async def settle(
        self,
        profile: BusinessProfile,
        name: str,
        correlation_id: Optional[UUID] = None,
        date: Optional[datetime] = None,
    ) -> Transaction:
        """
        Clear someone's full balance with one DEBT_PAYMENT.

        Raises:
            ValueError: if they owe nothing
            StorageError: if the save fails
        """
        correlation_id = correlation_id or create_correlation_id()

        transaction = await self._executor.build_settlement(profile.id, name, date)
        try:
            await self._storage.save_transaction(profile.id, transaction)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(str(e), profile.id, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_debt_settled(transaction, profile.id, correlation_id)
        return transaction

    async def load_demo_data(
        self,
        profile: BusinessProfile,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Seed an empty ledger with the onboarding demo entries.

        Returns how many entries were added (zero if the ledger has data).
        """
        if await self._storage.list_transactions(profile.id, limit=1):
            return 0

        demo = generate_demo_transactions(now)
        for transaction in demo:
            await self._storage.save_transaction(profile.id, transaction)
        return len(demo)


def create_app_components(
    use_storage: bool = True,
    data_dir: Optional[Union[str, Path]] = None,
    backend: Optional[InferenceBackend] = None,
) -> tuple[RecordFlow, ReportFlow]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Persist to JSON files under the data directory.
                    Set to False for in-memory storage (tests, demos).
        data_dir: Overrides DATA_DIR from settings.
        backend: Overrides the inference backend chosen in settings.

    Returns:
        (record_flow, report_flow)
    """
    if use_storage:
        path = Path(data_dir) if data_dir else get_settings().app.data_path
        transaction_storage = JsonFileTransactionStorage(path)
        audit_logger = AuditLogger(JsonFileAuditStorage(path))
    else:
        transaction_storage = InMemoryTransactionStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    try:
        extractor = create_extractor(backend=backend)
    except Exception as e:
        # Gemini not configured - fall back to the rule-based backend
        logger.warning("backend_unavailable", error=str(e))
        extractor = TransactionExtractor()

    record_flow = RecordFlow(
        extractor=extractor,
        validator=ParseResultValidator(transaction_storage),
        transaction_storage=transaction_storage,
        audit_logger=audit_logger,
    )
    report_flow = ReportFlow(
        transaction_storage=transaction_storage,
        audit_logger=audit_logger,
    )
    return record_flow, report_flow
