"""
Integration tests for the record and report flows.

Test strategy:
1. Typed sentence → proposal → confirm → saved, with the audit trail
2. Queries answered from storage, unknown input gets a retry prompt
3. One outstanding extraction per surface
4. Reports, settlement and demo data
"""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from kazi_ledger.audit import AuditLogger
from kazi_ledger.extraction import ExtractorConfig, InferenceBackend, RuleBasedParser, TransactionExtractor
from kazi_ledger.models import AuditEventType, QueryRange, ReceiptImage, TransactionType
from kazi_ledger.orchestrator import (
    UNKNOWN_RECEIPT_MESSAGE,
    UNKNOWN_TEXT_MESSAGE,
    ConfirmationRejectedError,
    ExtractionInProgressError,
    OutcomeKind,
    RecordFlow,
    ReportFlow,
    create_app_components,
)
from kazi_ledger.services.storage import (
    DuplicateError,
    InMemoryTransactionStorage,
    JsonFileTransactionStorage,
    StorageError,
)
from kazi_ledger.validation import ParseResultValidator


class GatedBackend(InferenceBackend):
    """Blocks until released, so a surface stays busy."""

    name = "gated"

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self._parser = RuleBasedParser()

    async def parse_text(self, text, default_type=None):
        self.started.set()
        await self.release.wait()
        return self._parser.parse(text, default_type)


class BrokenStorage(InMemoryTransactionStorage):
    """Fails every save."""

    async def save_transaction(self, user_id, transaction):
        raise StorageError("disk full")


@pytest.fixture
def record_flow(storage, audit_storage):
    return RecordFlow(
        validator=ParseResultValidator(storage, max_transaction_amount=Decimal("100000000")),
        transaction_storage=storage,
        audit_logger=AuditLogger(audit_storage),
    )


@pytest.fixture
def report_flow(storage, audit_storage):
    return ReportFlow(storage, AuditLogger(audit_storage))


def event_types(audit_storage, correlation_id):
    events = asyncio.run(audit_storage.get_events_by_correlation_id(correlation_id))
    return [e.event_type for e in events]


class TestRecordFlow:
    """Tests for the record-then-confirm flow."""

    def test_text_to_saved_transaction(self, record_flow, profile, storage, audit_storage):
        """Test the whole happy path."""
        outcome = asyncio.run(record_flow.handle_text("Sold bread 5000", profile))

        assert outcome.kind == OutcomeKind.CONFIRM
        assert outcome.validation.can_confirm is True
        assert "Income: UGX 5,000" in outcome.message
        assert asyncio.run(storage.list_transactions(profile.id)) == []

        tx = asyncio.run(record_flow.confirm_and_save(
            outcome.result, profile, correlation_id=outcome.correlation_id,
        ))

        assert tx.type == TransactionType.INCOME
        assert tx.amount == Decimal("5000")
        assert asyncio.run(storage.list_transactions(profile.id)) == [tx]
        assert event_types(audit_storage, outcome.correlation_id) == [
            AuditEventType.TEXT_SUBMITTED,
            AuditEventType.EXTRACTION_COMPLETED,
            AuditEventType.USER_CONFIRMED,
            AuditEventType.TRANSACTION_SAVED,
        ]

    def test_unknown_input(self, record_flow, profile, audit_storage):
        """Test gibberish gets the retry prompt."""
        outcome = asyncio.run(record_flow.handle_text("asdf qwer", profile))

        assert outcome.kind == OutcomeKind.UNKNOWN
        assert outcome.message == UNKNOWN_TEXT_MESSAGE
        assert AuditEventType.INPUT_NOT_UNDERSTOOD in event_types(audit_storage, outcome.correlation_id)

    def test_query_answered_from_storage(self, record_flow, profile, storage):
        """Test a lookup runs the report instead of proposing an entry."""
        asyncio.run(record_flow.confirm_and_save(
            asyncio.run(record_flow.handle_text("Sold bread 5000", profile)).result, profile,
        ))

        outcome = asyncio.run(record_flow.handle_text("How much today", profile))

        assert outcome.kind == OutcomeKind.QUERY
        assert outcome.report.period == QueryRange.TODAY
        assert outcome.report.total_in == Decimal("5000")
        assert outcome.message.startswith("Today: money in UGX 5,000")

    def test_query_empty_window(self, record_flow, profile):
        """Test an empty ledger reports no transactions."""
        outcome = asyncio.run(record_flow.handle_text("Show this week's sales", profile))
        assert outcome.message == "Last 7 days: no transactions yet."

    def test_partial_record_cannot_be_confirmed(self, record_flow, profile, storage):
        """Test a record with no amount is blocked until edited."""
        outcome = asyncio.run(record_flow.handle_text("Musa paid back", profile))
        assert outcome.kind == OutcomeKind.CONFIRM
        assert outcome.validation.can_confirm is False

        with pytest.raises(ConfirmationRejectedError):
            asyncio.run(record_flow.confirm_and_save(outcome.result, profile))

        tx = asyncio.run(record_flow.confirm_and_save(outcome.result, profile, amount=5000))
        assert tx.type == TransactionType.DEBT_PAYMENT
        assert tx.counterparty == "Musa"
        assert tx.amount == Decimal("5000")

    def test_edits_and_note(self, record_flow, profile):
        """Test owner edits override the proposal."""
        outcome = asyncio.run(record_flow.handle_text("Paid rent 300000", profile))
        when = datetime(2026, 3, 1, 9, 0)
        tx = asyncio.run(record_flow.confirm_and_save(
            outcome.result, profile, date=when, note="March", category="Shop rent",
        ))
        assert tx.category == "Shop rent"
        assert tx.note == "March"
        assert tx.date == when

    def test_unknown_edit_field(self, record_flow, profile):
        """Test only editable fields can be changed."""
        outcome = asyncio.run(record_flow.handle_text("Sold bread 5000", profile))
        with pytest.raises(TypeError):
            asyncio.run(record_flow.confirm_and_save(outcome.result, profile, raw_text="x"))

    def test_reject_saves_nothing(self, record_flow, profile, storage, audit_storage):
        """Test rejecting only leaves an audit entry."""
        outcome = asyncio.run(record_flow.handle_text("Sold bread 5000", profile))
        asyncio.run(record_flow.reject(outcome.result, "wrong amount", outcome.correlation_id))

        assert asyncio.run(storage.list_transactions(profile.id)) == []
        assert AuditEventType.USER_REJECTED in event_types(audit_storage, outcome.correlation_id)

    def test_save_failure_is_raised_and_audited(self, profile, audit_storage):
        """Test a storage failure reaches the caller."""
        storage = BrokenStorage()
        flow = RecordFlow(
            validator=ParseResultValidator(storage, max_transaction_amount=Decimal("100000000")),
            transaction_storage=storage,
            audit_logger=AuditLogger(audit_storage),
        )
        outcome = asyncio.run(flow.handle_text("Sold bread 5000", profile))

        with pytest.raises(StorageError):
            asyncio.run(flow.confirm_and_save(outcome.result, profile, correlation_id=outcome.correlation_id))

        assert AuditEventType.SAVE_FAILED in event_types(audit_storage, outcome.correlation_id)

    def test_duplicate_warning_after_save(self, record_flow, profile):
        """Test the same sentence right after saving warns."""
        first = asyncio.run(record_flow.handle_text("Sold bread 5000", profile))
        asyncio.run(record_flow.confirm_and_save(first.result, profile))

        second = asyncio.run(record_flow.handle_text("Sold bread 5000", profile))

        assert second.validation.can_confirm is True
        assert any(i.issue_type == "potential_duplicate" for i in second.validation.issues)


class TestReceiptFlow:
    """Tests for receipt input."""

    def test_fields(self, record_flow, profile):
        """Test OCR fields propose an EXPENSE to the merchant."""
        outcome = asyncio.run(record_flow.handle_receipt_fields(
            {"amount": "UGX 45,000", "merchant": "Shell"}, profile,
        ))
        assert outcome.kind == OutcomeKind.CONFIRM
        assert outcome.result.type == TransactionType.EXPENSE
        assert outcome.result.counterparty == "Shell"

    def test_unreadable_image(self, record_flow, profile):
        """Test an image the backend cannot read gets the receipt prompt."""
        image = ReceiptImage(data=b"\xff\xd8", mime_type="image/jpeg")
        outcome = asyncio.run(record_flow.handle_receipt_image(image, profile))
        assert outcome.kind == OutcomeKind.UNKNOWN
        assert outcome.message == UNKNOWN_RECEIPT_MESSAGE


class TestSurfaceGuard:
    """Tests for one outstanding extraction per surface."""

    def test_second_extraction_rejected(self, profile):
        """Test a busy surface refuses new input until it finishes."""

        async def scenario():
            backend = GatedBackend()
            flow = RecordFlow(
                extractor=TransactionExtractor(ExtractorConfig(backend=backend)),
                validator=ParseResultValidator(max_transaction_amount=Decimal("100000000")),
            )
            first = asyncio.create_task(flow.handle_text("Sold bread 5000", profile))
            await backend.started.wait()

            assert flow.is_busy(profile, "text") is True
            with pytest.raises(ExtractionInProgressError):
                await flow.handle_text("Sold milk 3000", profile)

            backend.release.set()
            outcome = await first
            return flow, outcome

        flow, outcome = asyncio.run(scenario())

        assert outcome.result.amount == Decimal("5000")
        assert flow.is_busy(profile, "text") is False

    def test_surfaces_are_independent(self, profile):
        """Test the receipt surface is free while text is busy."""

        async def scenario():
            backend = GatedBackend()
            flow = RecordFlow(
                extractor=TransactionExtractor(ExtractorConfig(backend=backend)),
                validator=ParseResultValidator(max_transaction_amount=Decimal("100000000")),
            )
            first = asyncio.create_task(flow.handle_text("Sold bread 5000", profile))
            await backend.started.wait()

            receipt = await flow.handle_receipt_fields({"amount": 1000, "merchant": "Shop"}, profile)

            backend.release.set()
            await first
            return receipt

        receipt = asyncio.run(scenario())
        assert receipt.kind == OutcomeKind.CONFIRM

    def test_released_after_failure(self, profile):
        """Test the surface frees up even when the flow raises."""
        flow = RecordFlow(
            validator=ParseResultValidator(max_transaction_amount=Decimal("100000000")),
            audit_logger=AuditLogger(),
        )
        with pytest.raises(AttributeError):
            asyncio.run(flow.handle_receipt_image("not an image", profile))
        assert flow.is_busy(profile, "receipt") is False


class TestReportFlow:
    """Tests for reports, settlement and demo data."""

    def test_demo_then_report(self, report_flow, profile):
        """Test the demo ledger feeds the report screen."""
        now = datetime.now()
        assert asyncio.run(report_flow.load_demo_data(profile, now)) == 6
        assert asyncio.run(report_flow.load_demo_data(profile, now)) == 0

        summary, debts = asyncio.run(report_flow.run(profile, QueryRange.WEEK, now))

        assert summary.total_in == Decimal("80000")
        assert summary.total_out == Decimal("220000")
        assert [(d.name, d.balance) for d in debts] == [("Musa", Decimal("15000"))]

    def test_settle(self, report_flow, profile, storage, audit_storage):
        """Test settling clears the balance with one saved entry."""
        asyncio.run(report_flow.load_demo_data(profile))

        tx = asyncio.run(report_flow.settle(profile, "Musa"))

        assert tx.type == TransactionType.DEBT_PAYMENT
        assert tx.amount == Decimal("15000")
        _, debts = asyncio.run(report_flow.run(profile, QueryRange.MONTH))
        assert debts == []
        recent = asyncio.run(audit_storage.get_recent_events())
        assert any(e.event_type == AuditEventType.DEBT_SETTLED for e in recent)

    def test_settle_nothing_owed(self, report_flow, profile):
        """Test settling a stranger raises."""
        with pytest.raises(ValueError):
            asyncio.run(report_flow.settle(profile, "Nobody"))


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_in_memory(self, profile):
        """Test in-memory components work end to end."""
        record_flow, report_flow = create_app_components(use_storage=False)
        outcome = asyncio.run(record_flow.handle_text("Musa owes me 15000", profile))
        asyncio.run(record_flow.confirm_and_save(outcome.result, profile))

        _, debts = asyncio.run(report_flow.run(profile, QueryRange.TODAY))
        assert debts[0].name == "Musa"

    def test_json_files(self, tmp_path, profile):
        """Test file-backed components write under the data directory."""
        record_flow, _ = create_app_components(data_dir=tmp_path)
        outcome = asyncio.run(record_flow.handle_text("Sold bread 5000", profile))
        asyncio.run(record_flow.confirm_and_save(outcome.result, profile))

        assert JsonFileTransactionStorage(tmp_path).ledger_path(profile.id).exists()
        assert (tmp_path / "kazi_ledger_audit.jsonl").exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
