"""
Tests for Kazi Ledger

Test strategy:
1. Unit tests for individual components (models, extractor, validator)
2. Integration tests for flows (with stubbed backends)
3. No real API calls in tests
"""

import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from kazi_ledger.models import (
    BusinessProfile,
    Intent,
    ParseResult,
    QueryRange,
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


class TestParseResult:
    """Tests for the extractor output model."""

    def test_unknown_carries_only_raw_text(self):
        """Test ParseResult.unknown keeps the text and nothing else."""
        result = ParseResult.unknown("asdf qwer")
        assert result.intent == Intent.UNKNOWN
        assert result.raw_text == "asdf qwer"
        assert result.type is None
        assert result.amount is None
        assert result.category is None
        assert result.counterparty is None
        assert result.query_range is None

    def test_raw_text_is_not_stripped(self):
        """Test that raw_text is kept verbatim."""
        result = ParseResult.unknown("  Sold bread  ")
        assert result.raw_text == "  Sold bread  "

    def test_query_cannot_carry_record_fields(self):
        """Test that a QUERY with a type is rejected."""
        with pytest.raises(ValueError):
            ParseResult(intent=Intent.QUERY, type=TransactionType.INCOME)

    def test_record_cannot_carry_query_range(self):
        """Test that query_range only appears on QUERY."""
        with pytest.raises(ValueError):
            ParseResult(intent=Intent.RECORD, query_range=QueryRange.TODAY)

    def test_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            ParseResult(
                intent=Intent.RECORD,
                type=TransactionType.INCOME,
                amount=Decimal("-5"),
            )

    def test_is_frozen(self):
        """Test that a ParseResult cannot be mutated."""
        result = ParseResult.unknown("x")
        with pytest.raises(Exception):
            result.raw_text = "y"

    def test_to_transaction_applies_defaults(self):
        """Test missing fields take the confirmation defaults."""
        result = ParseResult(intent=Intent.RECORD, raw_text="something")
        tx = result.to_transaction()
        assert tx.type == TransactionType.INCOME
        assert tx.amount == Decimal("0")
        assert tx.category == "General"

    def test_to_transaction_rejects_query(self):
        """Test that only RECORD results can be promoted."""
        result = ParseResult(intent=Intent.QUERY, query_range=QueryRange.WEEK)
        with pytest.raises(ValueError, match="Only RECORD"):
            result.to_transaction()

    def test_to_transaction_uses_given_date_and_overrides(self):
        """Test that caller-assigned date and edits win."""
        when = datetime(2026, 1, 2, 9, 0)
        result = ParseResult(
            intent=Intent.RECORD,
            type=TransactionType.EXPENSE,
            amount=Decimal("300000"),
            category="Rent",
        )
        tx = result.to_transaction(date=when, note="January rent")
        assert tx.date == when
        assert tx.note == "January rent"
        assert tx.amount == Decimal("300000")


class TestTransaction:
    """Tests for the persisted ledger entry."""

    def test_debt_requires_counterparty(self):
        """Test DEBT without a name is rejected."""
        with pytest.raises(ValueError, match="require a counterparty"):
            Transaction(type=TransactionType.DEBT, amount=Decimal("15000"))

    def test_blank_counterparty_is_none(self):
        """Test whitespace-only counterparty becomes None."""
        tx = Transaction(type=TransactionType.INCOME, amount=Decimal("1"), counterparty="   ")
        assert tx.counterparty is None

    def test_debt_payment_with_counterparty(self):
        """Test DEBT_PAYMENT with a name is accepted."""
        tx = Transaction(
            type=TransactionType.DEBT_PAYMENT,
            amount=Decimal("5000"),
            counterparty=" Musa ",
        )
        assert tx.counterparty == "Musa"
        assert tx.is_inflow is True

    def test_ids_are_unique(self):
        """Test each Transaction gets its own id."""
        a = Transaction(type=TransactionType.INCOME, amount=Decimal("1"))
        b = Transaction(type=TransactionType.INCOME, amount=Decimal("1"))
        assert a.id != b.id

    def test_inflow_outflow(self):
        """Test cash direction per type."""
        expense = Transaction(type=TransactionType.EXPENSE, amount=Decimal("1"))
        debt = Transaction(type=TransactionType.DEBT, amount=Decimal("1"), counterparty="Musa")
        assert expense.is_outflow and not expense.is_inflow
        assert not debt.is_outflow and not debt.is_inflow


class TestBusinessProfile:
    """Tests for the owner profile."""

    def test_defaults(self):
        """Test default business name and currency."""
        profile = BusinessProfile(id="u1")
        assert profile.business_name == "My Enterprise"
        assert profile.currency == "UGX"

    def test_currency_upper_cased(self):
        """Test currency code is normalized."""
        assert BusinessProfile(id="u1", currency="kes").currency == "KES"


class TestReceiptImage:
    """Tests for receipt payloads."""

    def test_accepts_jpeg(self):
        """Test a JPEG receipt is accepted and the type lowercased."""
        image = ReceiptImage(data=b"\xff\xd8", mime_type="IMAGE/JPEG")
        assert image.mime_type == "image/jpeg"

    def test_rejects_unknown_type(self):
        """Test non-receipt media types are rejected."""
        with pytest.raises(ValueError, match="Unsupported receipt type"):
            ReceiptImage(data=b"abc", mime_type="text/plain")

    def test_rejects_empty_bytes(self):
        """Test empty payloads are rejected."""
        with pytest.raises(ValueError):
            ReceiptImage(data=b"", mime_type="image/png")


class TestReportSummary:
    """Tests for report totals."""

    def test_net(self):
        """Test net is inflow minus outflow."""
        summary = ReportSummary(
            period=QueryRange.TODAY,
            window_start=datetime(2026, 1, 1),
            total_in=Decimal("80000"),
            total_out=Decimal("20000"),
        )
        assert summary.net == Decimal("60000")
        assert summary.transaction_count == 0


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TEXT_SUBMITTED,
            description="Text submitted",
        )
        assert event.event_type == AuditEventType.TEXT_SUBMITTED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            description="Transaction saved",
            details={"type": "INCOME", "amount": "5000"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_saved"
        assert log_dict["details"]["amount"] == "5000"

    def test_audit_event_builder_text_submitted(self):
        """Test AuditEventBuilder.text_submitted."""
        correlation_id = uuid4()
        event = AuditEventBuilder.text_submitted("Sold bread 5000", "owner-1", correlation_id)
        assert event.event_type == AuditEventType.TEXT_SUBMITTED
        assert event.correlation_id == correlation_id
        assert event.user_id == "owner-1"
        assert event.is_user_action is True

    def test_audit_event_builder_extraction_low_confidence(self):
        """Test low-confidence extractions are logged as warnings."""
        event = AuditEventBuilder.extraction_completed(
            intent="RECORD",
            transaction_type="INCOME",
            low_confidence=True,
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.WARNING

    def test_audit_event_builder_user_confirmed(self):
        """Test AuditEventBuilder.user_confirmed."""
        transaction_id = uuid4()
        event = AuditEventBuilder.user_confirmed(transaction_id, "owner-1", uuid4())
        assert event.event_type == AuditEventType.USER_CONFIRMED
        assert event.entity_id == transaction_id
        assert event.is_user_action is True


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            is_valid=False,
            can_confirm=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="No amount was found",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            is_valid=False,
            can_confirm=True,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message="Amount is zero",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_severity_pattern(self):
        """Test unknown severities are rejected."""
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
