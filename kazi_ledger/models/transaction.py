"""
Core Data Models for Kazi Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Keep the extractor output (ParseResult) apart from what gets saved
   (Transaction)

DESIGN DECISION: A ParseResult is a PROPOSAL. It is never persisted.
Only a Transaction, created after the owner confirms, reaches storage.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


DEFAULT_CATEGORY = "General"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Kinds of ledger entries.

    DEBT and DEBT_PAYMENT always name the other party.
    """
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    DEBT = "DEBT"                  # Someone owes the business
    DEBT_PAYMENT = "DEBT_PAYMENT"  # Someone paid the business back

    @property
    def needs_counterparty(self) -> bool:
        return self in (TransactionType.DEBT, TransactionType.DEBT_PAYMENT)


class Intent(str, Enum):
    """What an utterance is trying to do."""
    RECORD = "RECORD"
    QUERY = "QUERY"
    UNKNOWN = "UNKNOWN"


class QueryRange(str, Enum):
    """Relative time windows a query can ask about."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


RECEIPT_MEDIA_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/webp",
    "application/pdf",
})


# =============================================================================
# EXTRACTOR OUTPUT
# =============================================================================

class ParseResult(BaseModel):
    """
    Structured reading of one utterance or one receipt.

    CRITICAL: This is PROPOSED data, NOT verified.
    It MUST go through human confirmation before it becomes a Transaction.

    Shape rules:
    - type, amount, category and counterparty only appear on RECORD
    - query_range only appears on QUERY
    - UNKNOWN carries nothing but raw_text
    """
    # raw_text is kept verbatim, so no whitespace stripping here.
    model_config = ConfigDict(frozen=True)

    intent: Intent
    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=60)
    counterparty: Optional[str] = Field(default=None, min_length=1, max_length=120)
    query_range: Optional[QueryRange] = None
    raw_text: str = Field(
        default="",
        description="The original input, kept for diagnostics and fallback messages"
    )
    low_confidence: bool = Field(
        default=False,
        description="Set when the amount was picked among several candidates or is zero"
    )

    @model_validator(mode="after")
    def check_shape(self) -> "ParseResult":
        record_fields = {
            "type": self.type,
            "amount": self.amount,
            "category": self.category,
            "counterparty": self.counterparty,
        }
        if self.intent != Intent.RECORD:
            populated = [name for name, value in record_fields.items() if value is not None]
            if populated:
                raise ValueError(
                    f"{self.intent.value} result cannot carry {', '.join(populated)}"
                )
        if self.intent != Intent.QUERY and self.query_range is not None:
            raise ValueError("query_range is only allowed on QUERY results")
        if self.intent == Intent.UNKNOWN and self.low_confidence:
            raise ValueError("UNKNOWN results cannot be flagged low confidence")
        return self

    @classmethod
    def unknown(cls, raw_text: str) -> "ParseResult":
        """The degradation result: nothing but the original text."""
        return cls(intent=Intent.UNKNOWN, raw_text=raw_text or "")

    @property
    def is_record(self) -> bool:
        return self.intent == Intent.RECORD

    @property
    def is_query(self) -> bool:
        return self.intent == Intent.QUERY

    @property
    def is_unknown(self) -> bool:
        return self.intent == Intent.UNKNOWN

    def to_transaction(
        self,
        date: Optional[datetime] = None,
        **overrides: Any,
    ) -> "Transaction":
        """
        Promote a confirmed RECORD into a Transaction.

        Missing fields take the confirmation defaults: INCOME, amount 0,
        category "General". Any field the owner edited can be passed
        in overrides (type, amount, category, counterparty, note, id).

        Raises:
            ValueError: if this is not a RECORD, or the result would break
                        the Transaction invariants.
        """
        if not self.is_record:
            raise ValueError(f"Only RECORD results can be confirmed, got {self.intent.value}")

        fields: dict[str, Any] = {
            "type": self.type or TransactionType.INCOME,
            "amount": self.amount if self.amount is not None else Decimal("0"),
            "category": self.category or DEFAULT_CATEGORY,
            "counterparty": self.counterparty,
        }
        fields.update(overrides)
        if date is not None:
            fields["date"] = date
        return Transaction(**fields)


# =============================================================================
# RECEIPTS
# =============================================================================

class ReceiptFields(BaseModel):
    """
    Candidate values read off a receipt by an OCR step.

    Everything is optional and loosely typed: the amount may still be the
    raw printed string ("UGX 45,000"). The extractor does the coercion.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    amount: Optional[Decimal | float | int | str] = None
    merchant: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = Field(
        default=None,
        description="Transaction type printed or guessed by OCR, if any"
    )
    raw_text: Optional[str] = Field(
        default=None,
        description="Full OCR text, kept for the audit trail"
    )


class ReceiptImage(BaseModel):
    """Inline receipt bytes plus a media-type tag."""

    data: bytes = Field(..., min_length=1)
    mime_type: str
    filename: Optional[str] = None

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only allow receipt-like documents."""
        if v.lower() not in RECEIPT_MEDIA_TYPES:
            raise ValueError(
                f"Unsupported receipt type: {v}. Allowed: {sorted(RECEIPT_MEDIA_TYPES)}"
            )
        return v.lower()


# =============================================================================
# PERSISTED LEDGER ENTRY
# =============================================================================

class Transaction(BaseModel):
    """
    A ledger entry that has been CONFIRMED by the owner.

    CRITICAL: Only Transaction objects are persisted to storage.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Assigned at commit time, never reused"
    )
    type: TransactionType
    amount: Decimal = Field(..., ge=0)
    category: str = Field(default=DEFAULT_CATEGORY, min_length=1, max_length=60)
    counterparty: Optional[str] = Field(default=None, max_length=120)
    note: Optional[str] = Field(default=None, max_length=500)
    date: datetime = Field(
        default_factory=datetime.now,
        description="When the entry was recorded"
    )

    @field_validator("counterparty")
    @classmethod
    def blank_counterparty_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def validate_counterparty(self) -> "Transaction":
        """DEBT and DEBT_PAYMENT must say who."""
        if self.type.needs_counterparty and not self.counterparty:
            raise ValueError(f"{self.type.value} transactions require a counterparty")
        return self

    @property
    def is_inflow(self) -> bool:
        return self.type in (TransactionType.INCOME, TransactionType.DEBT_PAYMENT)

    @property
    def is_outflow(self) -> bool:
        return self.type == TransactionType.EXPENSE


# =============================================================================
# IDENTITY
# =============================================================================

class BusinessProfile(BaseModel):
    """
    The signed-in owner, as supplied by the identity provider.

    Only used to scope persistence calls. The extractor never sees it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    email: Optional[str] = None
    business_name: str = Field(default="My Enterprise", min_length=1, max_length=120)
    currency: str = Field(default="UGX", min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'suspicious_value', 'low_confidence')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Whether a ParseResult is good enough to show for confirmation."""

    validated_at: datetime = Field(
        default_factory=datetime.now
    )
    is_valid: bool = Field(
        ...,
        description="No errors and no warnings"
    )
    can_confirm: bool = Field(
        ...,
        description="No errors; warnings are shown but do not block"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# REPORT MODELS
# =============================================================================

class DebtBalance(BaseModel):
    """Outstanding amount one counterparty still owes."""

    name: str
    balance: Decimal = Field(..., gt=0)


class ReportSummary(BaseModel):
    """
    Totals over a report window.

    Inflow is INCOME + DEBT_PAYMENT, outflow is EXPENSE.
    DEBT moves no cash and counts toward neither.
    """

    period: QueryRange
    window_start: datetime
    generated_at: datetime = Field(default_factory=datetime.now)
    total_in: Decimal = Decimal("0")
    total_out: Decimal = Decimal("0")
    transactions: list[Transaction] = Field(default_factory=list)

    @property
    def net(self) -> Decimal:
        return self.total_in - self.total_out

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)
