"""
Two-Stage Confirmation Validation

DESIGN DECISION: The extractor is lenient. It returns whatever it found,
even a RECORD with no amount. Deciding what is good enough to confirm
lives here, in two stages:

STAGE 1 - SHAPE VALIDATION:
- Is this a RECORD at all?
- Type and amount present
- DEBT / DEBT_PAYMENT name the other party
- Errors here block confirmation

STAGE 2 - SEMANTIC VALIDATION:
- Zero amounts
- Amounts picked among several numbers (low confidence)
- Unusually large amounts
- Missing category (will default)
- The same entry saved a few minutes ago (needs storage)
- Warnings here are shown but never block

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import structlog

from kazi_ledger.config import get_settings
from kazi_ledger.models.transaction import (
    DEFAULT_CATEGORY,
    Intent,
    ParseResult,
    ValidationIssue,
    ValidationResult,
)
from kazi_ledger.services.storage import StorageError, TransactionStorageInterface


logger = structlog.get_logger(__name__)

DUPLICATE_WINDOW = timedelta(minutes=10)


class ParseResultValidator:
    """
    Validates a ParseResult before it is shown for confirmation.

    Stage 1: Shape validation (no storage needed)
    Stage 2: Semantic validation (storage only for the duplicate check)
    """

    def __init__(
        self,
        transaction_storage: Optional[TransactionStorageInterface] = None,
        max_transaction_amount: Optional[Decimal] = None,
    ):
        """
        Initialize validator.

        Args:
            transaction_storage: Storage interface for duplicate checking.
                                 If None, duplicate checking is skipped.
            max_transaction_amount: Threshold for the "unusually high"
                                    warning. Read from settings if omitted.
        """
        self._storage = transaction_storage
        if max_transaction_amount is None:
            max_transaction_amount = Decimal(str(get_settings().app.max_transaction_amount))
        self._max_amount = Decimal(max_transaction_amount)

    def _validate_shape(
        self,
        result: ParseResult,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: can this result become a Transaction at all?

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if result.intent != Intent.RECORD:
            issues.append(ValidationIssue(
                field="intent",
                issue_type="not_a_record",
                message=f"This reads as {result.intent.value}, not a transaction to record",
                severity="error",
                suggested_fix="Try something like 'Sold bread 5000'",
            ))
            return False, issues

        if result.type is None:
            issues.append(ValidationIssue(
                field="type",
                issue_type="missing",
                message="Could not tell whether this is income, an expense or a debt",
                severity="error",
                suggested_fix="Start with a verb: sold, paid, bought, owes, paid back",
            ))

        if result.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="No amount was found",
                severity="error",
                suggested_fix="Add the amount, e.g. '5000' or '50k'",
            ))

        if result.type is not None and result.type.needs_counterparty and not result.counterparty:
            issues.append(ValidationIssue(
                field="counterparty",
                issue_type="missing",
                message=f"{result.type.value.replace('_', ' ').title()} entries need a name",
                severity="error",
                suggested_fix="Say who, e.g. 'Musa owes me 15000'",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        result: ParseResult,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: does the proposed entry look sensible?

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if result.amount is not None and result.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))
        elif result.low_confidence:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="low_confidence",
                message=f"Several numbers were found; {result.amount} was picked",
                severity="warning",
                suggested_fix="Please check the amount before saving",
            ))

        if result.amount is not None and result.amount > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({result.amount:,}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if not result.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message=f"No category found; '{DEFAULT_CATEGORY}' will be used",
                severity="info",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    async def _check_duplicates(
        self,
        result: ParseResult,
        user_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> list[ValidationIssue]:
        """
        Warn when an identical entry was saved in the last few minutes.

        This requires storage access.
        """
        issues = []

        if self._storage is None or not user_id or result.amount is None:
            return issues

        since = (now or datetime.now()) - DUPLICATE_WINDOW
        try:
            recent = await self._storage.list_transactions(user_id, since=since)
        except StorageError as e:
            # Don't fail validation due to storage errors
            logger.warning("duplicate_check_failed", error=str(e))
            return issues

        for tx in recent:
            if (
                tx.type == result.type
                and tx.amount == result.amount
                and (tx.counterparty or None) == (result.counterparty or None)
            ):
                issues.append(ValidationIssue(
                    field="duplicate",
                    issue_type="potential_duplicate",
                    message=(
                        f"The same {tx.type.value.lower().replace('_', ' ')} of "
                        f"{tx.amount:,} was saved at {tx.date:%H:%M}"
                    ),
                    severity="warning",
                    suggested_fix="Please verify this isn't a duplicate entry",
                ))
                break

        return issues

    async def validate(
        self,
        result: ParseResult,
        user_id: Optional[str] = None,
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run the two-stage validation pipeline.

        Args:
            result: The extractor output to validate
            user_id: Owner whose ledger is checked for duplicates
            check_duplicates: Whether to check for duplicates (requires storage)

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        shape_valid, shape_issues = self._validate_shape(result)
        all_issues.extend(shape_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if shape_valid:
            semantic_valid, semantic_issues = self._validate_semantic(result)
            all_issues.extend(semantic_issues)

            if check_duplicates:
                all_issues.extend(await self._check_duplicates(result, user_id))

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]
        can_confirm = shape_valid and semantic_valid

        return ValidationResult(
            is_valid=can_confirm and not warnings,
            can_confirm=can_confirm,
            issues=all_issues,
            warnings=warnings,
        )


def get_user_friendly_summary(
    result: ParseResult,
    validation: ValidationResult,
    currency: str = "UGX",
) -> str:
    """
    Render what the owner sees before pressing confirm.

    This is what we show to non-technical users.
    """
    lines = []

    if result.is_record:
        tx_type = result.type.value.replace("_", " ").title() if result.type else "Unknown type"
        amount = f"{currency} {result.amount:,}" if result.amount is not None else "no amount"
        lines.append(f"📒 {tx_type}: {amount}")
        lines.append(f"🏷️ Category: {result.category or DEFAULT_CATEGORY}")
        if result.counterparty:
            lines.append(f"👤 With: {result.counterparty}")

    errors = [issue for issue in validation.issues if issue.severity == "error"]
    if errors:
        lines.append("")
        lines.append("❌ This can't be saved yet:")
        for issue in errors:
            lines.append(f"   • {issue.message}")
            if issue.suggested_fix:
                lines.append(f"     💡 {issue.suggested_fix}")

    if validation.warnings:
        lines.append("")
        lines.append("⚠️ Please verify the following:")
        for warning in validation.warnings:
            lines.append(f"   • {warning}")

    lines.append("")
    if validation.can_confirm:
        lines.append("Confirm to save this entry.")
    else:
        lines.append("Please fix the issues above before saving.")

    return "\n".join(lines)
