"""
Two-Stage Entry Validation

DESIGN DECISION: Every entry, typed by hand or prefilled from a receipt,
is validated in two distinct stages before it becomes a Transaction:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (amount, date, currency)
- Amount is a finite number greater than zero
- Income never carries an expense classification
- This catches incomplete forms and bad receipt reads

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Unusually large amount detection
- Ma'aser payments filed under a non-Ma'aser category
- Duplicate detection (same day, amount and description)
- This catches plausible-looking typos

Stage 2 only runs when stage 1 passes. Semantic issues are warnings: the
user may confirm a large or future-dated entry.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import date, timedelta
from typing import Optional

import structlog

from family_budget.config import get_settings
from family_budget.models.constants import MAASER_CATEGORIES
from family_budget.models.transaction import (
    Currency,
    ExpenseClass,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from family_budget.services.storage import StorageError, TransactionStorageInterface


logger = structlog.get_logger(__name__)


class TransactionValidator:
    """
    Validates transaction drafts through a two-stage pipeline.

    Stage 1: Schema validation (no storage needed)
    Stage 2: Semantic validation (storage needed for duplicate checks)
    """

    def __init__(
        self,
        transaction_storage: Optional[TransactionStorageInterface] = None,
    ):
        """
        Args:
            transaction_storage: Storage interface for duplicate checking.
                                 If None, duplicate checking is skipped.
        """
        self._storage = transaction_storage
        self._settings = get_settings().app

    def _validate_schema(
        self,
        draft: TransactionDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if draft.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
                suggested_fix="Enter the amount without a minus sign",
            ))
        elif not draft.amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a number",
                severity="error",
            ))
        elif draft.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Use the Income/Expense type for the direction, not the sign",
            ))

        if draft.date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Date is required",
                severity="error",
            ))

        if draft.currency is None:
            issues.append(ValidationIssue(
                field="currency",
                issue_type="missing",
                message=(
                    "Currency is required (one of "
                    f"{', '.join(c.value for c in Currency)})"
                ),
                severity="error",
            ))

        if (
            draft.type == TransactionType.INCOME
            and draft.classification != ExpenseClass.HOUSEHOLD
        ):
            issues.append(ValidationIssue(
                field="classification",
                issue_type="inconsistent",
                message="Income cannot be marked as a deductible, investment or Ma'aser payment",
                severity="error",
                suggested_fix="Record the payment as a separate expense",
            ))

        if not draft.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="No description entered",
                severity="info",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(
        self,
        draft: TransactionDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        today = date.today()

        max_future_date = today + timedelta(
            days=self._settings.future_date_tolerance_days
        )
        if draft.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({draft.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if draft.amount > self._settings.max_transaction_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Amount ({draft.currency.symbol}{draft.amount:,.2f}) "
                    "seems unusually high"
                ),
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if (
            draft.classification == ExpenseClass.MAASER_PAYMENT
            and draft.category not in MAASER_CATEGORIES
        ):
            issues.append(ValidationIssue(
                field="category",
                issue_type="inconsistent",
                message=(
                    f"Ma'aser payment filed under '{draft.category}'"
                ),
                severity="warning",
                suggested_fix=f"Use one of: {', '.join(sorted(MAASER_CATEGORIES))}",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    async def _check_duplicates(
        self,
        draft: TransactionDraft,
    ) -> list[ValidationIssue]:
        """
        Look for an existing transaction with the same day, amount and
        description. Requires storage access.
        """
        if self._storage is None:
            return []

        try:
            existing = await self._storage.list_transactions(
                currency=draft.currency,
                years=[draft.date.year],
                transaction_type=draft.type,
            )
        except StorageError as e:
            # A storage hiccup must not block entry
            logger.warning("duplicate_check_failed", error=str(e))
            return []

        for transaction in existing:
            if (
                transaction.date == draft.date
                and transaction.amount == draft.amount
                and transaction.description.lower() == draft.description.lower()
            ):
                return [ValidationIssue(
                    field="duplicate",
                    issue_type="potential_duplicate",
                    message=(
                        f"'{draft.description or 'Untitled'}' for "
                        f"{draft.currency.symbol}{draft.amount:,.2f} on "
                        f"{draft.date} may already exist"
                    ),
                    severity="warning",
                    suggested_fix="Please verify this isn't a duplicate entry",
                )]

        return []

    async def validate(
        self,
        draft: TransactionDraft,
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            draft: The entry to validate
            check_duplicates: Whether to check for duplicates (requires storage)

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(draft)
        all_issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(draft)
            all_issues.extend(semantic_issues)

            if check_duplicates:
                all_issues.extend(await self._check_duplicates(draft))

        warnings = [
            issue.message for issue in all_issues if issue.severity == "warning"
        ]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the entry form shows under the Save button.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ This entry can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
