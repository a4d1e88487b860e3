"""Tests for the two-stage entry validator."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from family_budget.models.transaction import (
    Currency,
    ExpenseClass,
    TransactionDraft,
    TransactionType,
)
from family_budget.services.storage import InMemoryTransactionStorage, StorageError
from family_budget.validation import TransactionValidator

from factories import expense


def draft(**overrides) -> TransactionDraft:
    values = dict(
        date=date.today(),
        description="Groceries",
        amount=Decimal("120.40"),
        category="Food & Dining",
        type=TransactionType.EXPENSE,
        currency=Currency.ILS,
    )
    values.update(overrides)
    return TransactionDraft(**values)


def issue_types(result) -> set[str]:
    return {issue.issue_type for issue in result.issues}


@pytest.fixture
def validator():
    return TransactionValidator()


class TestSchemaValidation:
    """Stage 1 checks."""

    async def test_valid_draft(self, validator):
        """Test that a complete entry passes."""
        result = await validator.validate(draft())
        assert result.is_valid is True
        assert result.issues == []

    async def test_missing_amount(self, validator):
        """Test that the amount is required."""
        result = await validator.validate(draft(amount=None))
        assert result.schema_valid is False
        assert result.is_valid is False
        assert any(i.field == "amount" and i.issue_type == "missing" for i in result.issues)

    @pytest.mark.parametrize("amount", ["0", "-5", "NaN", "Infinity"])
    async def test_invalid_amounts(self, validator, amount):
        """Test zero, negative and non-finite amounts."""
        result = await validator.validate(draft(amount=Decimal(amount)))
        assert result.schema_valid is False
        assert "invalid_value" in issue_types(result)

    async def test_missing_date(self, validator):
        """Test that the date is required."""
        result = await validator.validate(draft(date=None))
        assert result.is_valid is False
        assert any(i.field == "date" for i in result.issues)

    async def test_missing_currency(self, validator):
        """Test that the currency is required."""
        result = await validator.validate(draft(currency=None))
        assert result.is_valid is False
        assert any(i.field == "currency" for i in result.issues)

    async def test_income_with_expense_class(self, validator):
        """Test that income can't be a deduction or a payment."""
        result = await validator.validate(draft(
            type=TransactionType.INCOME,
            classification=ExpenseClass.MAASER_PAYMENT,
        ))
        assert result.is_valid is False
        assert "inconsistent" in issue_types(result)

    async def test_semantic_stage_skipped_after_schema_error(self, validator):
        """Test that stage 2 doesn't run on broken input."""
        result = await validator.validate(draft(amount=None, date=date.today() + timedelta(days=400)))
        assert result.semantic_valid is False
        assert "future_date" not in issue_types(result)

    async def test_empty_description_is_info_only(self, validator):
        """Test that a missing description doesn't block saving."""
        result = await validator.validate(draft(description=""))
        assert result.is_valid is True
        assert result.warnings == []
        assert any(i.severity == "info" for i in result.issues)


class TestSemanticValidation:
    """Stage 2 checks. All are warnings."""

    async def test_future_date_warning(self, validator):
        """Test a date beyond the tolerance."""
        result = await validator.validate(draft(date=date.today() + timedelta(days=30)))
        assert result.is_valid is True
        assert "future_date" in issue_types(result)
        assert len(result.warnings) == 1

    async def test_near_future_date_allowed(self, validator):
        """Test a date within the tolerance."""
        result = await validator.validate(draft(date=date.today() + timedelta(days=2)))
        assert "future_date" not in issue_types(result)

    async def test_large_amount_warning(self, validator):
        """Test the unusually high amount check."""
        result = await validator.validate(draft(amount=Decimal("5000000")))
        assert result.is_valid is True
        assert "suspicious_value" in issue_types(result)

    async def test_maaser_payment_category(self, validator):
        """Test a Ma'aser payment filed under another category."""
        result = await validator.validate(draft(
            classification=ExpenseClass.MAASER_PAYMENT,
            category="Housing",
        ))
        assert result.is_valid is True
        assert any(i.field == "category" for i in result.issues)

        ok = await validator.validate(draft(
            classification=ExpenseClass.MAASER_PAYMENT,
            category="Ma'aser",
        ))
        assert ok.issues == []


class TestDuplicateCheck:
    """Duplicate detection against storage."""

    async def test_duplicate_detected(self):
        """Test same day, amount and description."""
        existing = expense(date.today().isoformat(), "120.40", description="groceries")
        validator = TransactionValidator(InMemoryTransactionStorage([existing]))

        result = await validator.validate(draft())

        assert result.is_valid is True
        assert "potential_duplicate" in issue_types(result)

    async def test_different_amount_is_not_duplicate(self):
        """Test that a different amount is a new entry."""
        existing = expense(date.today().isoformat(), "99", description="Groceries")
        validator = TransactionValidator(InMemoryTransactionStorage([existing]))

        result = await validator.validate(draft())

        assert "potential_duplicate" not in issue_types(result)

    async def test_duplicate_check_can_be_disabled(self):
        """Test check_duplicates=False."""
        existing = expense(date.today().isoformat(), "120.40", description="Groceries")
        validator = TransactionValidator(InMemoryTransactionStorage([existing]))

        result = await validator.validate(draft(), check_duplicates=False)

        assert result.issues == []

    async def test_storage_failure_does_not_block(self):
        """Test that a broken store skips the duplicate check."""
        class BrokenStorage(InMemoryTransactionStorage):
            async def list_transactions(self, **kwargs):
                raise StorageError("sheet unavailable")

        validator = TransactionValidator(BrokenStorage())
        result = await validator.validate(draft())
        assert result.is_valid is True


class TestSummary:
    """Tests for the user-facing message."""

    async def test_summary_all_good(self, validator):
        """Test the success message."""
        result = await validator.validate(draft())
        assert validator.get_user_friendly_summary(result).startswith("✅")

    async def test_summary_lists_errors_and_fixes(self, validator):
        """Test that errors and suggestions are shown."""
        result = await validator.validate(draft(amount=Decimal("-1")))
        summary = validator.get_user_friendly_summary(result)
        assert "❌" in summary
        assert "Amount must be greater than zero" in summary
        assert "💡" in summary

    async def test_summary_lists_warnings(self, validator):
        """Test that warnings are shown."""
        result = await validator.validate(draft(amount=Decimal("5000000")))
        summary = validator.get_user_friendly_summary(result)
        assert "⚠️" in summary
