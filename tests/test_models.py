"""
Tests for Family Budget models

Test strategy:
1. Unit tests for individual components (models, ledger, reports, validator)
2. Integration tests for flows (with in-memory storage and stub agents)
3. No real API calls in tests (stubs and httpx.MockTransport)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from family_budget.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from family_budget.models.exchange_rate import ExchangeRate
from family_budget.models.transaction import (
    Currency,
    ExpenseClass,
    ReceiptData,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    classify_legacy_flags,
)


class TestTransactionModels:
    """Tests for the Transaction model."""

    def test_transaction_creation(self):
        """Test Transaction creation from ISO strings."""
        tx = Transaction(
            date="2024-01-15",
            description="Salary",
            amount="1000.50",
            type="INCOME",
            currency="ILS",
        )
        assert tx.date == date(2024, 1, 15)
        assert tx.amount == Decimal("1000.50")
        assert tx.classification == ExpenseClass.HOUSEHOLD
        assert tx.category == "Other"
        assert tx.id

    def test_transaction_ids_are_unique(self):
        """Test that every new transaction gets its own id."""
        a = Transaction(date="2024-01-01", amount="1", type="EXPENSE", currency="ILS")
        b = Transaction(date="2024-01-01", amount="1", type="EXPENSE", currency="ILS")
        assert a.id != b.id

    def test_transaction_strips_whitespace(self):
        """Test that whitespace is stripped from text fields."""
        tx = Transaction(
            date="2024-01-15",
            description="  Rent  ",
            amount="10",
            type="EXPENSE",
            currency="ILS",
        )
        assert tx.description == "Rent"

    def test_transaction_rejects_negative_amount(self):
        """Test that the sign never lives in the amount."""
        with pytest.raises(ValueError):
            Transaction(date="2024-01-15", amount="-5", type="EXPENSE", currency="ILS")

    def test_transaction_rejects_unknown_currency(self):
        """Test that only ILS and USD are accepted."""
        with pytest.raises(ValueError):
            Transaction(date="2024-01-15", amount="5", type="EXPENSE", currency="EUR")

    def test_transaction_is_immutable(self):
        """Test that stored transactions cannot be edited in place."""
        tx = Transaction(date="2024-01-15", amount="5", type="EXPENSE", currency="ILS")
        with pytest.raises(ValueError):
            tx.amount = Decimal("6")

    def test_month_key(self):
        """Test the YYYY-MM bucket key."""
        tx = Transaction(date="2024-03-09", amount="5", type="EXPENSE", currency="ILS")
        assert tx.month == "2024-03"

    def test_flag_properties_follow_classification(self):
        """Test that exactly one legacy flag property is true."""
        tx = Transaction(
            date="2024-01-15",
            amount="5",
            type="EXPENSE",
            currency="ILS",
            classification=ExpenseClass.MAASER_PAYMENT,
        )
        assert tx.is_maaser_payment is True
        assert tx.is_maaser_deductible is False
        assert tx.is_tax_deductible is False
        assert tx.is_investment is False

    def test_recurring_accepts_camel_case_alias(self):
        """Test that old camelCase exports load."""
        tx = Transaction(
            date="2024-01-15", amount="5", type="EXPENSE", currency="ILS",
            isRecurring=True,
        )
        assert tx.is_recurring is True


class TestLegacyFlags:
    """Tests for mapping the old boolean columns to ExpenseClass."""

    def test_single_legacy_flag(self):
        """Test that a single flag maps to its class."""
        tx = Transaction(
            date="2024-01-15", amount="200", type="EXPENSE", currency="ILS",
            is_maaser_deductible="TRUE",
        )
        assert tx.classification == ExpenseClass.MAASER_DEDUCTIBLE

    def test_camel_case_legacy_flag(self):
        """Test the old client's camelCase flag names."""
        tx = Transaction(
            date="2024-01-15", amount="200", type="EXPENSE", currency="USD",
            isInvestment=True,
        )
        assert tx.classification == ExpenseClass.INVESTMENT

    def test_conflicting_flags_resolve_by_precedence(self):
        """Test that a payment wins over a deduction."""
        data = {"isMaaserPayment": True, "isMaaserDeductible": True}
        chosen, flagged = classify_legacy_flags(data)
        assert chosen == ExpenseClass.MAASER_PAYMENT
        assert flagged == [ExpenseClass.MAASER_PAYMENT, ExpenseClass.MAASER_DEDUCTIBLE]

    def test_conflicting_flags_are_all_kept(self):
        """Test that a row with two flags still reports both."""
        tx = Transaction(
            date="2024-01-15", amount="40", type="EXPENSE", currency="ILS",
            isMaaserDeductible=True, isMaaserPayment=True,
        )
        assert tx.classification == ExpenseClass.MAASER_PAYMENT
        assert tx.is_maaser_payment is True
        assert tx.is_maaser_deductible is True
        assert tx.is_tax_deductible is False
        assert tx.legacy_flags == {ExpenseClass.MAASER_PAYMENT, ExpenseClass.MAASER_DEDUCTIBLE}

    def test_new_entries_have_no_legacy_flags(self):
        """Test that entries made with a classification carry nothing extra."""
        tx = Transaction(
            date="2024-01-15", amount="40", type="EXPENSE", currency="ILS",
            classification=ExpenseClass.MAASER_DEDUCTIBLE,
        )
        assert tx.legacy_flags == frozenset()
        assert tx.is_maaser_payment is False

    def test_false_strings_are_not_flags(self):
        """Test that 'FALSE' cells are ignored."""
        chosen, flagged = classify_legacy_flags({"is_investment": "FALSE"})
        assert chosen == ExpenseClass.HOUSEHOLD
        assert flagged == []

    def test_explicit_classification_wins(self):
        """Test that a classification column is not overridden by flags."""
        tx = Transaction(
            date="2024-01-15", amount="200", type="EXPENSE", currency="ILS",
            classification="tax_deductible",
            is_investment=True,
        )
        assert tx.classification == ExpenseClass.TAX_DEDUCTIBLE
        assert tx.is_investment is False


class TestTransactionDraft:
    """Tests for the entry form model."""

    def test_draft_allows_missing_fields(self):
        """Test that an empty form is representable."""
        draft = TransactionDraft()
        assert draft.amount is None
        assert draft.date is None

    def test_draft_keeps_non_finite_amount_for_validation(self):
        """Test that NaN reaches the validator instead of failing early."""
        draft = TransactionDraft(amount=Decimal("NaN"))
        assert not draft.amount.is_finite()

    def test_income_draft_drops_expense_class(self):
        """Test that income is always stored as household."""
        draft = TransactionDraft(
            date=date(2024, 1, 1),
            amount=Decimal("100"),
            type=TransactionType.INCOME,
            classification=ExpenseClass.MAASER_DEDUCTIBLE,
        )
        assert draft.to_transaction().classification == ExpenseClass.HOUSEHOLD


class TestReceiptData:
    """Tests for receipt extraction output."""

    def test_free_text_date_becomes_none(self):
        """Test that an unreadable date is treated as missing."""
        receipt = ReceiptData(date="sometime in March")
        assert receipt.date is None

    def test_currency_aliases(self):
        """Test that NIS and symbols are normalised."""
        assert ReceiptData(currency="NIS").currency == Currency.ILS
        assert ReceiptData(currency="$").currency == Currency.USD
        assert ReceiptData(currency="EUR").currency is None

    def test_to_draft(self):
        """Test that a receipt prefills an expense draft."""
        receipt = ReceiptData(
            date="2024-05-02",
            total_amount=Decimal("87.90"),
            merchant="Shufersal",
            category="Food & Dining",
            currency="ILS",
        )
        draft = receipt.to_draft()
        assert draft.type == TransactionType.EXPENSE
        assert draft.description == "Shufersal"
        assert draft.amount == Decimal("87.90")
        assert draft.date == date(2024, 5, 2)

    def test_to_draft_defaults(self):
        """Test defaults when the receipt was mostly unreadable."""
        draft = ReceiptData().to_draft()
        assert draft.currency == Currency.ILS
        assert draft.category == "Other"
        assert draft.description == ""


class TestExchangeRate:
    """Tests for the ExchangeRate model."""

    def test_from_usd_to_ils(self):
        """Test that the inverse rate is derived."""
        rate = ExchangeRate.from_usd_to_ils(Decimal("4"), date(2024, 1, 1))
        assert rate.ils_to_usd == Decimal("0.25")

    def test_rejects_zero_rate(self):
        """Test that a zero rate is rejected."""
        with pytest.raises(ValueError):
            ExchangeRate(usd_to_ils=Decimal("0"), ils_to_usd=Decimal("1"), date=date(2024, 1, 1))


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            description="Transaction saved",
        )
        assert event.event_type == AuditEventType.TRANSACTION_SAVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.LEDGER_COMPUTED,
            description="Ledger computed",
            details={"currency": "ILS", "month_count": 3},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "ledger_computed"
        assert log_dict["details"]["currency"] == "ILS"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            description="Transaction deleted",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "transaction_deleted"
        assert row[10] == "True"

    def test_audit_event_builder_transaction_saved(self):
        """Test AuditEventBuilder.transaction_saved."""
        correlation_id = uuid4()

        event = AuditEventBuilder.transaction_saved(
            transaction_id="tx-1",
            transaction_type="EXPENSE",
            amount="50",
            currency="ILS",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.TRANSACTION_SAVED
        assert event.entity_id == "tx-1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_exchange_rate_fallback(self):
        """Test AuditEventBuilder.exchange_rate_fallback."""
        event = AuditEventBuilder.exchange_rate_fallback(
            error_message="timeout",
            fallback_date="2024-01-01",
        )

        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == "2024-01-01"
        assert event.error_message == "timeout"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_issue_severity_is_restricted(self):
        """Test that unknown severities are rejected."""
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
