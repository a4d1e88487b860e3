"""
Core Data Models for Family Budget

These models define the schemas for every transaction flowing through the
system: entry drafts, stored transactions, receipt extractions and the
validation results produced at the entry boundary.

DESIGN DECISION: A transaction carries exactly ONE expense classification.
The old storage format used five independent booleans, which allowed
contradictory combinations (e.g. both a Ma'aser payment and a deductible
business expense). Legacy flags are still accepted on input and mapped to a
single class, and are exposed again as read-only properties for readers that
think in flags.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money. The sign lives here, never in the amount."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Currency(str, Enum):
    """
    Supported currencies.

    Each currency is an independent partition: amounts are never converted
    when computing ledgers or summaries.
    """
    ILS = "ILS"
    USD = "USD"

    @property
    def symbol(self) -> str:
        return "₪" if self is Currency.ILS else "$"


class ExpenseClass(str, Enum):
    """
    How an expense is treated by the different views.

    HOUSEHOLD          - regular budget, shown on the dashboard
    MAASER_DEDUCTIBLE  - business cost that reduces the Ma'aser profit base
    TAX_DEDUCTIBLE     - business cost for tax filing
    INVESTMENT         - investment deposit
    MAASER_PAYMENT     - charitable disbursement paid against the obligation
    """
    HOUSEHOLD = "household"
    MAASER_DEDUCTIBLE = "maaser_deductible"
    TAX_DEDUCTIBLE = "tax_deductible"
    INVESTMENT = "investment"
    MAASER_PAYMENT = "maaser_payment"


# Legacy boolean columns, in the order used to resolve rows that set more
# than one of them. Both the snake_case storage names and the camelCase names
# of the old client are recognised.
LEGACY_FLAG_PRECEDENCE: list[tuple[tuple[str, str], ExpenseClass]] = [
    (("is_maaser_payment", "isMaaserPayment"), ExpenseClass.MAASER_PAYMENT),
    (("is_maaser_deductible", "isMaaserDeductible"), ExpenseClass.MAASER_DEDUCTIBLE),
    (("is_tax_deductible", "isTaxDeductible"), ExpenseClass.TAX_DEDUCTIBLE),
    (("is_investment", "isInvestment"), ExpenseClass.INVESTMENT),
]


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


def classify_legacy_flags(data: dict) -> tuple[ExpenseClass, list[ExpenseClass]]:
    """
    Resolve legacy boolean flags to a single expense class.

    Returns (chosen_class, all_classes_that_were_set). The second element lets
    callers report rows that carried contradictory flags.
    """
    flagged = [
        expense_class
        for names, expense_class in LEGACY_FLAG_PRECEDENCE
        if any(_truthy(data.get(name)) for name in names)
    ]
    chosen = flagged[0] if flagged else ExpenseClass.HOUSEHOLD
    return chosen, flagged


# =============================================================================
# TRANSACTION MODELS
# =============================================================================

class Transaction(BaseModel):
    """
    A stored transaction.

    Transactions are immutable once built; edits are a delete followed by a
    new entry. Every derived view (dashboard, Ma'aser ledger, reports) is
    recomputed from these records.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        frozen=True,
        populate_by_name=True,
    )

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Opaque identifier, unique within the collection"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the transaction"
    )
    description: str = Field(
        default="",
        max_length=500,
        description="What the money was for"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative magnitude in the transaction's currency"
    )
    category: str = Field(
        default="Other",
        max_length=100,
        description="Free-text category label"
    )
    type: TransactionType = Field(
        ...,
        description="INCOME or EXPENSE"
    )
    currency: Currency = Field(
        ...,
        description="Currency partition of this transaction"
    )
    classification: ExpenseClass = Field(
        default=ExpenseClass.HOUSEHOLD,
        description="Single classification assigned at entry time"
    )
    is_recurring: bool = Field(
        default=False,
        alias="isRecurring",
        description="Monthly recurring bill"
    )
    legacy_flags: frozenset[ExpenseClass] = Field(
        default_factory=frozenset,
        description="Every class an old boolean-flag row set. Empty for new entries"
    )

    @model_validator(mode="before")
    @classmethod
    def map_legacy_flags(cls, data: Any) -> Any:
        """Accept the old boolean flag columns in place of `classification`."""
        if not isinstance(data, dict):
            return data
        legacy_names = {name for names, _ in LEGACY_FLAG_PRECEDENCE for name in names}
        if not legacy_names.intersection(data):
            return data
        data = dict(data)
        chosen, flagged = classify_legacy_flags(data)
        for name in legacy_names:
            data.pop(name, None)
        if "classification" not in data:
            data["classification"] = chosen
            data.setdefault("legacy_flags", frozenset(flagged))
        return data

    @property
    def month(self) -> str:
        """Month bucket key, `YYYY-MM`."""
        return self.date.isoformat()[:7]

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE

    def has_class(self, expense_class: ExpenseClass) -> bool:
        """
        True when the record carries `expense_class`.

        Old rows could set several flags at once. Each flag they set still
        answers True here, so the ledger counts such a row the way the old
        app did (a payment that is also deductible counts in both sums).
        """
        return self.classification == expense_class or expense_class in self.legacy_flags

    @property
    def is_maaser_deductible(self) -> bool:
        return self.has_class(ExpenseClass.MAASER_DEDUCTIBLE)

    @property
    def is_maaser_payment(self) -> bool:
        return self.has_class(ExpenseClass.MAASER_PAYMENT)

    @property
    def is_tax_deductible(self) -> bool:
        return self.has_class(ExpenseClass.TAX_DEDUCTIBLE)

    @property
    def is_investment(self) -> bool:
        return self.has_class(ExpenseClass.INVESTMENT)


class TransactionDraft(BaseModel):
    """
    A transaction as entered by the user (or prefilled from a receipt),
    before validation.

    Everything is optional because the form may be incomplete. Non-finite
    amounts are let through here on purpose so the validator can report them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: Optional[dt.date] = None
    description: str = ""
    amount: Optional[Decimal] = Field(default=None, allow_inf_nan=True)
    category: str = "Other"
    type: TransactionType = TransactionType.EXPENSE
    currency: Optional[Currency] = Currency.ILS
    classification: ExpenseClass = ExpenseClass.HOUSEHOLD
    is_recurring: bool = False

    def to_transaction(self) -> Transaction:
        """Build the immutable record. Call only after validation passed."""
        classification = (
            self.classification
            if self.type == TransactionType.EXPENSE
            else ExpenseClass.HOUSEHOLD
        )
        return Transaction(
            date=self.date,
            description=self.description,
            amount=self.amount,
            category=self.category,
            type=self.type,
            currency=self.currency,
            classification=classification,
            is_recurring=self.is_recurring,
        )


class ReceiptData(BaseModel):
    """
    Data read from a receipt photo by the AI service.

    CRITICAL: This is PROPOSED data. It only prefills the entry form and
    goes through the same validation as manual input.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: Optional[dt.date] = None
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    merchant: Optional[str] = Field(default=None, max_length=200)
    category: Optional[str] = None
    currency: Optional[Currency] = None

    @field_validator("date", mode="before")
    @classmethod
    def drop_unparseable_date(cls, v: Any) -> Any:
        """The model sometimes answers with free text; treat it as missing."""
        if isinstance(v, str):
            try:
                return dt.date.fromisoformat(v.strip())
            except ValueError:
                return None
        return v

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        if isinstance(v, str):
            code = v.strip().upper()
            if code in {"NIS", "SHEKEL", "SHEKELS", "₪"}:
                return Currency.ILS
            if code in {"$", "DOLLAR", "DOLLARS"}:
                return Currency.USD
            return code if code in Currency.__members__ else None
        return v

    def to_draft(self) -> TransactionDraft:
        """Prefill an expense draft from the receipt."""
        return TransactionDraft(
            date=self.date,
            description=self.merchant or "",
            amount=self.total_amount,
            category=self.category or "Other",
            type=TransactionType.EXPENSE,
            currency=self.currency or Currency.ILS,
        )


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
        description="Type of issue (e.g., 'missing', 'invalid_value', 'future_date')"
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
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage entry validation.

    Stage 1: Schema validation (presence, formats, finite amounts)
    Stage 2: Semantic validation (plausibility and duplicates)
    """

    validated_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow
    )
    schema_valid: bool
    semantic_valid: bool
    is_valid: bool = Field(
        ...,
        description="True when no error-level issue was found"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)
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
