"""
Derived (computed) models.

Nothing in this module is ever persisted: every value is rebuilt from the
transaction list whenever the input or the selected currency changes.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SkipValidation

from family_budget.models.transaction import Currency, Transaction


ZERO = Decimal("0")


class MonthStatistic(BaseModel):
    """
    One row of the Ma'aser schedule: a single (currency, month) bucket.

    Only months that contain at least one transaction in the currency are
    materialised.
    """
    model_config = ConfigDict(frozen=True)

    month: str = Field(..., pattern=r"^\d{4}-\d{2}$", description="YYYY-MM")
    income: Decimal
    deductions: Decimal
    # Records are passed through as given; the engine reads them by attribute
    deductible_transactions: SkipValidation[list[Transaction]] = Field(
        default_factory=list,
        description="Expenses that made up `deductions`, in input order"
    )
    net_profit: Decimal = Field(..., description="income - deductions, may be negative")
    obligation: Decimal = Field(..., ge=0, description="max(0, net_profit * rate)")
    paid: Decimal
    monthly_balance: Decimal = Field(..., description="obligation - paid")
    running_balance: Decimal = Field(
        ...,
        description="Sum of monthly_balance for this and every earlier month"
    )


class MaaserSchedule(BaseModel):
    """
    Result of a ledger computation for one currency.

    `schedule` is ordered most recent month first (display order).
    """
    model_config = ConfigDict(frozen=True)

    currency: Currency
    rate: Decimal
    schedule: list[MonthStatistic] = Field(default_factory=list)
    current_balance: Decimal = ZERO

    @property
    def is_owed(self) -> bool:
        """Positive balance means money is still owed."""
        return self.current_balance > 0

    def chronological(self) -> list[MonthStatistic]:
        """Rows oldest first, the order in which the fold ran."""
        return list(reversed(self.schedule))

    def get_month(self, month: str) -> Optional[MonthStatistic]:
        for stat in self.schedule:
            if stat.month == month:
                return stat
        return None


class BudgetSummary(BaseModel):
    """Income/expense totals of one currency."""

    currency: Currency
    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    balance: Decimal = ZERO


class MonthlyTotals(BaseModel):
    """One point of the dashboard bar chart."""

    month: str
    label: str
    income: Decimal = ZERO
    expense: Decimal = ZERO


class CategoryTotal(BaseModel):
    """Total expense of one category, for the pie chart."""

    name: str
    value: Decimal
    color: str


class InvestmentOverview(BaseModel):
    """Investments and tax-deductible business expenses, with totals."""

    investments: list[Transaction] = Field(default_factory=list)
    tax_deductibles: list[Transaction] = Field(default_factory=list)
    investment_totals: dict[Currency, Decimal] = Field(default_factory=dict)
    tax_deductible_totals: dict[Currency, Decimal] = Field(default_factory=dict)


class YearlyTotals(BaseModel):
    """Totals of one currency over the selected years."""

    currency: Currency
    income: Decimal = ZERO
    household_expense: Decimal = ZERO
    business_deductibles: Decimal = Field(
        default=ZERO,
        description="Ma'aser-deductible plus tax-deductible costs"
    )
