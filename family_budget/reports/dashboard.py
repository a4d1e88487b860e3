"""
Dashboard and panel reports.

Plain functions over a list of transactions. Like the ledger engine they are
pure and recomputed on every render; nothing here touches storage.

The dashboard only shows the HOUSEHOLD budget: Ma'aser-deductible business
costs, tax-deductible costs and investments have their own views and are
kept out of the household totals. Ma'aser payments stay in, they are real
household outflows.
"""

import calendar
from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Union

from family_budget.ledger.maaser import month_key
from family_budget.models.constants import COLORS
from family_budget.models.ledger import (
    ZERO,
    BudgetSummary,
    CategoryTotal,
    InvestmentOverview,
    MonthlyTotals,
    YearlyTotals,
)
from family_budget.models.transaction import Currency, Transaction, TransactionType


def transaction_year(transaction: Transaction) -> int:
    """Four-digit year of a transaction."""
    return int(str(transaction.date)[:4])


def filter_by_years(
    transactions: Iterable[Transaction],
    years: Iterable[int],
) -> list[Transaction]:
    """Keep transactions whose year is one of `years`."""
    selected = set(years)
    return [t for t in transactions if transaction_year(t) in selected]


def available_years(transactions: Iterable[Transaction]) -> list[int]:
    """Distinct years present in the data, newest first."""
    return sorted({transaction_year(t) for t in transactions}, reverse=True)


def household_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Transactions that belong to the regular household budget."""
    return [
        t for t in transactions
        if not t.is_maaser_deductible
        and not t.is_tax_deductible
        and not t.is_investment
    ]


def summarize(
    transactions: Iterable[Transaction],
    currency: Union[Currency, str],
) -> BudgetSummary:
    """Total income, expense and balance of one currency."""
    currency = Currency(currency)
    income = ZERO
    expense = ZERO
    for t in transactions:
        if t.currency != currency:
            continue
        if t.type == TransactionType.INCOME:
            income += t.amount
        else:
            expense += t.amount
    return BudgetSummary(
        currency=currency,
        total_income=income,
        total_expense=expense,
        balance=income - expense,
    )


def monthly_chart_grid(
    transactions: Iterable[Transaction],
    currency: Union[Currency, str],
    years: Iterable[int],
) -> list[MonthlyTotals]:
    """
    Income and expense per month on a fixed 12-month grid per year.

    Unlike the Ma'aser schedule this grid is dense: months without data are
    present with zero totals so charts have a stable axis. Transactions
    outside the selected years are ignored.
    """
    currency = Currency(currency)
    selected = sorted(set(years))
    multi_year = len(selected) > 1

    grid: dict[str, MonthlyTotals] = {}
    for year in selected:
        for month in range(1, 13):
            key = f"{year:04d}-{month:02d}"
            label = calendar.month_abbr[month]
            if multi_year:
                label = f"{label} {year % 100:02d}"
            grid[key] = MonthlyTotals(month=key, label=label)

    for t in transactions:
        if t.currency != currency:
            continue
        point = grid.get(month_key(t.date))
        if point is None:
            continue
        if t.type == TransactionType.INCOME:
            point.income += t.amount
        else:
            point.expense += t.amount

    return [grid[key] for key in sorted(grid)]


def category_breakdown(
    transactions: Iterable[Transaction],
    currency: Union[Currency, str],
) -> list[CategoryTotal]:
    """Expense totals per category, largest first."""
    currency = Currency(currency)
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in transactions:
        if t.currency == currency and t.type == TransactionType.EXPENSE:
            totals[t.category] += t.amount

    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [
        CategoryTotal(name=name, value=value, color=COLORS[index % len(COLORS)])
        for index, (name, value) in enumerate(ordered)
    ]


def recurring_expenses(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Expenses marked as recurring, newest first."""
    recurring = [
        t for t in transactions
        if t.type == TransactionType.EXPENSE and t.is_recurring
    ]
    return sorted(recurring, key=lambda t: t.date, reverse=True)


def _totals_by_currency(transactions: list[Transaction]) -> dict[Currency, Decimal]:
    totals = {currency: ZERO for currency in Currency}
    for t in transactions:
        totals[t.currency] += t.amount
    return totals


def investment_overview(transactions: Iterable[Transaction]) -> InvestmentOverview:
    """Investment deposits and tax-deductible business costs, newest first."""
    expenses = sorted(
        (t for t in transactions if t.type == TransactionType.EXPENSE),
        key=lambda t: t.date,
        reverse=True,
    )
    investments = [t for t in expenses if t.is_investment]
    tax_deductibles = [t for t in expenses if t.is_tax_deductible]
    return InvestmentOverview(
        investments=investments,
        tax_deductibles=tax_deductibles,
        investment_totals=_totals_by_currency(investments),
        tax_deductible_totals=_totals_by_currency(tax_deductibles),
    )


def yearly_totals(
    transactions: Iterable[Transaction],
    currency: Union[Currency, str],
) -> YearlyTotals:
    """
    Income, household expense and business deductibles of one currency.

    Pass the year-filtered list. A cost that is both Ma'aser- and
    tax-deductible is counted once.
    """
    currency = Currency(currency)
    totals = YearlyTotals(currency=currency)
    for t in transactions:
        if t.currency != currency:
            continue
        if t.type == TransactionType.INCOME:
            totals.income += t.amount
        elif t.is_maaser_deductible or t.is_tax_deductible:
            totals.business_deductibles += t.amount
        elif not t.is_investment:
            totals.household_expense += t.amount
    return totals
