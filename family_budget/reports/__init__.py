"""Reports package."""

from family_budget.reports.dashboard import (
    available_years,
    category_breakdown,
    filter_by_years,
    household_transactions,
    investment_overview,
    monthly_chart_grid,
    recurring_expenses,
    summarize,
    yearly_totals,
)
from family_budget.reports.formatting import (
    balance_label,
    format_money,
    round_money,
    schedule_table_rows,
)

__all__ = [
    "available_years",
    "balance_label",
    "category_breakdown",
    "filter_by_years",
    "format_money",
    "household_transactions",
    "investment_overview",
    "monthly_chart_grid",
    "recurring_expenses",
    "round_money",
    "schedule_table_rows",
    "summarize",
    "yearly_totals",
]
