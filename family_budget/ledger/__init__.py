"""Ma'aser ledger package."""

from family_budget.ledger.maaser import (
    MAASER_RATE,
    compute_schedule,
    group_by_month,
    month_key,
    obligation_for,
)

__all__ = [
    "MAASER_RATE",
    "compute_schedule",
    "group_by_month",
    "month_key",
    "obligation_for",
]
