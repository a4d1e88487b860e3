"""Entry validation package."""

from family_budget.validation.validator import TransactionValidator

__all__ = ["TransactionValidator"]
