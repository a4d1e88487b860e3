"""Data models package."""

from family_budget.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from family_budget.models.exchange_rate import ExchangeRate
from family_budget.models.ledger import (
    BudgetSummary,
    CategoryTotal,
    InvestmentOverview,
    MaaserSchedule,
    MonthlyTotals,
    MonthStatistic,
    YearlyTotals,
)
from family_budget.models.transaction import (
    Currency,
    ExpenseClass,
    ReceiptData,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Transactions
    "Currency",
    "ExpenseClass",
    "ReceiptData",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "ExchangeRate",
    # Derived
    "BudgetSummary",
    "CategoryTotal",
    "InvestmentOverview",
    "MaaserSchedule",
    "MonthlyTotals",
    "MonthStatistic",
    "YearlyTotals",
    # Audit
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
