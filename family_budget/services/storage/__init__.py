"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the shared backend; the in-memory backend serves tests and
offline use.
"""

from family_budget.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExchangeRateStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from family_budget.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExchangeRateStorage,
    GoogleSheetsTransactionStorage,
)
from family_budget.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExchangeRateStorage,
    InMemoryTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExchangeRateStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExchangeRateStorage",
    "GoogleSheetsTransactionStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExchangeRateStorage",
    "InMemoryTransactionStorage",
]
