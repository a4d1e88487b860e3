"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for testing and offline use
3. Keep business logic decoupled from storage implementation

The interface is intentionally small: transactions are created, read and
deleted, never edited in place. Derived data (the Ma'aser schedule, chart
data) is never stored.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from family_budget.models.audit import AuditEvent
from family_budget.models.exchange_rate import ExchangeRate
from family_budget.models.transaction import Currency, Transaction, TransactionType


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> bool:
        """
        Persist a new transaction.

        Raises:
            DuplicateError: If a transaction with the same id exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Retrieve a transaction by id, None if it doesn't exist."""
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction by id.

        Returns:
            True if a transaction was deleted, False if none matched
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        currency: Optional[Currency] = None,
        years: Optional[Iterable[int]] = None,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        """
        List transactions with optional filters, newest first.

        Args:
            currency: Only this currency
            years: Only transactions dated in one of these years
            transaction_type: Only INCOME or only EXPENSE
        """
        pass


class ExchangeRateStorageInterface(ABC):
    """Daily exchange rate cache, one row per day."""

    @abstractmethod
    async def get_rate(self, day: date) -> Optional[ExchangeRate]:
        pass

    @abstractmethod
    async def get_latest_rate(self) -> Optional[ExchangeRate]:
        pass

    @abstractmethod
    async def save_rate(self, rate: ExchangeRate) -> bool:
        """
        Store a rate.

        Raises:
            DuplicateError: If a rate for that day is already stored
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


def matches_filters(
    transaction: Transaction,
    currency: Optional[Currency] = None,
    years: Optional[set[int]] = None,
    transaction_type: Optional[TransactionType] = None,
) -> bool:
    """Shared filter logic for backends that filter in Python."""
    if currency and transaction.currency != currency:
        return False
    if years is not None and transaction.date.year not in years:
        return False
    if transaction_type and transaction.type != transaction_type:
        return False
    return True


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
