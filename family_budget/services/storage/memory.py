"""
In-memory storage.

Used by the test suite and when Google Sheets is not configured, so the app
still runs (data lives for the lifetime of the process).
"""

import asyncio
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from family_budget.models.audit import AuditEvent
from family_budget.models.exchange_rate import ExchangeRate
from family_budget.models.transaction import Currency, Transaction, TransactionType
from family_budget.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExchangeRateStorageInterface,
    TransactionStorageInterface,
    matches_filters,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions kept in a dict keyed by id."""

    def __init__(self, transactions: Optional[Iterable[Transaction]] = None):
        self._transactions: dict[str, Transaction] = {}
        self._lock = asyncio.Lock()
        for transaction in transactions or []:
            self._transactions[transaction.id] = transaction

    async def save_transaction(self, transaction: Transaction) -> bool:
        async with self._lock:
            if transaction.id in self._transactions:
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            self._transactions[transaction.id] = transaction
        return True

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    async def delete_transaction(self, transaction_id: str) -> bool:
        async with self._lock:
            return self._transactions.pop(transaction_id, None) is not None

    async def list_transactions(
        self,
        currency: Optional[Currency] = None,
        years: Optional[Iterable[int]] = None,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        year_set = set(years) if years is not None else None
        transactions = [
            t for t in self._transactions.values()
            if matches_filters(t, currency, year_set, transaction_type)
        ]
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions


class InMemoryExchangeRateStorage(ExchangeRateStorageInterface):
    """Exchange rates keyed by day."""

    def __init__(self):
        self._rates: dict[date, ExchangeRate] = {}

    async def get_rate(self, day: date) -> Optional[ExchangeRate]:
        return self._rates.get(day)

    async def get_latest_rate(self) -> Optional[ExchangeRate]:
        if not self._rates:
            return None
        return self._rates[max(self._rates)]

    async def save_rate(self, rate: ExchangeRate) -> bool:
        if rate.date in self._rates:
            raise DuplicateError(f"Exchange rate already stored for {rate.date}")
        self._rates[rate.date] = rate
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
