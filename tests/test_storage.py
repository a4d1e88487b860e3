"""Tests for the storage backends (in-memory and Sheets over a fake worksheet)."""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from family_budget.models.audit import AuditEventBuilder
from family_budget.models.exchange_rate import ExchangeRate
from family_budget.models.transaction import Currency, ExpenseClass, TransactionType
from family_budget.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsExchangeRateStorage,
    GoogleSheetsTransactionStorage,
    InMemoryExchangeRateStorage,
    InMemoryTransactionStorage,
    StorageError,
)
from family_budget.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    EXCHANGE_RATE_COLUMNS,
    TRANSACTION_COLUMNS,
    record_to_transaction,
)

from factories import expense, income


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage classes."""

    def __init__(self, header, rows=None):
        self.values = [list(header)] + [list(r) for r in rows or []]

    def get_all_values(self):
        return [list(r) for r in self.values]

    def append_row(self, row, value_input_option=None):
        self.values.append([str(v) for v in row])

    def delete_rows(self, index):
        del self.values[index - 1]


class FakeSheetsClient:
    def __init__(self, transactions=None, rates=None, audit=None):
        self.transactions = transactions or FakeWorksheet(TRANSACTION_COLUMNS)
        self.rates = rates or FakeWorksheet(EXCHANGE_RATE_COLUMNS)
        self.audit = audit or FakeWorksheet(AUDIT_COLUMNS)

    def get_transactions_sheet(self):
        return self.transactions

    def get_exchange_rates_sheet(self):
        return self.rates

    def get_audit_sheet(self):
        return self.audit


class TestInMemoryTransactionStorage:
    """Tests for the in-memory transaction store."""

    async def test_save_and_get(self):
        """Test a simple round trip."""
        storage = InMemoryTransactionStorage()
        tx = income("2024-01-01", "100")
        assert await storage.save_transaction(tx) is True
        assert await storage.get_transaction(tx.id) == tx

    async def test_duplicate_id_rejected(self):
        """Test that ids are unique."""
        tx = income("2024-01-01", "100")
        storage = InMemoryTransactionStorage([tx])
        with pytest.raises(DuplicateError):
            await storage.save_transaction(tx)

    async def test_delete(self):
        """Test delete returns whether anything was removed."""
        tx = income("2024-01-01", "100")
        storage = InMemoryTransactionStorage([tx])
        assert await storage.delete_transaction(tx.id) is True
        assert await storage.delete_transaction(tx.id) is False

    async def test_list_filters_and_order(self):
        """Test currency, year and type filters, newest first."""
        storage = InMemoryTransactionStorage([
            income("2023-05-01", "1"),
            income("2024-02-01", "2"),
            expense("2024-03-01", "3"),
            income("2024-04-01", "4", Currency.USD),
        ])

        everything = await storage.list_transactions()
        assert [t.amount for t in everything] == [Decimal(x) for x in ("4", "3", "2", "1")]

        ils_2024 = await storage.list_transactions(currency=Currency.ILS, years=[2024])
        assert [t.amount for t in ils_2024] == [Decimal("3"), Decimal("2")]

        incomes = await storage.list_transactions(transaction_type=TransactionType.INCOME)
        assert len(incomes) == 3


class TestInMemoryExchangeRateStorage:
    """Tests for the in-memory rate cache."""

    async def test_latest_rate(self):
        """Test that the newest day wins."""
        storage = InMemoryExchangeRateStorage()
        await storage.save_rate(ExchangeRate.from_usd_to_ils(Decimal("3.7"), date(2024, 1, 1)))
        await storage.save_rate(ExchangeRate.from_usd_to_ils(Decimal("3.6"), date(2024, 1, 3)))
        latest = await storage.get_latest_rate()
        assert latest.date == date(2024, 1, 3)

    async def test_one_rate_per_day(self):
        """Test that a second rate for the same day is rejected."""
        storage = InMemoryExchangeRateStorage()
        rate = ExchangeRate.from_usd_to_ils(Decimal("3.7"), date(2024, 1, 1))
        await storage.save_rate(rate)
        with pytest.raises(DuplicateError):
            await storage.save_rate(rate)


class TestSheetsRowConversion:
    """Tests for reading rows by header."""

    def test_current_format(self):
        """Test a row written by this application."""
        record = dict(zip(TRANSACTION_COLUMNS, [
            "tx-1", "2024-01-05", "Salary", "1000", "Salary", "INCOME", "ILS",
            "household", "False", "2024-01-05T10:00:00",
        ]))
        tx = record_to_transaction(record)
        assert tx.id == "tx-1"
        assert tx.amount == Decimal("1000")
        assert tx.is_recurring is False

    def test_legacy_flag_columns(self):
        """Test a row exported from the old app."""
        record = {
            "id": "old-1",
            "date": "2023-11-02",
            "description": "Donation",
            "amount": "50",
            "type": "EXPENSE",
            "currency": "USD",
            "isMaaserPayment": "TRUE",
            "isMaaserDeductible": "TRUE",
            "isRecurring": "FALSE",
        }
        tx = record_to_transaction(record)
        assert tx.classification == ExpenseClass.MAASER_PAYMENT
        assert tx.is_maaser_deductible is True


class TestGoogleSheetsTransactionStorage:
    """Tests for the Sheets transaction store."""

    async def test_save_list_delete(self):
        """Test a round trip through the worksheet."""
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)
        tx = expense("2024-02-10", "42.10", ExpenseClass.MAASER_DEDUCTIBLE, description="Printer")

        await storage.save_transaction(tx)
        loaded = await storage.list_transactions()

        assert len(loaded) == 1
        assert loaded[0].id == tx.id
        assert loaded[0].amount == Decimal("42.10")
        assert loaded[0].classification == ExpenseClass.MAASER_DEDUCTIBLE

        assert await storage.delete_transaction(tx.id) is True
        assert await storage.list_transactions() == []

    async def test_duplicate_rejected(self):
        """Test that the same id can't be appended twice."""
        storage = GoogleSheetsTransactionStorage(FakeSheetsClient())
        tx = income("2024-01-01", "1")
        await storage.save_transaction(tx)
        with pytest.raises(DuplicateError):
            await storage.save_transaction(tx)

    async def test_malformed_rows_skipped(self):
        """Test that a bad row doesn't hide the good ones."""
        sheet = FakeWorksheet(TRANSACTION_COLUMNS, [
            ["good", "2024-01-01", "Salary", "100", "Salary", "INCOME", "ILS", "household", "False", ""],
            ["bad", "not a date", "?", "abc", "Other", "EXPENSE", "ILS", "household", "False", ""],
        ])
        storage = GoogleSheetsTransactionStorage(FakeSheetsClient(transactions=sheet))

        loaded = await storage.list_transactions()

        assert [t.id for t in loaded] == ["good"]

    async def test_malformed_row_lookup_raises_storage_error(self):
        """Test that a bad row found by id surfaces as StorageError."""
        sheet = FakeWorksheet(TRANSACTION_COLUMNS, [
            ["bad", "not a date", "?", "abc", "Other", "EXPENSE", "ILS", "household", "False", ""],
        ])
        storage = GoogleSheetsTransactionStorage(FakeSheetsClient(transactions=sheet))

        with pytest.raises(StorageError, match="Malformed transaction row bad"):
            await storage.get_transaction("bad")

        clash = income("2024-01-01", "1", id="bad")
        with pytest.raises(StorageError):
            await storage.save_transaction(clash)
        assert len(sheet.values) == 2

    async def test_year_filter(self):
        """Test that the year filter is applied."""
        storage = GoogleSheetsTransactionStorage(FakeSheetsClient())
        await storage.save_transaction(income("2023-01-01", "1"))
        await storage.save_transaction(income("2024-01-01", "2"))
        loaded = await storage.list_transactions(years=[2024])
        assert [t.amount for t in loaded] == [Decimal("2")]


class TestGoogleSheetsExchangeRateStorage:
    """Tests for the Sheets rate cache."""

    async def test_save_and_read(self):
        """Test storing and reading a day's rate."""
        storage = GoogleSheetsExchangeRateStorage(FakeSheetsClient())
        rate = ExchangeRate.from_usd_to_ils(Decimal("3.65"), date(2024, 6, 1))

        await storage.save_rate(rate)

        stored = await storage.get_rate(date(2024, 6, 1))
        assert stored.usd_to_ils == Decimal("3.65")
        assert (await storage.get_latest_rate()).date == date(2024, 6, 1)
        with pytest.raises(DuplicateError):
            await storage.save_rate(rate)

    async def test_empty_sheet(self):
        """Test that an empty cache has no latest rate."""
        storage = GoogleSheetsExchangeRateStorage(FakeSheetsClient())
        assert await storage.get_latest_rate() is None


class TestGoogleSheetsAuditStorage:
    """Tests for the Sheets audit log."""

    async def test_append_and_query(self):
        """Test events round-trip through sheet rows."""
        storage = GoogleSheetsAuditStorage(FakeSheetsClient())
        correlation_id = uuid4()

        await storage.append_event(AuditEventBuilder.transaction_saved(
            transaction_id="tx-1",
            transaction_type="INCOME",
            amount="10",
            currency="ILS",
            correlation_id=correlation_id,
        ))
        await storage.append_event(AuditEventBuilder.transaction_deleted(
            transaction_id="tx-1",
            correlation_id=correlation_id,
        ))
        await storage.append_event(AuditEventBuilder.save_failed(
            error_message="boom",
            correlation_id=uuid4(),
        ))

        related = await storage.get_events_by_correlation_id(correlation_id)
        assert [e.entity_id for e in related] == ["tx-1", "tx-1"]
        assert related[0].details["currency"] == "ILS"

        recent = await storage.get_recent_events(limit=2)
        assert len(recent) == 2
        assert isinstance(recent[0].timestamp, datetime)
