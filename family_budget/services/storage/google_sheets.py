"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the shared family backend because:
1. Both spouses can view the raw data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a family ledger is small)
- No transactions (we append single rows and delete single rows)
- Limited query capabilities (we filter in Python)

Rows are read by header name, so sheets exported from the old app (with one
boolean column per classification flag) load without conversion.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from family_budget.config import get_settings
from family_budget.models.audit import AuditEvent, AuditEventType, AuditSeverity
from family_budget.models.exchange_rate import ExchangeRate
from family_budget.models.transaction import (
    Currency,
    Transaction,
    TransactionType,
    classify_legacy_flags,
)
from family_budget.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExchangeRateStorageInterface,
    StorageError,
    TransactionStorageInterface,
    matches_filters,
)


logger = structlog.get_logger(__name__)


TRANSACTION_COLUMNS = [
    "id",
    "date",
    "description",
    "amount",
    "category",
    "type",
    "currency",
    "classification",
    "is_recurring",
    "created_at",
]

EXCHANGE_RATE_COLUMNS = [
    "date",
    "usd_to_ils",
    "ils_to_usd",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, 2000
        )

    def get_exchange_rates_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.exchange_rates_sheet_name, EXCHANGE_RATE_COLUMNS, 1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000
        )


def transaction_to_row(transaction: Transaction) -> list:
    """Convert a Transaction to a spreadsheet row."""
    return [
        transaction.id,
        transaction.date.isoformat(),
        transaction.description,
        str(transaction.amount),
        transaction.category,
        transaction.type.value,
        transaction.currency.value,
        transaction.classification.value,
        str(transaction.is_recurring),
        datetime.utcnow().isoformat(),
    ]


def record_to_transaction(record: dict[str, str]) -> Transaction:
    """
    Build a Transaction from a header-keyed row.

    Old exports carry boolean flag columns instead of `classification`; those
    are mapped by the model. Rows with several flags set are logged.
    """
    data = {key: value for key, value in record.items() if value != ""}
    if "classification" not in data:
        chosen, flagged = classify_legacy_flags(data)
        if len(flagged) > 1:
            logger.warning(
                "conflicting_legacy_flags",
                transaction_id=data.get("id"),
                flags=[f.value for f in flagged],
                resolved_to=chosen.value,
            )
    data.pop("created_at", None)
    return Transaction(**data)


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    One transaction per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _records(self) -> list[dict[str, str]]:
        values = self._client.get_transactions_sheet().get_all_values()
        if not values:
            return []
        header, rows = values[0], values[1:]
        return [dict(zip(header, row)) for row in rows if row and row[0]]

    def _load_all(self) -> list[Transaction]:
        transactions = []
        for record in self._records():
            try:
                transactions.append(record_to_transaction(record))
            except ValueError as e:
                # pydantic.ValidationError is a ValueError
                logger.warning(
                    "malformed_transaction_row",
                    transaction_id=record.get("id"),
                    error=str(e),
                )
        return transactions

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append(self, row: list) -> None:
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.append_row(row, value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def save_transaction(self, transaction: Transaction) -> bool:
        """Append a transaction row."""
        if await self.get_transaction(transaction.id) is not None:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._append(transaction_to_row(transaction))
        return True

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        try:
            records = self._records()
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

        for record in records:
            if record.get("id") == transaction_id:
                try:
                    return record_to_transaction(record)
                except ValueError as e:
                    raise StorageError(f"Malformed transaction row {transaction_id}: {e}")
        return None

    async def delete_transaction(self, transaction_id: str) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == transaction_id:
                    sheet.delete_rows(idx)
                    return True

            return False
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def list_transactions(
        self,
        currency: Optional[Currency] = None,
        years: Optional[Iterable[int]] = None,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        try:
            transactions = self._load_all()
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        year_set = set(years) if years is not None else None
        result = [
            t for t in transactions
            if matches_filters(t, currency, year_set, transaction_type)
        ]
        result.sort(key=lambda t: t.date, reverse=True)
        return result


class GoogleSheetsExchangeRateStorage(ExchangeRateStorageInterface):
    """Google Sheets implementation of the daily rate cache."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _load_all(self) -> list[ExchangeRate]:
        try:
            values = self._client.get_exchange_rates_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read exchange rates: {e}")

        rates = []
        for row in values:
            if len(row) < 3 or not row[0]:
                continue
            try:
                rates.append(ExchangeRate(
                    date=date.fromisoformat(row[0]),
                    usd_to_ils=Decimal(row[1]),
                    ils_to_usd=Decimal(row[2]),
                ))
            except (ValueError, ArithmeticError):
                logger.warning("malformed_exchange_rate_row", row=row)
        return rates

    async def get_rate(self, day: date) -> Optional[ExchangeRate]:
        for rate in self._load_all():
            if rate.date == day:
                return rate
        return None

    async def get_latest_rate(self) -> Optional[ExchangeRate]:
        rates = self._load_all()
        return max(rates, key=lambda r: r.date) if rates else None

    async def save_rate(self, rate: ExchangeRate) -> bool:
        if await self.get_rate(rate.date) is not None:
            raise DuplicateError(f"Exchange rate already stored for {rate.date}")
        try:
            sheet = self._client.get_exchange_rates_sheet()
            sheet.append_row(
                [rate.date.isoformat(), str(rate.usd_to_ils), str(rate.ils_to_usd)],
                value_input_option="RAW",
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save exchange rate: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _load_all(self) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._load_all() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._load_all()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
