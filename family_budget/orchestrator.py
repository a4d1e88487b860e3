"""
Main Orchestrator for Family Budget

This module ties together all the components and defines the
end-to-end flows for:
1. Transaction entry (draft → validate → save → audit), receipt prefill, delete
2. Ledger views (year-filtered load → Ma'aser schedule)
3. Insights (question → AI answer over the loaded transactions)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is saved without passing validation
- The AI never writes; a scanned receipt only prefills a draft
- Every change to the ledger is audited

The Streamlit app only talks to these flows.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog

from family_budget.agents import InsightAgent, ReceiptAgent, ReceiptParsingError
from family_budget.audit import AuditLogger, create_correlation_id
from family_budget.config import get_settings
from family_budget.ledger import compute_schedule
from family_budget.models.ledger import MaaserSchedule
from family_budget.models.transaction import (
    Currency,
    Transaction,
    TransactionDraft,
    ValidationResult,
)
from family_budget.services.rates import ExchangeRateService
from family_budget.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExchangeRateStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryExchangeRateStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from family_budget.validation import TransactionValidator


logger = structlog.get_logger(__name__)


class TransactionFlow:
    """
    Orchestrates adding and removing transactions.

    Flow for a new entry:
    1. Draft → from the form, optionally prefilled by scan_receipt
    2. Validate → two-stage validation
    3. Save → only when no error-level issue was found
    4. Audit → saved, failed or rejected

    Transactions are never edited in place.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        validator: Optional[TransactionValidator] = None,
        receipt_agent: Optional[ReceiptAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = transaction_storage
        self._validator = validator or TransactionValidator(transaction_storage)
        self._receipt_agent = receipt_agent
        self._audit_logger = audit_logger or AuditLogger()

    def validation_summary(self, result: ValidationResult) -> str:
        return self._validator.get_user_friendly_summary(result)

    async def add_transaction(
        self,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
        check_duplicates: bool = True,
    ) -> tuple[Optional[Transaction], ValidationResult]:
        """
        Validate and save a new transaction.

        Returns:
            (saved_transaction, validation_result). The transaction is None
            when validation found errors.

        Raises:
            StorageError: If validation passed but the save failed
        """
        correlation_id = correlation_id or create_correlation_id()

        result = await self._validator.validate(draft, check_duplicates=check_duplicates)
        if not result.is_valid:
            await self._audit_logger.log_validation_failed(
                issues=[i for i in result.issues if i.severity == "error"],
                correlation_id=correlation_id,
            )
            return None, result

        transaction = draft.to_transaction()
        try:
            await self._storage.save_transaction(transaction)
        except StorageError as e:
            await self._audit_logger.log_save_failed(
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_transaction_saved(
            transaction=transaction,
            correlation_id=correlation_id,
        )
        return transaction, result

    async def delete_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete a transaction.

        Raises:
            NotFoundError: If no transaction has this id
        """
        correlation_id = correlation_id or create_correlation_id()

        if not await self._storage.delete_transaction(transaction_id):
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        await self._audit_logger.log_transaction_deleted(
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        )

    async def scan_receipt(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
        correlation_id: Optional[UUID] = None,
    ) -> TransactionDraft:
        """
        Read a receipt photo into an expense draft for the entry form.

        Raises:
            ReceiptParsingError: If scanning is unavailable or the photo
                                 could not be read
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            agent = self._get_receipt_agent()
            receipt = await agent.parse_receipt(image_bytes, mime_type)
        except ReceiptParsingError as e:
            await self._audit_logger.log_receipt_parse_failed(
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_receipt_parsed(
            merchant=receipt.merchant,
            amount=receipt.total_amount,
            correlation_id=correlation_id,
        )
        return receipt.to_draft()

    def _get_receipt_agent(self) -> ReceiptAgent:
        if self._receipt_agent is None:
            try:
                self._receipt_agent = ReceiptAgent()
            except ValueError as e:
                # Missing GEMINI_* settings surface as a pydantic ValidationError
                raise ReceiptParsingError(f"Receipt scanning is not configured: {e}")
        return self._receipt_agent


class LedgerFlow:
    """
    Loads transactions and derives the Ma'aser schedule.

    Nothing derived is ever stored; every call recomputes from storage.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        rate: Optional[Decimal] = None,
    ):
        self._storage = transaction_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._rate = rate if rate is not None else get_settings().app.maaser_rate

    @property
    def rate(self) -> Decimal:
        return self._rate

    async def load(
        self,
        years: Optional[Iterable[int]] = None,
    ) -> list[Transaction]:
        """All transactions in the selected years (all years when None), newest first."""
        return await self._storage.list_transactions(years=years)

    async def maaser(
        self,
        years: Optional[Iterable[int]] = None,
        currency: Currency = Currency.ILS,
        correlation_id: Optional[UUID] = None,
    ) -> MaaserSchedule:
        """Ma'aser schedule for one currency over the selected years."""
        transactions = await self._storage.list_transactions(
            currency=currency,
            years=years,
        )
        schedule = compute_schedule(transactions, currency, rate=self._rate)

        await self._audit_logger.log_ledger_computed(
            currency=currency.value,
            month_count=len(schedule.schedule),
            current_balance=schedule.current_balance,
            correlation_id=correlation_id or create_correlation_id(),
        )
        return schedule


class InsightFlow:
    """
    Answers spending questions.

    The agent only sees the transactions of the selected years.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        insight_agent: Optional[InsightAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = transaction_storage
        self._agent = insight_agent
        self._audit_logger = audit_logger or AuditLogger()

    async def ask(
        self,
        question: str,
        years: Optional[Iterable[int]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        correlation_id = correlation_id or create_correlation_id()

        if self._agent is None:
            try:
                self._agent = InsightAgent()
            except ValueError as e:
                await self._audit_logger.log_error(
                    error_type="configuration",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                return (
                    "I can't answer questions yet because the Gemini API key "
                    "isn't configured."
                )

        transactions = await self._storage.list_transactions(years=years)
        answer = await self._agent.answer(question, transactions)

        await self._audit_logger.log_insight_generated(
            question=question,
            transaction_count=len(transactions),
            correlation_id=correlation_id,
        )
        return answer


@dataclass
class AppComponents:
    transaction_flow: TransactionFlow
    ledger_flow: LedgerFlow
    insight_flow: InsightFlow
    exchange_rates: Optional[ExchangeRateService]
    sheets_client: Optional[GoogleSheetsClient]

    @property
    def is_persistent(self) -> bool:
        return self.sheets_client is not None


def create_app_components(
    use_storage: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    When False, or when Sheets is not configured, data lives
                    in memory for the lifetime of the process.
    """
    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            rate_storage = GoogleSheetsExchangeRateStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except ValueError as e:
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client is None:
        transaction_storage = InMemoryTransactionStorage()
        rate_storage = InMemoryExchangeRateStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    try:
        exchange_rates = ExchangeRateService(rate_storage, audit_logger)
    except ValueError as e:
        logger.warning("exchange_rates_not_configured", error=str(e))
        exchange_rates = None

    return AppComponents(
        transaction_flow=TransactionFlow(
            transaction_storage,
            audit_logger=audit_logger,
        ),
        ledger_flow=LedgerFlow(transaction_storage, audit_logger),
        insight_flow=InsightFlow(transaction_storage, audit_logger=audit_logger),
        exchange_rates=exchange_rates,
        sheets_client=sheets_client,
    )
