"""
Audit Logger

DESIGN DECISION: Every change to the shared ledger is logged.
This provides:
1. Traceability of who saved or deleted what, and when
2. Debugging capability when Gemini or the rate API misbehaves
3. A history both spouses can inspect in the AuditLog sheet

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (a broken audit sheet never blocks a save)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from family_budget.models.audit import AuditEvent, AuditEventBuilder
from family_budget.models.transaction import Transaction, ValidationIssue
from family_budget.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(default=str),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (JSON lines via structlog)
    2. The audit storage backend (AuditLog sheet, or memory in tests)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("family_budget.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        getattr(self._logger, event.severity.value)("audit_event", **event.to_log_dict())

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_saved(
        self,
        transaction: Transaction,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_saved(
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=str(transaction.amount),
            currency=transaction.currency.value,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        issues: list[ValidationIssue],
        correlation_id: UUID,
    ) -> None:
        """Log the issues that blocked an entry."""
        await self.log(AuditEventBuilder.validation_failed(
            issues=[issue.model_dump() for issue in issues],
            correlation_id=correlation_id,
        ))

    async def log_receipt_parsed(
        self,
        merchant: Optional[str],
        amount: Optional[Decimal],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_parsed(
            merchant=merchant,
            amount=str(amount) if amount is not None else None,
            correlation_id=correlation_id,
        ))

    async def log_receipt_parse_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_parse_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_ledger_computed(
        self,
        currency: str,
        month_count: int,
        current_balance: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_computed(
            currency=currency,
            month_count=month_count,
            current_balance=str(current_balance),
            correlation_id=correlation_id,
        ))

    async def log_insight_generated(
        self,
        question: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.insight_generated(
            question=question,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        ))

    async def log_exchange_rate_fetched(
        self,
        rate_date: str,
        usd_to_ils: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.exchange_rate_fetched(
            rate_date=rate_date,
            usd_to_ils=str(usd_to_ils),
            correlation_id=correlation_id,
        ))

    async def log_exchange_rate_fallback(
        self,
        error_message: str,
        fallback_date: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.exchange_rate_fallback(
            error_message=error_message,
            fallback_date=fallback_date,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., submitting the entry
    form). Pass it through all subsequent operations.
    """
    return uuid4()
