"""
Audit Models for Family Budget

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of every change to the shared family ledger
2. Debugging information when an external service misbehaves
3. A history both spouses can inspect

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Deleting a transaction creates an event; it does not erase earlier ones.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_DELETED = "transaction_deleted"
    SAVE_FAILED = "save_failed"
    VALIDATION_FAILED = "validation_failed"

    # Receipts
    RECEIPT_PARSED = "receipt_parsed"
    RECEIPT_PARSE_FAILED = "receipt_parse_failed"

    # Derived views
    LEDGER_COMPUTED = "ledger_computed"
    INSIGHT_GENERATED = "insight_generated"

    # Exchange rates
    EXCHANGE_RATE_FETCHED = "exchange_rate_fetched"
    EXCHANGE_RATE_FALLBACK = "exchange_rate_fallback"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'ledger', 'receipt')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one entry form submit)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_saved(tx_id, ...)
        event = AuditEventBuilder.ledger_computed("ILS", 12, "30.00", ...)
    """

    @staticmethod
    def transaction_saved(
        transaction_id: str,
        transaction_type: str,
        amount: str,
        currency: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction saved: {transaction_type} {amount} {currency}",
            details={
                "type": transaction_type,
                "amount": amount,
                "currency": currency,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction deleted: {transaction_id}",
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transaction",
            correlation_id=correlation_id,
            description="Failed to save transaction",
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Entry validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def receipt_parsed(
        merchant: Optional[str],
        amount: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_PARSED,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Receipt parsed: {merchant or 'unknown merchant'}",
            details={
                "merchant": merchant,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def receipt_parse_failed(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            correlation_id=correlation_id,
            description="Receipt could not be parsed",
            error_message=error_message,
        )

    @staticmethod
    def ledger_computed(
        currency: str,
        month_count: int,
        current_balance: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="ledger",
            entity_id=currency,
            correlation_id=correlation_id,
            description=f"Ma'aser ledger computed for {currency}: {month_count} months",
            details={
                "currency": currency,
                "month_count": month_count,
                "current_balance": current_balance,
            },
        )

    @staticmethod
    def insight_generated(
        question: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHT_GENERATED,
            entity_type="insight",
            correlation_id=correlation_id,
            description="Spending insight generated",
            details={
                "question": question[:200],
                "transaction_count": transaction_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def exchange_rate_fetched(
        rate_date: str,
        usd_to_ils: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXCHANGE_RATE_FETCHED,
            entity_type="exchange_rate",
            entity_id=rate_date,
            correlation_id=correlation_id,
            description=f"Exchange rate fetched for {rate_date}: 1 USD = {usd_to_ils} ILS",
            details={"usd_to_ils": usd_to_ils},
        )

    @staticmethod
    def exchange_rate_fallback(
        error_message: str,
        fallback_date: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXCHANGE_RATE_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="exchange_rate",
            entity_id=fallback_date,
            correlation_id=correlation_id,
            description="Exchange rate fetch failed, using last stored rate",
            error_message=error_message,
            details={"fallback_date": fallback_date},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
