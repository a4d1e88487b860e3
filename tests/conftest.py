"""Shared fixtures: in-memory backends and an audit logger over them."""

import pytest

from family_budget.audit import AuditLogger
from family_budget.services.storage import (
    InMemoryAuditStorage,
    InMemoryExchangeRateStorage,
    InMemoryTransactionStorage,
)


@pytest.fixture
def transaction_storage():
    return InMemoryTransactionStorage()


@pytest.fixture
def rate_storage():
    return InMemoryExchangeRateStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)
