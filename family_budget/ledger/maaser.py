"""
Ma'aser (tithe) Ledger Engine

Derives, from the raw transaction log, a month-by-month obligation schedule
and a running balance for ONE currency.

For every month that has at least one transaction in the currency:

    income           = sum of INCOME amounts
    deductions       = sum of EXPENSE amounts flagged as Ma'aser-deductible
    net_profit       = income - deductions               (may be negative)
    obligation       = max(0, net_profit * rate)
    paid             = sum of EXPENSE amounts flagged as Ma'aser payments
    monthly_balance  = obligation - paid                 (negative = overpaid)
    running_balance  = running_balance of previous month + monthly_balance

Each month's profit stands alone: deductions in a loss month are NOT carried
forward into later months. Callers that want rolling profit must
pre-aggregate before calling.

The engine is a pure function. It performs no I/O, keeps no state between
calls and never raises for odd input: records it cannot place in a month, or
whose amount is unusable, are skipped and reported in the log.
"""

import datetime as dt
import re
from collections import defaultdict
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Union

import structlog

from family_budget.models.ledger import MaaserSchedule, MonthStatistic, ZERO
from family_budget.models.transaction import Currency, Transaction, TransactionType


# Share of net profit owed as Ma'aser. Every obligation in the application is
# computed through `obligation_for`, which defaults to this value.
MAASER_RATE = Decimal("0.10")

_MONTH_KEY = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

logger = structlog.get_logger(__name__)


def month_key(value: Any) -> Optional[str]:
    """
    Return the `YYYY-MM` bucket of a date, or None if it has none.

    Accepts `date`/`datetime` objects and ISO strings (the bucket is the
    first seven characters).
    """
    if isinstance(value, dt.date):
        return f"{value.year:04d}-{value.month:02d}"
    if isinstance(value, str):
        key = value.strip()[:7]
        if _MONTH_KEY.match(key):
            return key
    return None


def _amount_of(transaction: Any) -> Optional[Decimal]:
    """Exact, finite, non-negative amount of a record, or None."""
    raw = getattr(transaction, "amount", None)
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        amount = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def obligation_for(net_profit: Decimal, rate: Decimal = MAASER_RATE) -> Decimal:
    """Ma'aser owed on a month's net profit. Losses owe nothing."""
    return max(ZERO, net_profit * rate)


def group_by_month(
    transactions: Iterable[Transaction],
    currency: Union[Currency, str],
) -> dict[str, list[Transaction]]:
    """
    Bucket the transactions of one currency by month.

    Input order is preserved within each bucket. Records without a usable
    month or amount are left out.
    """
    currency = Currency(currency)
    buckets: dict[str, list[Transaction]] = defaultdict(list)

    for transaction in transactions:
        if getattr(transaction, "currency", None) != currency:
            continue

        key = month_key(getattr(transaction, "date", None))
        if key is None:
            logger.warning(
                "ledger_record_skipped",
                reason="malformed_date",
                transaction_id=str(getattr(transaction, "id", "")),
                date=str(getattr(transaction, "date", "")),
            )
            continue

        if _amount_of(transaction) is None:
            logger.warning(
                "ledger_record_skipped",
                reason="unusable_amount",
                transaction_id=str(getattr(transaction, "id", "")),
                amount=str(getattr(transaction, "amount", "")),
            )
            continue

        buckets[key].append(transaction)

    return dict(buckets)


def _month_statistic(
    month: str,
    transactions: list[Transaction],
    carried_balance: Decimal,
    rate: Decimal,
) -> MonthStatistic:
    income = ZERO
    deductions = ZERO
    paid = ZERO
    deductible: list[Transaction] = []

    for transaction in transactions:
        amount = _amount_of(transaction)
        kind = getattr(transaction, "type", None)

        if kind == TransactionType.INCOME:
            income += amount
            continue
        if kind != TransactionType.EXPENSE:
            continue

        # Flags are checked independently of each other
        if getattr(transaction, "is_maaser_deductible", False):
            deductions += amount
            deductible.append(transaction)
        if getattr(transaction, "is_maaser_payment", False):
            paid += amount

    net_profit = income - deductions
    obligation = obligation_for(net_profit, rate)
    monthly_balance = obligation - paid

    return MonthStatistic(
        month=month,
        income=income,
        deductions=deductions,
        deductible_transactions=deductible,
        net_profit=net_profit,
        obligation=obligation,
        paid=paid,
        monthly_balance=monthly_balance,
        running_balance=carried_balance + monthly_balance,
    )


def compute_schedule(
    transactions: Iterable[Transaction],
    currency: Union[Currency, str],
    rate: Decimal = MAASER_RATE,
) -> MaaserSchedule:
    """
    Build the Ma'aser schedule of one currency.

    Args:
        transactions: Any number of transactions, any currencies, any order.
        currency: The currency to compute; others are ignored.
        rate: Share of net profit owed (defaults to MAASER_RATE).

    Returns:
        MaaserSchedule with rows newest month first and the running balance
        of the latest month as `current_balance` (0 when there are no rows).
    """
    currency = Currency(currency)
    rate = rate if isinstance(rate, Decimal) else Decimal(str(rate))
    buckets = group_by_month(transactions, currency)

    # Fixed-width YYYY-MM keys sort chronologically as strings. The fold is
    # sequential: each month needs the previous month's running balance.
    rows: list[MonthStatistic] = []
    running_balance = ZERO
    for month in sorted(buckets):
        stat = _month_statistic(month, buckets[month], running_balance, rate)
        running_balance = stat.running_balance
        rows.append(stat)

    current_balance = rows[-1].running_balance if rows else ZERO
    rows.reverse()

    return MaaserSchedule(
        currency=currency,
        rate=rate,
        schedule=rows,
        current_balance=current_balance,
    )
