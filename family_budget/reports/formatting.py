"""Presentation helpers. Rounding happens here and nowhere else."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from family_budget.models.ledger import MaaserSchedule
from family_budget.models.transaction import Currency


CENT = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(
    amount: Decimal,
    currency: Union[Currency, str],
    signed: bool = False,
) -> str:
    """
    Format an amount for display, e.g. `₪1,234.50` or `-$80.00`.

    With signed=False the magnitude is shown (the summary badge shows
    |balance| next to an Owed/Credit label).
    """
    currency = Currency(currency)
    rounded = round_money(amount)
    sign = "-" if signed and rounded < 0 else ""
    return f"{sign}{currency.symbol}{abs(rounded):,.2f}"


def balance_label(balance: Decimal) -> str:
    """`Owed` for a positive Ma'aser balance, `Credit` otherwise."""
    return "Owed" if balance > 0 else "Credit"


def schedule_table_rows(schedule: MaaserSchedule) -> list[dict[str, str]]:
    """One display row per month of the Ma'aser table, newest first."""
    currency = schedule.currency
    return [
        {
            "Month": stat.month,
            "Income": format_money(stat.income, currency),
            "Deductions": format_money(stat.deductions, currency),
            "Net profit": format_money(stat.net_profit, currency, signed=True),
            "Owed": format_money(stat.obligation, currency),
            "Paid": format_money(stat.paid, currency),
            "Monthly balance": format_money(stat.monthly_balance, currency, signed=True),
            "Running balance": format_money(stat.running_balance, currency, signed=True),
        }
        for stat in schedule.schedule
    ]
