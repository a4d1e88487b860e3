"""Daily USD/ILS exchange rate, shared by every family."""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ExchangeRate(BaseModel):
    """
    One day's rate.

    Only used for display conversions. The Ma'aser ledger and the budget
    summaries never convert between currencies.
    """
    model_config = ConfigDict(frozen=True)

    usd_to_ils: Decimal = Field(..., gt=0, description="1 USD = X ILS")
    ils_to_usd: Decimal = Field(..., gt=0, description="1 ILS = X USD")
    date: dt.date

    @classmethod
    def from_usd_to_ils(cls, usd_to_ils: Decimal, day: dt.date) -> "ExchangeRate":
        return cls(usd_to_ils=usd_to_ils, ils_to_usd=1 / usd_to_ils, date=day)
