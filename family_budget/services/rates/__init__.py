"""Exchange rate services."""

from family_budget.services.rates.exchange_rate_service import (
    ExchangeRateError,
    ExchangeRateService,
    convert_currency,
)

__all__ = ["ExchangeRateError", "ExchangeRateService", "convert_currency"]
