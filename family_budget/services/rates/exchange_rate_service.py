"""
USD/ILS Exchange Rate Service

DESIGN DECISION: The rate is fetched at most once per day for every family
and cached in storage. The Open Exchange Rates free plan has a small monthly
quota, and a day-old rate is good enough for display conversions.

Lookup order:
1. Today's stored rate
2. Fetch from the API and store it
3. On fetch failure, the most recent stored rate
4. None (the UI then shows amounts unconverted)
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from family_budget.audit import AuditLogger
from family_budget.config import get_settings
from family_budget.config.settings import ExchangeRateSettings
from family_budget.models.exchange_rate import ExchangeRate
from family_budget.models.transaction import Currency
from family_budget.services.storage import (
    DuplicateError,
    ExchangeRateStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class ExchangeRateError(Exception):
    """The rate API could not be reached or returned something unusable."""
    pass


class ExchangeRateService:
    """Daily USD/ILS rate with storage cache and stale fallback."""

    def __init__(
        self,
        storage: ExchangeRateStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ExchangeRateSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        today: Callable[[], date] = date.today,
    ):
        """
        Args:
            storage: Where daily rates are cached
            audit_logger: Records fetches and fallbacks
            settings: API settings, loaded from the environment when omitted
            transport: httpx transport override (tests use MockTransport)
            today: Clock for the cache key
        """
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().exchange_rates
        self._transport = transport
        self._today = today

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _request_latest(self) -> dict:
        """GET latest.json. Network errors are retried, HTTP errors are not."""
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.timeout_seconds),
            transport=self._transport,
        ) as client:
            response = await client.get(
                f"{self._settings.base_url.rstrip('/')}/latest.json",
                params={
                    "app_id": self._settings.app_id,
                    "base": "USD",
                    "symbols": "ILS",
                },
            )
            response.raise_for_status()
            return response.json()

    async def fetch_rate(self) -> ExchangeRate:
        """
        Fetch today's rate from the API.

        Raises:
            ExchangeRateError: On network, HTTP or payload errors
        """
        try:
            data = await self._request_latest()
        except httpx.TimeoutException:
            raise ExchangeRateError("Exchange rate request timed out")
        except httpx.HTTPStatusError as e:
            raise ExchangeRateError(
                f"Exchange rate API returned {e.response.status_code}"
            )
        except httpx.HTTPError as e:
            raise ExchangeRateError(f"Exchange rate request failed: {e}")
        except ValueError as e:
            raise ExchangeRateError(f"Exchange rate API returned invalid JSON: {e}")

        try:
            usd_to_ils = Decimal(str(data["rates"]["ILS"]))
        except (KeyError, TypeError, ArithmeticError):
            raise ExchangeRateError("ILS rate not found in API response")
        if not usd_to_ils.is_finite() or usd_to_ils <= 0:
            raise ExchangeRateError(f"Invalid ILS rate: {usd_to_ils}")

        return ExchangeRate.from_usd_to_ils(usd_to_ils, self._today())

    async def get_exchange_rate(self) -> Optional[ExchangeRate]:
        """
        Today's rate, fetched at most once per day.

        Never raises. Returns None when nothing is available.
        """
        today = self._today()
        try:
            cached = await self._storage.get_rate(today)
            if cached:
                return cached

            rate = await self.fetch_rate()
            await self._audit.log_exchange_rate_fetched(
                rate_date=rate.date.isoformat(),
                usd_to_ils=rate.usd_to_ils,
            )
            return await self._store(rate)
        except (ExchangeRateError, StorageError) as e:
            logger.warning("exchange_rate_unavailable", error=str(e))
            return await self._fallback(str(e))

    async def _store(self, rate: ExchangeRate) -> ExchangeRate:
        try:
            await self._storage.save_rate(rate)
        except DuplicateError:
            # Another session stored today's rate first
            stored = await self._storage.get_rate(rate.date)
            if stored:
                return stored
        except StorageError as e:
            logger.error("exchange_rate_store_failed", error=str(e))
        return rate

    async def _fallback(self, error_message: str) -> Optional[ExchangeRate]:
        try:
            latest = await self._storage.get_latest_rate()
        except StorageError as e:
            logger.error("exchange_rate_fallback_failed", error=str(e))
            latest = None

        await self._audit.log_exchange_rate_fallback(
            error_message=error_message,
            fallback_date=latest.date.isoformat() if latest else None,
        )
        return latest


def convert_currency(
    amount: Decimal,
    from_currency: Currency,
    to_currency: Currency,
    rate: Optional[ExchangeRate],
) -> Decimal:
    """
    Convert an amount for display.

    Returned unchanged when the currencies match or no rate is known.
    """
    if rate is None or from_currency == to_currency:
        return amount
    if from_currency == Currency.USD:
        return amount * rate.usd_to_ils
    return amount * rate.ils_to_usd
