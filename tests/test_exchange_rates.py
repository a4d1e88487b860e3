"""Tests for the exchange rate service (no network: httpx.MockTransport)."""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from family_budget.config.settings import ExchangeRateSettings
from family_budget.models.audit import AuditEventType
from family_budget.models.exchange_rate import ExchangeRate
from family_budget.models.transaction import Currency
from family_budget.services.rates import (
    ExchangeRateError,
    ExchangeRateService,
    convert_currency,
)
from family_budget.services.storage import DuplicateError, InMemoryExchangeRateStorage


TODAY = date(2024, 6, 1)


class RecordingHandler:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = payload if payload is not None else {"rates": {"ILS": 3.7}}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


def make_service(storage, handler, audit_logger=None):
    return ExchangeRateService(
        storage,
        audit_logger=audit_logger,
        settings=ExchangeRateSettings(app_id="test-app"),
        transport=httpx.MockTransport(handler),
        today=lambda: TODAY,
    )


class TestFetchRate:
    """Tests for the API call itself."""

    async def test_fetch_parses_ils_rate(self, rate_storage):
        """Test the request and the parsed rate."""
        handler = RecordingHandler()
        service = make_service(rate_storage, handler)

        rate = await service.fetch_rate()

        assert rate.usd_to_ils == Decimal("3.7")
        assert rate.date == TODAY
        request = handler.requests[0]
        assert request.url.path.endswith("/latest.json")
        assert request.url.params["app_id"] == "test-app"
        assert request.url.params["symbols"] == "ILS"

    async def test_http_error(self, rate_storage):
        """Test that a non-2xx response raises ExchangeRateError."""
        service = make_service(rate_storage, RecordingHandler(status_code=401))
        with pytest.raises(ExchangeRateError, match="401"):
            await service.fetch_rate()

    async def test_missing_ils(self, rate_storage):
        """Test a payload without the ILS rate."""
        service = make_service(rate_storage, RecordingHandler(payload={"rates": {"EUR": 0.9}}))
        with pytest.raises(ExchangeRateError, match="ILS rate not found"):
            await service.fetch_rate()


class TestGetExchangeRate:
    """Tests for the cached lookup with fallback."""

    async def test_cached_rate_used(self, rate_storage):
        """Test that today's stored rate avoids the API."""
        cached = ExchangeRate.from_usd_to_ils(Decimal("3.5"), TODAY)
        await rate_storage.save_rate(cached)
        handler = RecordingHandler()

        rate = await make_service(rate_storage, handler).get_exchange_rate()

        assert rate == cached
        assert handler.requests == []

    async def test_fetched_rate_is_stored(self, rate_storage, audit_logger, audit_storage):
        """Test fetch, store and audit."""
        rate = await make_service(rate_storage, RecordingHandler(), audit_logger).get_exchange_rate()

        assert rate.usd_to_ils == Decimal("3.7")
        assert await rate_storage.get_rate(TODAY) == rate
        assert audit_storage.events[-1].event_type == AuditEventType.EXCHANGE_RATE_FETCHED

    async def test_fallback_to_latest_stored(self, rate_storage, audit_logger, audit_storage):
        """Test that a failed fetch returns the last known rate."""
        yesterday = ExchangeRate.from_usd_to_ils(Decimal("3.6"), date(2024, 5, 31))
        await rate_storage.save_rate(yesterday)

        rate = await make_service(
            rate_storage, RecordingHandler(status_code=500), audit_logger
        ).get_exchange_rate()

        assert rate == yesterday
        assert audit_storage.events[-1].event_type == AuditEventType.EXCHANGE_RATE_FALLBACK

    async def test_nothing_available(self, rate_storage):
        """Test that no stored rate and a failed fetch give None."""
        rate = await make_service(rate_storage, RecordingHandler(status_code=503)).get_exchange_rate()
        assert rate is None

    async def test_duplicate_day_race(self):
        """Test that a rate stored concurrently by another session wins."""
        other = ExchangeRate.from_usd_to_ils(Decimal("3.68"), TODAY)

        class RacingStorage(InMemoryExchangeRateStorage):
            async def save_rate(self, rate):
                await super().save_rate(other)
                raise DuplicateError("already stored")

        rate = await make_service(RacingStorage(), RecordingHandler()).get_exchange_rate()

        assert rate == other


class TestConvertCurrency:
    """Tests for display conversion."""

    RATE = ExchangeRate(usd_to_ils=Decimal("4"), ils_to_usd=Decimal("0.25"), date=TODAY)

    def test_usd_to_ils(self):
        assert convert_currency(Decimal("10"), Currency.USD, Currency.ILS, self.RATE) == Decimal("40")

    def test_ils_to_usd(self):
        assert convert_currency(Decimal("10"), Currency.ILS, Currency.USD, self.RATE) == Decimal("2.5")

    def test_same_currency_unchanged(self):
        assert convert_currency(Decimal("10"), Currency.ILS, Currency.ILS, self.RATE) == Decimal("10")

    def test_missing_rate_unchanged(self):
        """Test that amounts pass through when no rate is known."""
        assert convert_currency(Decimal("10"), Currency.USD, Currency.ILS, None) == Decimal("10")
