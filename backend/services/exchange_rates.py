"""Open Exchange Rates client with a one-hour cache and a daily budget.

Free tier allows 1000 requests/month; the limiter keeps us at 30/day.
All rates are relative to the provider's base currency (USD), so cross
pairs are computed by dividing through the base.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from errors import InvalidCurrencyError, RateLimitExceeded, RatesUnavailableError, UpstreamUnavailable
from services.cache import TTLCache
from services.rate_limiter import RateLimiter, RateLimitStatus

logger = logging.getLogger(__name__)

# Currencies returned by GET /exchange-rates
POPULAR_CURRENCIES = ["USD", "EUR", "GBP", "MYR", "SGD", "JPY", "AUD", "CAD", "INR", "CNY"]

LATEST_KEY = "latest"


def _normalize_code(code: str) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True)
class ExchangeRateSnapshot:
    base: str
    rates: dict[str, float]
    timestamp: float   # as reported by the provider, epoch seconds
    fetched_at: float  # local, epoch seconds

    def _rate(self, code: str) -> float:
        rate = self.rates.get(_normalize_code(code))
        if not rate:
            raise InvalidCurrencyError(code)
        return rate

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        """Convert through the base currency. Not rounded."""
        from_rate = self._rate(from_currency)
        to_rate = self._rate(to_currency)
        amount_in_base = amount / from_rate
        return amount_in_base * to_rate

    def pair_rate(self, from_currency: str, to_currency: str) -> float:
        """1 unit of from_currency expressed in to_currency."""
        from_rate = self._rate(from_currency)
        to_rate = self._rate(to_currency)
        return to_rate / from_rate

    def popular(self) -> dict[str, float]:
        return {code: self.rates[code] for code in POPULAR_CURRENCIES if self.rates.get(code)}


class ExchangeRateGateway:
    def __init__(
        self,
        api_key: str | None,
        limiter: RateLimiter,
        cache: TTLCache[ExchangeRateSnapshot],
        base_url: str = "https://openexchangerates.org/api",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.api_key = api_key
        self.limiter = limiter
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._clock = clock

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def get_rates(self) -> ExchangeRateSnapshot | None:
        """Latest snapshot, possibly stale. None only when nothing was ever fetched."""
        result = await self.cache.lookup(LATEST_KEY, self._refresh)
        return result.value

    async def require_rates(self) -> ExchangeRateSnapshot:
        snapshot = await self.get_rates()
        if snapshot is None:
            raise RatesUnavailableError()
        return snapshot

    async def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        snapshot = await self.require_rates()
        return snapshot.convert(amount, from_currency, to_currency)

    async def pair_rate(self, from_currency: str, to_currency: str) -> float:
        snapshot = await self.require_rates()
        return snapshot.pair_rate(from_currency, to_currency)

    def limiter_status(self) -> RateLimitStatus:
        return self.limiter.status()

    async def _refresh(self) -> ExchangeRateSnapshot | None:
        if not self.configured:
            logger.warning("Exchange rate API key not configured")
            return None
        try:
            return await self._fetch_latest()
        except RateLimitExceeded as e:
            logger.warning("%s, serving cached rates", e)
        except UpstreamUnavailable as e:
            logger.warning("Failed to fetch exchange rates: %s", e)
        return None

    async def _fetch_latest(self) -> ExchangeRateSnapshot:
        if not self.limiter.allow_request():
            raise RateLimitExceeded(self.limiter.name)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(
                    f"{self.base_url}/latest.json",
                    params={"app_id": self.api_key},
                )
                resp.raise_for_status()
                data = resp.json()
            snapshot = ExchangeRateSnapshot(
                base=str(data["base"]),
                rates={code: float(rate) for code, rate in data["rates"].items()},
                timestamp=float(data["timestamp"]),
                fetched_at=self._clock(),
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(str(e)) from e
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise UpstreamUnavailable(f"Malformed exchange rate payload: {e!r}") from e

        # Only parsed responses count against the budget
        self.limiter.record_request()
        logger.info("Fetched %d exchange rates (base=%s)", len(snapshot.rates), snapshot.base)
        return snapshot
