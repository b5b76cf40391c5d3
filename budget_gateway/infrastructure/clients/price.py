"""Bitcoin price client: cache first, then an ordered chain of upstream quote APIs"""

import asyncio
import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from budget_gateway.config import Settings, settings as default_settings
from budget_gateway.domain.exceptions import CacheUnavailableError, UpstreamUnavailableError
from budget_gateway.domain.models import PriceHistory, PricePoint, PriceQuote
from budget_gateway.infrastructure.cache.price_cache import PriceCache
from budget_gateway.infrastructure.observability.metrics import (
    price_cache_counter,
    price_degraded_counter,
    price_source_failure_counter,
    upstream_latency_histogram,
)
from budget_gateway.utils.date_utils import trailing_days

logger = logging.getLogger(__name__)

CURRENT_PRICE_KEY = "bitcoin_price"
HISTORY_KEY = "bitcoin_history"
HISTORY_DAYS = 7
# Synthetic history wanders at most this far from the fallback price per day
SYNTHETIC_SPREAD = 0.05


@dataclass(frozen=True)
class PriceSource:
    """One upstream quote API and how to read a USD price out of its body"""

    name: str
    url: str
    parse: Callable[[Any], float]
    params: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)


def _parse_coingecko(data: Any) -> float:
    return float(data["bitcoin"]["usd"])


def _parse_coinmarketcap(data: Any) -> float:
    return float(data["data"]["BTC"]["quote"]["USD"]["price"])


def _parse_coinbase(data: Any) -> float:
    return float(data["data"]["amount"])


def _validated(parsed: Any) -> Any:
    if isinstance(parsed, float) and not (math.isfinite(parsed) and parsed > 0):
        raise ValueError(f"non-positive price {parsed}")
    return parsed


def _parse_market_chart(data: Any) -> List[PricePoint]:
    # One point per calendar day (last sample of the day wins), newest HISTORY_DAYS kept
    by_day: Dict[str, float] = {}
    for timestamp_ms, price in data["prices"]:
        day = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()
        by_day[day] = float(price)
    points = [PricePoint(date=day, price=price) for day, price in sorted(by_day.items())]
    if not points:
        raise ValueError("empty price series")
    return points[-HISTORY_DAYS:]


class PriceProvider:
    """
    Current price and 7-day history for Bitcoin in USD.

    Availability over accuracy: every failure path ends in a usable value.
    The current price falls back to a fixed quote and the history to a
    synthetic series, both flagged degraded. Neither method raises.
    """

    def __init__(
        self,
        cache: PriceCache,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.cache = cache
        self.settings = settings or default_settings
        self.transport = transport
        self.sleep = sleep
        self.rng = rng or random.Random()

    def current_price_sources(self) -> List[PriceSource]:
        """Sources in fallback order; CoinMarketCap only when an API key is configured"""
        s = self.settings
        sources = [
            PriceSource(
                name="coingecko",
                url=f"{s.coingecko_api_base}/simple/price",
                params={"ids": "bitcoin", "vs_currencies": "usd"},
                parse=_parse_coingecko,
            )
        ]
        if s.coinmarketcap_api_key:
            sources.append(
                PriceSource(
                    name="coinmarketcap",
                    url=f"{s.coinmarketcap_api_base}/cryptocurrency/quotes/latest",
                    params={"symbol": "BTC"},
                    headers={"X-CMC_PRO_API_KEY": s.coinmarketcap_api_key},
                    parse=_parse_coinmarketcap,
                )
            )
        sources.append(
            PriceSource(
                name="coinbase",
                url=f"{s.coinbase_api_base}/prices/BTC-USD/spot",
                parse=_parse_coinbase,
            )
        )
        return sources

    def history_source(self) -> PriceSource:
        return PriceSource(
            name="coingecko",
            url=f"{self.settings.coingecko_api_base}/coins/bitcoin/market_chart",
            params={"vs_currency": "usd", "days": str(HISTORY_DAYS), "interval": "daily"},
            parse=_parse_market_chart,
        )

    async def get_current_price(self) -> PriceQuote:
        """
        Flow:
        1. Fresh cache entry -> return it, no upstream call
        2. Try each source in order, first valid positive price wins
        3. Write the winner through to the cache (300s TTL)
        4. Everything failed -> fixed fallback price, degraded=True
        """
        cached = await self._cache_get(CURRENT_PRICE_KEY)
        if cached is not None:
            return PriceQuote(price=float(cached), degraded=False, source="cache")

        async with self._client() as client:
            for source in self.current_price_sources():
                try:
                    price = await self._fetch(client, source)
                except UpstreamUnavailableError as e:
                    logger.warning(f"Price source failed: {e}", extra={"source": source.name})
                    continue

                await self._cache_set(CURRENT_PRICE_KEY, price)
                return PriceQuote(price=price, degraded=False, source=source.name)

        price_degraded_counter.labels(kind="current").inc()
        logger.error("All price sources failed; serving fallback price")
        return PriceQuote(price=self.settings.fallback_bitcoin_price, degraded=True, source="fallback")

    async def get_history(self) -> PriceHistory:
        """Cache first, then CoinGecko; synthetic series when upstream fails"""
        cached = await self._cache_get(HISTORY_KEY)
        if cached is not None:
            return PriceHistory(
                points=[PricePoint(date=p["date"], price=float(p["price"])) for p in cached],
                degraded=False,
            )

        source = self.history_source()
        try:
            async with self._client() as client:
                points = await self._fetch(client, source)
        except UpstreamUnavailableError as e:
            logger.warning(f"Price history unavailable: {e}", extra={"source": source.name})
            price_degraded_counter.labels(kind="history").inc()
            return PriceHistory(points=self.synthetic_history(), degraded=True)

        await self._cache_set(HISTORY_KEY, [{"date": p.date, "price": p.price} for p in points])
        return PriceHistory(points=points, degraded=False)

    def synthetic_history(self) -> List[PricePoint]:
        """Seven daily points around the fallback price; not market data"""
        base = self.settings.fallback_bitcoin_price
        return [
            PricePoint(
                date=day.isoformat(),
                price=round(base * (1 + self.rng.uniform(-SYNTHETIC_SPREAD, SYNTHETIC_SPREAD)), 2),
                synthetic=True,
            )
            for day in trailing_days(HISTORY_DAYS)
        ]

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.http_timeout_seconds, transport=self.transport)

    async def _fetch(self, client: httpx.AsyncClient, source: PriceSource) -> Any:
        """
        Call one source and parse its body.

        Retry strategy:
        - Only HTTP 429 is retried, up to price_max_attempts calls in total
        - Wait backoff_ms * attempt + uniform(0, jitter_ms) between calls
        - Timeouts, other statuses and bad bodies fail the source immediately

        Raises:
            UpstreamUnavailableError: source is exhausted or returned unusable data
        """
        max_attempts = self.settings.price_max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                with upstream_latency_histogram.labels(source=source.name).time():
                    response = await client.get(source.url, params=source.params, headers=source.headers)

                if response.status_code == 429 and attempt < max_attempts:
                    delay_ms = self.settings.price_backoff_ms * attempt + self.rng.uniform(0, self.settings.price_jitter_ms)
                    logger.info(
                        "Rate limited by price source, backing off",
                        extra={"source": source.name, "attempt": attempt, "delay_ms": round(delay_ms)},
                    )
                    await self.sleep(delay_ms / 1000)
                    continue

                response.raise_for_status()
                return _validated(source.parse(response.json()))

            except httpx.TimeoutException as e:
                price_source_failure_counter.labels(source=source.name).inc()
                raise UpstreamUnavailableError(
                    source.name, f"timeout after {self.settings.http_timeout_seconds}s"
                ) from e
            except httpx.HTTPStatusError as e:
                price_source_failure_counter.labels(source=source.name).inc()
                raise UpstreamUnavailableError(source.name, f"HTTP {e.response.status_code}") from e
            except httpx.RequestError as e:
                price_source_failure_counter.labels(source=source.name).inc()
                raise UpstreamUnavailableError(source.name, f"request failed: {e}") from e
            except (KeyError, IndexError, ValueError, TypeError) as e:
                price_source_failure_counter.labels(source=source.name).inc()
                raise UpstreamUnavailableError(source.name, f"invalid response: {e}") from e

        # Unreachable: the last attempt either returns or raises above
        raise UpstreamUnavailableError(source.name, "retries exhausted")

    async def _cache_get(self, key: str) -> Optional[Any]:
        try:
            value = await self.cache.get(key)
        except CacheUnavailableError as e:
            price_cache_counter.labels(key=key, result="unavailable").inc()
            logger.warning(f"Price cache unavailable: {e}", extra={"cache_key": key})
            return None
        price_cache_counter.labels(key=key, result="hit" if value is not None else "miss").inc()
        return value

    async def _cache_set(self, key: str, value: Any) -> None:
        try:
            await self.cache.set(key, value, self.settings.price_cache_ttl_seconds)
        except CacheUnavailableError as e:
            logger.warning(f"Price cache write failed: {e}", extra={"cache_key": key})
