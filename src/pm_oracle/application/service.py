"""PriceOracleService — current reference price with a short reuse window.

Callers must tolerate a quote up to ``cache_ttl_secs`` old; the cache only
bounds call volume when auto-manage ticks and operator calls burst together.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from config.settings import settings
from src.pm_oracle.domain.models import PriceQuote, parse_latest_price_feeds
from src.pm_oracle.infrastructure.pyth_client import PythPriceClient

logger = logging.getLogger(__name__)


class PriceSourceProtocol(Protocol):
    async def fetch_latest_price_feeds(self) -> Any: ...


class PriceOracleService:
    def __init__(
        self,
        source: PriceSourceProtocol,
        cache_ttl_secs: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._cache_ttl_secs = cache_ttl_secs
        self._clock = clock
        self._cached: tuple[float, PriceQuote] | None = None
        self._lock = asyncio.Lock()

    async def fetch_current_price(self) -> PriceQuote:
        async with self._lock:
            now = self._clock()
            if self._cached is not None and now - self._cached[0] < self._cache_ttl_secs:
                return self._cached[1]

            quote = parse_latest_price_feeds(await self._source.fetch_latest_price_feeds())
            self._cached = (now, quote)
            logger.info("Oracle price %s (%d micro-units)", quote.price, quote.micro_units)
            return quote


_oracle: PriceOracleService | None = None
_client: PythPriceClient | None = None


def get_price_oracle() -> PriceOracleService:
    global _oracle, _client  # noqa: PLW0603
    if _oracle is None:
        _client = PythPriceClient(
            settings.PYTH_ENDPOINT,
            settings.PYTH_PRICE_FEED_ID,
            timeout_secs=settings.ORACLE_TIMEOUT_SECS,
        )
        _oracle = PriceOracleService(_client, cache_ttl_secs=settings.PRICE_CACHE_TTL_SECS)
    return _oracle


async def close_price_oracle() -> None:
    global _oracle, _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
    _oracle = None
    _client = None
