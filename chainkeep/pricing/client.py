"""CoinGecko price oracle client."""

import asyncio
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from time import time
from typing import Any

from loguru import logger

from chainkeep.exceptions import PriceOracleUnavailable, ProviderError
from chainkeep.interfaces.oracle import PriceOracle
from chainkeep.providers.transport import HttpTransport


class CoinGeckoOracle(PriceOracle):
    """USD price lookup through the CoinGecko simple price endpoint.

    All ids are requested in one call, so the request count does not grow
    with the number of tokens.

    Usage:
        async with HttpTransport() as transport:
            oracle = CoinGeckoOracle(transport)
            prices = await oracle.get_prices({"tether", "usd-coin"})
    """

    # API Configuration
    BASE_URL = "https://api.coingecko.com/api/v3"
    PRICE_ENDPOINT = "/simple/price"
    VS_CURRENCY = "usd"

    # Rate Limiting
    MIN_REQUEST_INTERVAL: float = 1.0

    def __init__(self, transport: HttpTransport, base_url: str = BASE_URL) -> None:
        """Initialize the oracle.

        Args:
            transport: Shared HTTP transport.
            base_url: API root, without trailing slash.
        """
        self._transport = transport
        self._base_url = base_url.rstrip("/")
        self._last_request_time: float = 0.0

    async def _rate_limit(self) -> None:
        """Enforce minimum request interval."""
        elapsed = time() - self._last_request_time
        if elapsed < self.MIN_REQUEST_INTERVAL:
            await asyncio.sleep(self.MIN_REQUEST_INTERVAL - elapsed)
        self._last_request_time = time()

    async def get_prices(self, ids: Iterable[str]) -> dict[str, Decimal]:
        unique_ids = sorted({price_id for price_id in ids if price_id})
        if not unique_ids:
            return {}

        await self._rate_limit()
        url = f"{self._base_url}{self.PRICE_ENDPOINT}"
        params = {"ids": ",".join(unique_ids), "vs_currencies": self.VS_CURRENCY}

        try:
            data = await self._transport.get_json(url, params=params)
        except ProviderError as e:
            logger.warning("Price fetch failed: {}", str(e))
            raise PriceOracleUnavailable(f"Price oracle unavailable: {e}") from e

        if not isinstance(data, dict):
            raise PriceOracleUnavailable("Malformed price oracle response")

        prices = self._parse_prices(data)
        logger.debug("Fetched {} of {} prices", len(prices), len(unique_ids))
        return prices

    def _parse_prices(self, data: dict[str, Any]) -> dict[str, Decimal]:
        """Parse {id: {"usd": price}}; unknown or malformed entries are skipped."""
        prices: dict[str, Decimal] = {}
        for price_id, quote in data.items():
            if not isinstance(quote, dict) or self.VS_CURRENCY not in quote:
                continue
            try:
                prices[price_id] = Decimal(str(quote[self.VS_CURRENCY]))
            except (InvalidOperation, ValueError):
                logger.debug("Skipping malformed price for {}", price_id)
        return prices
