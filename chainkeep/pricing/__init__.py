"""Price oracle clients."""

from chainkeep.pricing.client import CoinGeckoOracle

__all__ = ["CoinGeckoOracle"]
