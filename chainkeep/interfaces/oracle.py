"""Abstract base class defining the price oracle interface."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from decimal import Decimal

from chainkeep.exceptions import PriceOracleUnavailable

# Re-export exceptions for convenience
__all__ = ["PriceOracle", "PriceOracleUnavailable"]


class PriceOracle(ABC):
    """Batched USD price lookup."""

    @abstractmethod
    async def get_prices(self, ids: Iterable[str]) -> dict[str, Decimal]:
        """Fetch USD unit prices for all ids in a single request.

        Args:
            ids: Price oracle ids (e.g. 'tether', 'usd-coin').

        Returns:
            Map of id to USD price. Ids the oracle does not know are
            simply missing; that is not an error.

        Raises:
            PriceOracleUnavailable: If the oracle cannot be reached.
        """
        raise NotImplementedError
