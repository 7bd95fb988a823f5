"""Manager layer: account registry, token catalog and balance aggregation."""

from chainkeep.managers.accounts import AccountRegistry
from chainkeep.managers.balances import BalanceAggregator
from chainkeep.managers.tokens import CustomTokenCatalog

__all__ = ["AccountRegistry", "BalanceAggregator", "CustomTokenCatalog"]
