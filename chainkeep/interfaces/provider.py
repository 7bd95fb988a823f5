"""Protocols defining the chain account provider capability."""

from typing import Protocol

from chainkeep.models import ChainConfig
from chainkeep.wallet.secret import Secret


class AccountHandle(Protocol):
    """Opaque per-chain account able to query balances."""

    def get_address(self) -> str:
        """Return the account address in the chain's native format."""
        ...

    async def get_balance(self) -> int:
        """Return the native balance in the smallest unit."""
        ...

    async def get_token_balance(self, address: str) -> int:
        """Return a token balance in the token's smallest unit."""
        ...


class ChainAccountProvider(Protocol):
    """Derives account handles for one chain family."""

    def derive_account(
        self, secret: Secret, index: int, chain: ChainConfig
    ) -> AccountHandle:
        """Derive the account at the given index for a chain."""
        ...
