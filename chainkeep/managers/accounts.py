"""Account registry: per-chain account handles derived from the unlocked secret."""

from collections.abc import Mapping

from loguru import logger

from chainkeep.exceptions import ChainNotConfigured, NoSecretUnlocked
from chainkeep.interfaces.provider import AccountHandle, ChainAccountProvider
from chainkeep.models import ChainConfig, ChainFamily, short_address
from chainkeep.wallet.session import WalletSession


class AccountRegistry:
    """Lazily derives and memoizes one account handle per chain.

    Handles are cached on the WalletSession, so dropping the session's
    accounts (on lock or logout) is all it takes to invalidate them.

    Example:
        registry = AccountRegistry(chains, build_providers(transport))
        account = registry.ensure_account(session, "polygon")
        print(account.get_address())
    """

    DERIVATION_INDEX = 0

    def __init__(
        self,
        chains: Mapping[str, ChainConfig],
        providers: Mapping[ChainFamily, ChainAccountProvider],
    ) -> None:
        """Initialize the registry.

        Args:
            chains: Configured chains by chain id.
            providers: Account provider per chain family.
        """
        self._chains = chains
        self._providers = providers

    @property
    def chains(self) -> Mapping[str, ChainConfig]:
        """Configured chains by chain id."""
        return self._chains

    def chain(self, chain_id: str) -> ChainConfig:
        """Look up a chain configuration.

        Raises:
            ChainNotConfigured: If the chain id is unknown.
        """
        chain = self._chains.get(chain_id)
        if chain is None:
            raise ChainNotConfigured(chain_id)
        return chain

    def ensure_account(self, session: WalletSession, chain_id: str) -> AccountHandle:
        """Return the session's account for a chain, deriving it on first use.

        Raises:
            ChainNotConfigured: If the chain id is unknown or has no provider.
            NoSecretUnlocked: If the session is locked.
        """
        chain = self.chain(chain_id)
        if not session.is_unlocked:
            raise NoSecretUnlocked()

        cached: AccountHandle | None = session.accounts.get(chain_id)
        if cached is not None:
            return cached

        provider = self._providers.get(chain.family)
        if provider is None:
            raise ChainNotConfigured(chain_id)

        assert session.secret is not None
        account = provider.derive_account(session.secret, self.DERIVATION_INDEX, chain)
        session.accounts[chain_id] = account
        logger.info(
            "Derived {} account {}", chain.name, short_address(account.get_address())
        )
        return account

    def ensure_all(self, session: WalletSession) -> dict[str, AccountHandle]:
        """Derive accounts for every configured chain."""
        return {
            chain_id: self.ensure_account(session, chain_id) for chain_id in self._chains
        }
