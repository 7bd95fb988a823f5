"""Chain account providers, one variant per chain family."""

from chainkeep.interfaces.provider import AccountHandle, ChainAccountProvider
from chainkeep.models import ChainFamily
from chainkeep.providers.bitcoin import BitcoinAccount, BitcoinProvider
from chainkeep.providers.evm import EvmAccount, EvmProvider
from chainkeep.providers.transport import HttpTransport
from chainkeep.providers.tron import TronAccount, TronProvider


def build_providers(transport: HttpTransport) -> dict[ChainFamily, ChainAccountProvider]:
    """Create one provider per chain family sharing a transport."""
    return {
        ChainFamily.EVM: EvmProvider(transport),
        ChainFamily.TRON: TronProvider(transport),
        ChainFamily.BITCOIN: BitcoinProvider(transport),
    }


__all__ = [
    "AccountHandle",
    "BitcoinAccount",
    "BitcoinProvider",
    "ChainAccountProvider",
    "EvmAccount",
    "EvmProvider",
    "HttpTransport",
    "TronAccount",
    "TronProvider",
    "build_providers",
]
