"""Supported chains and the built-in token catalog."""

from collections.abc import Mapping
from types import MappingProxyType

from chainkeep.models import ChainConfig, ChainFamily, TokenDescriptor

# Default public endpoints per chain
DEFAULT_CHAINS: tuple[ChainConfig, ...] = (
    ChainConfig(
        chain_id="ethereum",
        name="Ethereum",
        currency="ETH",
        rpc_url="https://eth.drpc.org",
        decimals=18,
        family=ChainFamily.EVM,
        price_id="ethereum",
    ),
    ChainConfig(
        chain_id="polygon",
        name="Polygon",
        currency="MATIC",
        rpc_url="https://polygon-rpc.com",
        decimals=18,
        family=ChainFamily.EVM,
        price_id="matic-network",
    ),
    ChainConfig(
        chain_id="arbitrum",
        name="Arbitrum",
        currency="ETH",
        rpc_url="https://arb1.arbitrum.io/rpc",
        decimals=18,
        family=ChainFamily.EVM,
        price_id="ethereum",
    ),
    ChainConfig(
        chain_id="tron",
        name="TRON",
        currency="TRX",
        rpc_url="https://api.trongrid.io",
        decimals=6,
        family=ChainFamily.TRON,
        price_id="tron",
    ),
    ChainConfig(
        chain_id="bitcoin",
        name="Bitcoin",
        currency="BTC",
        rpc_url="https://blockstream.info/api",
        decimals=8,
        family=ChainFamily.BITCOIN,
        price_id="bitcoin",
    ),
)


def _token(
    chain_id: str, symbol: str, name: str, address: str, decimals: int, price_id: str
) -> TokenDescriptor:
    return TokenDescriptor(
        chain_id=chain_id,
        address=address,
        symbol=symbol,
        name=name,
        decimals=decimals,
        price_id=price_id,
    )


BUILTIN_TOKENS: Mapping[str, tuple[TokenDescriptor, ...]] = MappingProxyType({
    "ethereum": (
        _token("ethereum", "USDT", "Tether USD", "0xdAC17F958D2ee523a2206206994597C13D831ec7", 6, "tether"),
        _token("ethereum", "USDC", "USD Coin", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", 6, "usd-coin"),
        _token("ethereum", "DAI", "Dai Stablecoin", "0x6B175474E89094C44Da98b954EedeAC495271d0F", 18, "dai"),
    ),
    "polygon": (
        _token("polygon", "USDT", "Tether USD", "0xc2132D05D31c914a87C6611C10748AEb04B58e8F", 6, "tether"),
        _token("polygon", "USDC", "USD Coin", "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", 6, "usd-coin"),
    ),
})


def build_chain_configs(
    rpc_overrides: Mapping[str, str] | None = None,
) -> Mapping[str, ChainConfig]:
    """Build the immutable chain table, applying RPC URL overrides.

    Args:
        rpc_overrides: Map of chain id to replacement RPC URL.

    Returns:
        Read-only mapping of chain id to ChainConfig.
    """
    overrides = rpc_overrides or {}
    chains = {}
    for chain in DEFAULT_CHAINS:
        if chain.chain_id in overrides:
            chain = chain.model_copy(update={"rpc_url": overrides[chain.chain_id]})
        chains[chain.chain_id] = chain
    return MappingProxyType(chains)


def builtin_tokens(chain_id: str) -> tuple[TokenDescriptor, ...]:
    """Built-in tokens for a chain (empty for chains without tokens)."""
    return BUILTIN_TOKENS.get(chain_id, ())
