"""Bitcoin provider: native SegWit (BIP-84) address, Esplora balance API."""

import bech32
from eth_account import Account
from eth_keys import keys

from chainkeep.exceptions import ProviderError
from chainkeep.models import ChainConfig
from chainkeep.providers.encoding import hash160
from chainkeep.providers.transport import HttpTransport
from chainkeep.wallet.secret import Secret

Account.enable_unaudited_hdwallet_features()

# BIP-84 first receiving address
BITCOIN_DERIVATION_PATH = "m/84'/0'/0'/0/{}"
BITCOIN_HRP = "bc"


def p2wpkh_address(private_key: bytes, hrp: str = BITCOIN_HRP) -> str:
    """P2WPKH address for a secp256k1 private key."""
    public_key = keys.PrivateKey(private_key).public_key.to_compressed_bytes()
    address = bech32.encode(hrp, 0, hash160(public_key))
    if address is None:
        raise ValueError("Error encoding bech32 address")
    return address


class BitcoinAccount:
    """Balance-only account handle on Bitcoin."""

    def __init__(self, address: str, chain: ChainConfig, transport: HttpTransport) -> None:
        self._address = address
        self._chain = chain
        self._transport = transport

    def get_address(self) -> str:
        return self._address

    async def get_balance(self) -> int:
        """Confirmed plus mempool balance in satoshi."""
        url = f"{self._chain.rpc_url.rstrip('/')}/address/{self._address}"
        response = await self._transport.get_json(url)
        try:
            total = 0
            for stats_key in ("chain_stats", "mempool_stats"):
                stats = response.get(stats_key) or {}
                total += int(stats.get("funded_txo_sum", 0))
                total -= int(stats.get("spent_txo_sum", 0))
        except (AttributeError, TypeError, ValueError) as e:
            raise ProviderError("Malformed Esplora response") from e
        return total

    async def get_token_balance(self, address: str) -> int:
        raise ProviderError("Bitcoin accounts have no token balances")

    def __repr__(self) -> str:
        return f"BitcoinAccount({self._chain.chain_id}, {self._address})"


class BitcoinProvider:
    """Derives Bitcoin accounts; eth_account supplies the BIP-32 key."""

    def __init__(self, transport: HttpTransport) -> None:
        self._transport = transport

    def derive_account(self, secret: Secret, index: int, chain: ChainConfig) -> BitcoinAccount:
        account = Account.from_mnemonic(
            secret.reveal(), account_path=BITCOIN_DERIVATION_PATH.format(index)
        )
        return BitcoinAccount(p2wpkh_address(bytes(account.key)), chain, self._transport)
