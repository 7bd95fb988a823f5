"""TRON chain provider (TronGrid REST API)."""

from typing import Any

import base58
from eth_account import Account

from chainkeep.exceptions import ProviderError
from chainkeep.models import ChainConfig
from chainkeep.providers.transport import HttpTransport
from chainkeep.wallet.secret import Secret

Account.enable_unaudited_hdwallet_features()

# BIP-44 coin type 195
TRON_DERIVATION_PATH = "m/44'/195'/0'/0/{}"
TRON_ADDRESS_PREFIX = b"\x41"


def tron_address_from_evm(evm_address: str) -> str:
    """Convert a 0x-prefixed 20-byte address to a TRON Base58Check address."""
    payload = TRON_ADDRESS_PREFIX + bytes.fromhex(evm_address[2:])
    return base58.b58encode_check(payload).decode()


class TronAccount:
    """Balance-only account handle on TRON."""

    def __init__(self, address: str, chain: ChainConfig, transport: HttpTransport) -> None:
        self._address = address
        self._chain = chain
        self._transport = transport

    def get_address(self) -> str:
        return self._address

    async def _account_data(self) -> dict[str, Any]:
        url = f"{self._chain.rpc_url.rstrip('/')}/v1/accounts/{self._address}"
        response = await self._transport.get_json(url)
        if not isinstance(response, dict):
            raise ProviderError("Malformed TronGrid response")
        data = response.get("data") or []
        # Accounts that never received funds are not returned
        return data[0] if data else {}

    async def get_balance(self) -> int:
        account = await self._account_data()
        return int(account.get("balance", 0))

    async def get_token_balance(self, address: str) -> int:
        account = await self._account_data()
        for entry in account.get("trc20", []):
            if address in entry:
                return int(entry[address])
        return 0

    def __repr__(self) -> str:
        return f"TronAccount({self._chain.chain_id}, {self._address})"


class TronProvider:
    """Derives TRON accounts; keys share secp256k1 with EVM, addresses differ."""

    def __init__(self, transport: HttpTransport) -> None:
        self._transport = transport

    def derive_account(self, secret: Secret, index: int, chain: ChainConfig) -> TronAccount:
        account = Account.from_mnemonic(
            secret.reveal(), account_path=TRON_DERIVATION_PATH.format(index)
        )
        return TronAccount(tron_address_from_evm(account.address), chain, self._transport)
