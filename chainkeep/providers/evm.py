"""EVM-compatible chain provider (Ethereum, Polygon, Arbitrum)."""

from itertools import count
from typing import Any

from eth_account import Account

from chainkeep.exceptions import ProviderError
from chainkeep.models import ChainConfig
from chainkeep.providers.transport import HttpTransport
from chainkeep.wallet.secret import Secret

# Enable HD wallet features
Account.enable_unaudited_hdwallet_features()

# BIP-44 derivation path for Ethereum
EVM_DERIVATION_PATH = "m/44'/60'/0'/0/{}"

# keccak("balanceOf(address)")[:4]
BALANCE_OF_SELECTOR = "0x70a08231"

_request_ids = count(1)


def parse_quantity(value: Any) -> int:
    """Parse a JSON-RPC hex quantity ('0x' counts as zero)."""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise ProviderError(f"Unexpected RPC result: {value!r}")
    if value == "0x":
        return 0
    try:
        return int(value, 16)
    except ValueError as e:
        raise ProviderError(f"Unexpected RPC result: {value!r}") from e


class EvmAccount:
    """Balance-only account handle on an EVM chain, queried over JSON-RPC."""

    def __init__(self, address: str, chain: ChainConfig, transport: HttpTransport) -> None:
        self._address = address
        self._chain = chain
        self._transport = transport

    def get_address(self) -> str:
        return self._address

    async def get_balance(self) -> int:
        result = await self._rpc("eth_getBalance", [self._address, "latest"])
        return parse_quantity(result)

    async def get_token_balance(self, address: str) -> int:
        owner = self._address[2:].lower().rjust(64, "0")
        call = {"to": address, "data": BALANCE_OF_SELECTOR + owner}
        result = await self._rpc("eth_call", [call, "latest"])
        return parse_quantity(result)

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(_request_ids),
            "method": method,
            "params": params,
        }
        response = await self._transport.post_json(self._chain.rpc_url, payload)
        if not isinstance(response, dict):
            raise ProviderError(f"Malformed RPC response for {method}")
        if response.get("error"):
            error = response["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ProviderError(f"RPC error for {method}: {message}")
        return response.get("result")

    def __repr__(self) -> str:
        return f"EvmAccount({self._chain.chain_id}, {self._address})"


class EvmProvider:
    """Derives EVM accounts from the mnemonic with eth_account."""

    def __init__(self, transport: HttpTransport) -> None:
        self._transport = transport

    def derive_account(self, secret: Secret, index: int, chain: ChainConfig) -> EvmAccount:
        account = Account.from_mnemonic(
            secret.reveal(), account_path=EVM_DERIVATION_PATH.format(index)
        )
        return EvmAccount(account.address, chain, self._transport)
