"""Tests for settings and the chain table."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from chainkeep.chains import BUILTIN_TOKENS, DEFAULT_CHAINS, build_chain_configs, builtin_tokens
from chainkeep.config import CipherConfig, NetworkConfig, StorageConfig, WalletConfig
from chainkeep.models import ChainFamily


class TestSettings:
    """Tests for pydantic-settings sections."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Defaults apply without environment variables."""
        monkeypatch.chdir(tmp_path)  # no .env file
        assert StorageConfig().db_path == Path("data") / "wallet.db"
        assert NetworkConfig().rpc_overrides() == {}
        assert CipherConfig().memory_cost == 65536
        wallet = WalletConfig()
        assert wallet.default_chain == "ethereum"
        assert wallet.min_password_length == 6

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Prefixed environment variables override defaults."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("STORAGE_DATA_DIR", str(tmp_path / "wallet"))
        monkeypatch.setenv("NETWORK_POLYGON_RPC_URL", "https://polygon.example")
        monkeypatch.setenv("WALLET_DEFAULT_CHAIN", "polygon")

        assert StorageConfig().db_path == tmp_path / "wallet" / "wallet.db"
        assert NetworkConfig().rpc_overrides() == {"polygon": "https://polygon.example"}
        assert WalletConfig().default_chain == "polygon"

    def test_env_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Values are read from a .env file in the working directory."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("CIPHER_TIME_COST=5\n")
        assert CipherConfig().time_cost == 5


class TestChainTable:
    """Tests for build_chain_configs() and the built-in tokens."""

    def test_default_chains(self) -> None:
        """All five chains are configured with their families and decimals."""
        chains = build_chain_configs()
        assert list(chains) == ["ethereum", "polygon", "arbitrum", "tron", "bitcoin"]
        assert chains["tron"].decimals == 6
        assert chains["tron"].family == ChainFamily.TRON
        assert chains["bitcoin"].decimals == 8
        assert not chains["bitcoin"].is_evm
        assert all(chains[c].is_evm for c in ("ethereum", "polygon", "arbitrum"))

    def test_rpc_override(self) -> None:
        """Overrides replace only the given chain's endpoint."""
        chains = build_chain_configs({"ethereum": "https://eth.example"})
        assert chains["ethereum"].rpc_url == "https://eth.example"
        assert chains["polygon"].rpc_url == DEFAULT_CHAINS[1].rpc_url

    def test_chain_table_is_read_only(self) -> None:
        """Neither the mapping nor the configs can be mutated."""
        chains = build_chain_configs()
        with pytest.raises(TypeError):
            chains["solana"] = chains["ethereum"]  # type: ignore[index]
        with pytest.raises(ValidationError):
            chains["ethereum"].rpc_url = "x"  # type: ignore[misc]

    def test_builtin_tokens(self) -> None:
        """Built-in tokens exist for EVM chains and carry price ids."""
        symbols = [t.symbol for t in builtin_tokens("polygon")]
        assert symbols == ["USDT", "USDC"]
        assert all(t.price_id for tokens in BUILTIN_TOKENS.values() for t in tokens)
        assert builtin_tokens("bitcoin") == ()
