"""Configuration architecture using pydantic-settings for typed environment loading."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseSettings):
    """Local storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Path("data")
    db_filename: str = "wallet.db"

    @property
    def db_path(self) -> Path:
        """Full path of the SQLite key/value store."""
        return self.data_dir / self.db_filename


class NetworkConfig(BaseSettings):
    """Network endpoints and request limits.

    RPC URL overrides are optional; chains without one use the
    built-in default endpoint.
    """

    model_config = SettingsConfigDict(
        env_prefix="NETWORK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    request_timeout: float = 10.0
    max_retries: int = 3
    price_oracle_url: str = "https://api.coingecko.com/api/v3"

    ethereum_rpc_url: str | None = None
    polygon_rpc_url: str | None = None
    arbitrum_rpc_url: str | None = None
    tron_rpc_url: str | None = None
    bitcoin_rpc_url: str | None = None

    def rpc_overrides(self) -> dict[str, str]:
        """Map of chain id to overridden RPC URL."""
        overrides = {
            "ethereum": self.ethereum_rpc_url,
            "polygon": self.polygon_rpc_url,
            "arbitrum": self.arbitrum_rpc_url,
            "tron": self.tron_rpc_url,
            "bitcoin": self.bitcoin_rpc_url,
        }
        return {chain: url for chain, url in overrides.items() if url}


class CipherConfig(BaseSettings):
    """Argon2id parameters for secret encryption."""

    model_config = SettingsConfigDict(
        env_prefix="CIPHER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    time_cost: int = 3
    memory_cost: int = 65536  # KiB (64 MB)
    parallelism: int = 4


class WalletConfig(BaseSettings):
    """Wallet behaviour configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WALLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_chain: str = "ethereum"
    word_count: int = 12
    min_password_length: int = 6


class Settings:
    """Root settings aggregating all configuration sections."""

    def __init__(self) -> None:
        self.storage = StorageConfig()
        self.network = NetworkConfig()
        self.cipher = CipherConfig()
        self.wallet = WalletConfig()


# Global settings instance - lazily loaded
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
