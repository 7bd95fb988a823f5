"""Domain models for the chainkeep wallet core."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, SecretStr


class ChainFamily(str, Enum):
    """Chain family, selecting the account provider variant."""

    EVM = "EVM"
    TRON = "TRON"
    BITCOIN = "BITCOIN"


class SecretState(str, Enum):
    """Where the secret currently lives."""

    NO_RECORD = "NO_RECORD"
    LOCKED = "LOCKED"
    UNLOCKING = "UNLOCKING"
    UNLOCKED = "UNLOCKED"


class RecordKind(str, Enum):
    """Persisted form of the secret."""

    ABSENT = "ABSENT"
    PLAINTEXT = "PLAINTEXT"
    ENCRYPTED = "ENCRYPTED"


class UnlockStatus(str, Enum):
    """Outcome of an unlock attempt that did not raise."""

    UNLOCKED = "UNLOCKED"
    ABORTED = "ABORTED"


# =============================================================================
# Chain and Token Configuration
# =============================================================================


class ChainConfig(BaseModel):
    """Static configuration for one supported chain.

    Immutable; built once at process start.
    """

    model_config = {"frozen": True}

    chain_id: str = Field(..., min_length=1, description="Chain key, e.g. 'polygon'")
    name: str = Field(..., description="Display name")
    currency: str = Field(..., description="Native currency symbol")
    rpc_url: str = Field(..., description="RPC / REST endpoint")
    decimals: int = Field(..., ge=0, le=36, description="Native unit decimal exponent")
    family: ChainFamily = Field(..., description="Account provider variant")
    price_id: str | None = Field(
        default=None, description="Price oracle id of the native asset"
    )

    @property
    def is_evm(self) -> bool:
        """Whether the chain supports contract tokens."""
        return self.family == ChainFamily.EVM


class TokenDescriptor(BaseModel):
    """A token known on one chain.

    Required fields are validated by the catalog rather than here so that
    blank user input surfaces as InvalidToken.
    """

    model_config = {"frozen": True}

    chain_id: str = Field(..., description="Chain the token lives on")
    address: str = Field(..., description="Contract address")
    symbol: str = Field(..., description="Ticker symbol")
    name: str = Field(..., description="Display name")
    decimals: int = Field(default=18, ge=0, le=36, description="Decimal exponent")
    price_id: str | None = Field(default=None, description="Price oracle id")

    def canonical_address(self, family: ChainFamily) -> str:
        """Address used for duplicate detection."""
        return canonical_address(self.address, family)


def canonical_address(address: str, family: ChainFamily) -> str:
    """Normalize an address for comparison (EVM hex is case-insensitive)."""
    address = address.strip()
    if family == ChainFamily.EVM:
        return address.lower()
    return address


# =============================================================================
# Persisted Secret Record
# =============================================================================


class SecretRecord(BaseModel):
    """The persisted form of the wallet secret.

    Invariants:
        - PLAINTEXT carries mnemonic, never ciphertext
        - ENCRYPTED carries ciphertext, never mnemonic
        - ENCRYPTED with password_present=False is the inconsistent state
          repaired on the next unlock
    """

    model_config = {"frozen": True}

    kind: RecordKind = Field(..., description="Persisted form")
    mnemonic: SecretStr | None = Field(default=None, description="Plaintext phrase")
    ciphertext: str | None = Field(default=None, description="Cipher envelope")
    password_present: bool = Field(
        default=False, description="Whether the encryption flag is set"
    )

    @property
    def requires_migration(self) -> bool:
        """Plaintext records should be encrypted."""
        return self.kind == RecordKind.PLAINTEXT

    @property
    def is_inconsistent(self) -> bool:
        """Encrypted record written without its flag."""
        return self.kind == RecordKind.ENCRYPTED and not self.password_present


# =============================================================================
# Balance Reporting
# =============================================================================


class BalanceRow(BaseModel):
    """One asset line in a balance report."""

    model_config = {"frozen": True}

    symbol: str = Field(..., description="Ticker symbol")
    name: str = Field(..., description="Display name")
    address: str | None = Field(default=None, description="Contract (None for native)")
    decimals: int = Field(..., ge=0, description="Decimal exponent")
    raw_balance: int = Field(default=0, ge=0, description="Smallest-unit balance")
    balance: Decimal = Field(default=Decimal("0"), description="Display balance")
    usd_price: Decimal | None = Field(default=None, description="USD unit price")
    usd_value: Decimal = Field(default=Decimal("0.00"), description="USD value")
    is_native: bool = Field(default=False, description="Native asset row")
    error: str | None = Field(default=None, description="Fetch failure, if any")

    @property
    def failed(self) -> bool:
        """Whether the balance could not be fetched."""
        return self.error is not None


class BalanceReport(BaseModel):
    """Valuation of one chain's assets for the unlocked account."""

    model_config = {"frozen": True}

    chain_id: str = Field(..., description="Chain key")
    address: str = Field(..., description="Account address")
    rows: list[BalanceRow] = Field(default_factory=list)
    prices_available: bool = Field(
        default=True, description="False when the price oracle was unreachable"
    )
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_usd(self) -> Decimal:
        """Sum of all row USD values."""
        return sum((row.usd_value for row in self.rows), Decimal("0.00"))

    @property
    def failed_rows(self) -> list[BalanceRow]:
        """Rows whose balance fetch failed."""
        return [row for row in self.rows if row.failed]

    def row(self, symbol: str) -> BalanceRow | None:
        """Find the first row with the given symbol."""
        for row in self.rows:
            if row.symbol == symbol:
                return row
        return None


def short_address(address: str, chars: int = 4) -> str:
    """Shorten an address for display and logs (0x1234...5678)."""
    if len(address) <= chars * 2 + 2:
        return address
    return f"{address[:chars + 2]}...{address[-chars:]}"
