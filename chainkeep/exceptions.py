"""Custom exceptions for the chainkeep wallet core.

Messages never include the mnemonic or any password.
"""


class WalletError(Exception):
    """Base exception for all chainkeep errors."""

    pass


# =============================================================================
# Secret Lifecycle Exceptions
# =============================================================================


class LifecycleError(WalletError):
    """Base exception for secret lifecycle errors."""

    pass


class NoWalletFound(LifecycleError):
    """Raised when no secret record is persisted."""

    def __init__(self, message: str = "No wallet found in storage") -> None:
        super().__init__(message)


class InvalidPassword(LifecycleError):
    """Raised when a password fails to decrypt the stored secret."""

    def __init__(self, message: str = "Invalid password") -> None:
        super().__init__(message)


class WeakPassword(LifecycleError):
    """Raised when a password is shorter than the minimum length.

    Attributes:
        min_length: The enforced minimum length.
    """

    def __init__(self, min_length: int) -> None:
        super().__init__(f"Password must be at least {min_length} characters")
        self.min_length = min_length


class ExportUnavailable(LifecycleError):
    """Raised when an encrypted secret is exported without a known password."""

    def __init__(
        self, message: str = "Secret is encrypted and no password is known"
    ) -> None:
        super().__init__(message)


class InvalidMnemonic(LifecycleError):
    """Raised when an imported phrase is not a valid BIP-39 mnemonic."""

    def __init__(self, message: str = "Invalid mnemonic phrase") -> None:
        super().__init__(message)


class DecryptionFailed(LifecycleError):
    """Raised by the cipher for a wrong password or malformed ciphertext."""

    pass


class PlaintextAtRiskWarning(UserWarning):
    """The secret is, or is about to be, stored unencrypted."""

    pass


# =============================================================================
# Account Registry Exceptions
# =============================================================================


class RegistryError(WalletError):
    """Base exception for account registry errors."""

    pass


class ChainNotConfigured(RegistryError):
    """Raised when a chain id has no configuration."""

    def __init__(self, chain_id: str) -> None:
        super().__init__(f"Chain not configured: {chain_id}")
        self.chain_id = chain_id


class NoSecretUnlocked(RegistryError):
    """Raised when an account is requested while the wallet is locked."""

    def __init__(self, message: str = "No secret unlocked") -> None:
        super().__init__(message)


# =============================================================================
# Token Catalog Exceptions
# =============================================================================


class InvalidToken(WalletError):
    """Raised when a token descriptor is missing a required field."""

    pass


# =============================================================================
# Aggregation Exceptions (recovered locally, never abort a report)
# =============================================================================


class AggregationError(WalletError):
    """Base exception for balance aggregation errors."""

    pass


class BalanceFetchFailed(AggregationError):
    """Raised when a single balance query fails or times out."""

    def __init__(self, chain_id: str, symbol: str, reason: str) -> None:
        super().__init__(f"Balance fetch failed for {symbol} on {chain_id}: {reason}")
        self.chain_id = chain_id
        self.symbol = symbol
        self.reason = reason


class PriceOracleUnavailable(AggregationError):
    """Raised when the price oracle cannot be reached."""

    def __init__(self, message: str = "Price oracle unavailable") -> None:
        super().__init__(message)


# =============================================================================
# Provider Transport Exceptions
# =============================================================================


class ProviderError(WalletError):
    """Raised when a chain endpoint request fails.

    Attributes:
        status_code: HTTP status, when the failure came from a response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
