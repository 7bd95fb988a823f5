"""Wallet secret module.

Provides mnemonic generation, at-rest encryption, and the unlock/lock lifecycle.
"""

from chainkeep.wallet.cipher import AesGcmCipher
from chainkeep.wallet.lifecycle import (
    PasswordSupplier,
    PersistResult,
    SecretLifecycleManager,
    UnlockResult,
)
from chainkeep.wallet.secret import Secret
from chainkeep.wallet.session import WalletSession

__all__ = [
    "AesGcmCipher",
    "PasswordSupplier",
    "PersistResult",
    "Secret",
    "SecretLifecycleManager",
    "UnlockResult",
    "WalletSession",
]
