"""Abstract base class defining the symmetric cipher interface."""

from abc import ABC, abstractmethod

from chainkeep.exceptions import DecryptionFailed

# Re-export exceptions for convenience
__all__ = ["SymmetricCipher", "DecryptionFailed"]


class SymmetricCipher(ABC):
    """Password-based symmetric encryption of short text secrets."""

    @abstractmethod
    def encrypt(self, plaintext: str, password: str) -> str:
        """Encrypt plaintext under a password.

        Returns:
            A self-describing ciphertext string safe to persist.
        """
        raise NotImplementedError

    @abstractmethod
    def decrypt(self, ciphertext: str, password: str) -> str:
        """Decrypt a ciphertext produced by encrypt().

        Raises:
            DecryptionFailed: Wrong password or malformed ciphertext.
                Implementations must never return garbage instead.
        """
        raise NotImplementedError
