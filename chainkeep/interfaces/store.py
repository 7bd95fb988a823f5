"""Abstract base class defining the secret store interface."""

from abc import ABC, abstractmethod

__all__ = ["SecretStore"]


class SecretStore(ABC):
    """Plain persistent key/value surface.

    Only per-key atomicity is required. Implementations hold no business
    logic; the lifecycle manager decides what is written where.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        raise NotImplementedError

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete a key. Removing an absent key is not an error."""
        raise NotImplementedError
