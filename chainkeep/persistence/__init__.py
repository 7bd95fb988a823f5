"""Persistence layer for the chainkeep wallet core.

Provides:
- SqliteSecretStore: SQLite key/value storage for the secret record and catalogs
- MemorySecretStore: process-local storage for tests and ephemeral sessions
"""

from chainkeep.persistence.store import MemorySecretStore, SqliteSecretStore

__all__ = ["MemorySecretStore", "SqliteSecretStore"]
