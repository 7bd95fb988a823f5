"""Secret store implementations: SQLite-backed and in-memory."""

from pathlib import Path
from time import time
from typing import Any

import aiosqlite
from loguru import logger

from chainkeep.interfaces.store import SecretStore
from chainkeep.persistence.schema import SCHEMA_STATEMENTS


class SqliteSecretStore(SecretStore):
    """Async SQLite key/value store.

    Each set/remove commits immediately, giving per-key atomicity.

    Example:
        async with SqliteSecretStore(Path("data/wallet.db")) as store:
            await store.set("custom_tokens", "{}")
            value = await store.get("custom_tokens")
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> Path:
        """Path of the database file."""
        return self._db_path

    async def connect(self) -> None:
        """Open database connection and create tables if needed."""
        # Ensure parent directory exists
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        self._connection.row_factory = aiosqlite.Row

        for statement in SCHEMA_STATEMENTS:
            await self._connection.execute(statement)
        await self._connection.commit()

        logger.debug("Connected to secret store: {}", self._db_path)

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Disconnected from secret store: {}", self._db_path)

    async def __aenter__(self) -> "SqliteSecretStore":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Secret store not connected")
        return self._connection

    async def get(self, key: str) -> str | None:
        connection = self._require_connection()
        cursor = await connection.execute(
            "SELECT value FROM kv_store WHERE key = ?",
            (key,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        value: str = row["value"]
        return value

    async def set(self, key: str, value: str) -> None:
        connection = self._require_connection()
        await connection.execute(
            """
            INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, time()),
        )
        await connection.commit()

    async def remove(self, key: str) -> None:
        connection = self._require_connection()
        await connection.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        await connection.commit()

    async def keys(self) -> list[str]:
        """List stored keys (values are never returned in bulk)."""
        connection = self._require_connection()
        cursor = await connection.execute("SELECT key FROM kv_store ORDER BY key")
        rows = await cursor.fetchall()
        return [row["key"] for row in rows]


class MemorySecretStore(SecretStore):
    """Process-local store; nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> list[str]:
        """List stored keys."""
        return sorted(self._data)
