"""Tests for the SQLite and in-memory secret stores."""

from pathlib import Path

import pytest

from chainkeep.persistence import MemorySecretStore, SqliteSecretStore


class TestSqliteSecretStoreLifecycle:
    """Tests for connection lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_creates_database_file(self, tmp_path: Path) -> None:
        """Database file and parent directory are created on connect."""
        db_path = tmp_path / "nested" / "wallet.db"
        store = SqliteSecretStore(db_path)
        await store.connect()
        try:
            assert db_path.exists()
        finally:
            await store.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, tmp_path: Path) -> None:
        """Calling disconnect twice does not raise."""
        store = SqliteSecretStore(tmp_path / "wallet.db")
        await store.connect()
        await store.disconnect()
        await store.disconnect()

    @pytest.mark.asyncio
    async def test_requires_connection(self, tmp_path: Path) -> None:
        """Operations before connect fail loudly."""
        store = SqliteSecretStore(tmp_path / "wallet.db")
        with pytest.raises(RuntimeError, match="not connected"):
            await store.get("key")


class TestSqliteSecretStoreOperations:
    """Tests for get/set/remove."""

    @pytest.mark.asyncio
    async def test_get_missing_key(self, tmp_path: Path) -> None:
        """Missing keys read as None."""
        async with SqliteSecretStore(tmp_path / "wallet.db") as store:
            assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_set_and_overwrite(self, tmp_path: Path) -> None:
        """set() upserts."""
        async with SqliteSecretStore(tmp_path / "wallet.db") as store:
            await store.set("wallet_enc_password", "1")
            await store.set("wallet_enc_password", "2")
            assert await store.get("wallet_enc_password") == "2"
            assert await store.keys() == ["wallet_enc_password"]

    @pytest.mark.asyncio
    async def test_remove(self, tmp_path: Path) -> None:
        """remove() deletes; removing a missing key is a no-op."""
        async with SqliteSecretStore(tmp_path / "wallet.db") as store:
            await store.set("a", "1")
            await store.remove("a")
            await store.remove("a")
            assert await store.get("a") is None

    @pytest.mark.asyncio
    async def test_values_survive_reconnect(self, tmp_path: Path) -> None:
        """Data is durable across connections."""
        db_path = tmp_path / "wallet.db"
        async with SqliteSecretStore(db_path) as store:
            await store.set("custom_tokens", '{"polygon": []}')

        async with SqliteSecretStore(db_path) as store:
            assert await store.get("custom_tokens") == '{"polygon": []}'


class TestMemorySecretStore:
    """Tests for MemorySecretStore."""

    @pytest.mark.asyncio
    async def test_initial_values_are_copied(self) -> None:
        """The initial mapping is not shared."""
        initial = {"a": "1"}
        store = MemorySecretStore(initial)
        await store.set("b", "2")
        assert initial == {"a": "1"}
        assert await store.keys() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_remove_missing(self) -> None:
        """Removing a missing key is a no-op."""
        store = MemorySecretStore()
        await store.remove("missing")
        assert await store.get("missing") is None
