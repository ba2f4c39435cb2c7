"""Tests for the key-value store adapters and their factory."""

import sqlite3
from unittest.mock import patch

import pytest

from src.adapters.memory_store import MemoryKeyValueStore
from src.adapters.sqlite_store import SQLiteKeyValueStore
from src.adapters.store_factory import create_store
from src.ports.storage_port import PersistenceError


@pytest.fixture
def sqlite_store(tmp_path):
    return SQLiteKeyValueStore(db_path=str(tmp_path / "nested" / "kv.db"))


class TestSQLiteKeyValueStore:
    @pytest.mark.asyncio
    async def test_missing_key_returns_none(self, sqlite_store):
        assert await sqlite_store.get("nope") is None

    @pytest.mark.asyncio
    async def test_set_get_overwrite(self, sqlite_store):
        await sqlite_store.set("k", [{"a": 1}])
        await sqlite_store.set("k", [{"a": 2}, {"b": None}])
        assert await sqlite_store.get("k") == [{"a": 2}, {"b": None}]

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, sqlite_store):
        await sqlite_store.set("a", 1)
        await sqlite_store.set("b", 2)
        await sqlite_store.remove("a")
        assert await sqlite_store.get("a") is None
        await sqlite_store.clear()
        assert await sqlite_store.get("b") is None

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        path = str(tmp_path / "kv.db")
        await SQLiteKeyValueStore(db_path=path).set("k", {"x": "y"})
        assert await SQLiteKeyValueStore(db_path=path).get("k") == {"x": "y"}

    @pytest.mark.asyncio
    async def test_unserializable_value_raises(self, sqlite_store):
        with pytest.raises(PersistenceError):
            await sqlite_store.set("k", {"bad": object()})

    @pytest.mark.asyncio
    async def test_sqlite_error_wrapped(self, sqlite_store):
        with patch.object(sqlite_store, "_get_sync", side_effect=sqlite3.OperationalError("locked")):
            with pytest.raises(PersistenceError, match="locked"):
                await sqlite_store.get("k")


class TestMemoryKeyValueStore:
    @pytest.mark.asyncio
    async def test_values_are_detached(self):
        store = MemoryKeyValueStore()
        value = [{"a": 1}]
        await store.set("k", value)
        value[0]["a"] = 2
        assert await store.get("k") == [{"a": 1}]

    @pytest.mark.asyncio
    async def test_remove_missing_key_is_fine(self):
        await MemoryKeyValueStore().remove("nope")

    @pytest.mark.asyncio
    async def test_unserializable_value_raises(self):
        with pytest.raises(PersistenceError):
            await MemoryKeyValueStore().set("k", object())


class TestCreateStore:
    def test_memory_path(self):
        assert isinstance(create_store(":memory:"), MemoryKeyValueStore)

    def test_file_path(self, tmp_path):
        assert isinstance(create_store(str(tmp_path / "kv.db")), SQLiteKeyValueStore)

    @patch("src.adapters.store_factory.settings")
    def test_uses_configured_path(self, mock_settings):
        mock_settings.DATABASE_PATH = ":memory:"
        assert isinstance(create_store(), MemoryKeyValueStore)
