"""Tests for the key-value stores."""

import logging

import pytest

from conftest import ORIGIN, TEST_ETH_ADDRESS
from nijawallet.errors import Malformed, UpstreamUnavailable
from nijawallet.sessions import SessionStore
from nijawallet.storage import NS_ACTIVITY, NS_POLICY, NS_SESSION, create_store
from nijawallet.storage.filestore import FileKeyValueStore


@pytest.fixture(params=["file_store", "sql_store"])
def store(request):
    """Run each test against both backends."""
    return request.getfixturevalue(request.param)


class TestKeyValueStore:
    """Behaviour shared by every backend."""

    @pytest.mark.asyncio
    async def test_put_then_get(self, store):
        await store.put(NS_SESSION, "abc", {"id": "abc", "n": 1})

        assert await store.get(NS_SESSION, "abc") == {"id": "abc", "n": 1}

    @pytest.mark.asyncio
    async def test_missing_is_none(self, store):
        assert await store.get(NS_SESSION, "missing") is None

    @pytest.mark.asyncio
    async def test_put_replaces(self, store):
        await store.put(NS_POLICY, "k", {"v": 1})
        await store.put(NS_POLICY, "k", {"v": 2})

        assert await store.get(NS_POLICY, "k") == {"v": 2}
        assert await store.list(NS_POLICY) == [{"v": 2}]

    @pytest.mark.asyncio
    async def test_namespaces_are_isolated(self, store):
        await store.put(NS_SESSION, "same", {"ns": "session"})
        await store.put(NS_ACTIVITY, "same", {"ns": "activity"})

        assert await store.get(NS_SESSION, "same") == {"ns": "session"}
        assert await store.list(NS_ACTIVITY) == [{"ns": "activity"}]

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.put(NS_SESSION, "gone", {"x": 1})

        assert await store.delete(NS_SESSION, "gone") is True
        assert await store.delete(NS_SESSION, "gone") is False
        assert await store.get(NS_SESSION, "gone") is None

    @pytest.mark.asyncio
    async def test_unknown_namespace(self, store):
        with pytest.raises(ValueError):
            await store.get("other", "k")


class TestFileStore:
    """File backend specifics."""

    @pytest.mark.asyncio
    async def test_one_file_per_record(self, file_store):
        await file_store.put(NS_ACTIVITY, "0xabc", {"hash": "0xabc"})

        assert (file_store.data_dir / "activity_0xabc.json").exists()
        assert not list(file_store.data_dir.glob(".tmp_*"))

    @pytest.mark.asyncio
    async def test_corrupt_record_skipped(self, file_store):
        await file_store.put(NS_ACTIVITY, "good", {"hash": "good"})
        (file_store.data_dir / "activity_bad.json").write_text("{not json")

        assert await file_store.get(NS_ACTIVITY, "bad") is None
        assert await file_store.list(NS_ACTIVITY) == [{"hash": "good"}]

    @pytest.mark.asyncio
    async def test_list_reads_every_record(self, tmp_path):
        store = FileKeyValueStore(str(tmp_path / "fresh"))
        assert await store.list(NS_SESSION) == []

        await store.put(NS_SESSION, "a", {"id": "a"})
        await store.put(NS_SESSION, "b", {"id": "b"})

        assert await store.list(NS_SESSION) == [{"id": "a"}, {"id": "b"}]

    @pytest.mark.asyncio
    async def test_path_traversal_key_rejected(self, file_store):
        with pytest.raises(Malformed):
            await file_store.get(NS_SESSION, "../etc/passwd")


class TestCreateStore:
    """Tests for backend selection."""

    def test_file_backend(self, settings):
        assert create_store(settings).name == "file"

    def test_unknown_backend(self, settings):
        settings.storage_backend = "redis"
        with pytest.raises(ValueError):
            create_store(settings)

    @pytest.mark.asyncio
    async def test_sql_backend_creates_database_directory(self, settings, tmp_path):
        settings.storage_backend = "sql"
        settings.database_url = f"sqlite+aiosqlite:///{tmp_path / 'fresh' / 'wallet.db'}"
        store = create_store(settings)

        await store.open()
        try:
            await store.put(NS_POLICY, "k", {"v": 1})
            assert await store.get(NS_POLICY, "k") == {"v": 1}
        finally:
            await store.close()

        assert (tmp_path / "fresh" / "wallet.db").exists()

    @pytest.mark.asyncio
    async def test_sql_backend_does_not_log_session_ids(self, settings, tmp_path, caplog):
        caplog.set_level(logging.DEBUG)
        settings.storage_backend = "sql"
        settings.database_url = f"sqlite+aiosqlite:///{tmp_path / 'wallet.db'}"
        store = create_store(settings)
        await store.open()
        try:
            session = await SessionStore(store).create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)
        finally:
            await store.close()

        assert session.id not in caplog.text

    @pytest.mark.asyncio
    async def test_sql_backend_open_failure_is_upstream_unavailable(self, settings, tmp_path):
        (tmp_path / "occupied").write_text("not a directory")
        settings.storage_backend = "sql"
        settings.database_url = f"sqlite+aiosqlite:///{tmp_path / 'occupied' / 'wallet.db'}"
        store = create_store(settings)

        with pytest.raises(UpstreamUnavailable):
            await store.open()
        await store.close()
