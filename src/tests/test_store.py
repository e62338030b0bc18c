import json
from datetime import datetime

import pytest
import pytest_asyncio
from tortoise import Tortoise
from tortoise.exceptions import OperationalError

from storefront.common import store as store_module
from storefront.common.models import StoredRecord, next_timestamp
from storefront.common.store import (
    FileRecordStore,
    InMemoryRecordStore,
    PersistenceMode,
    RecordConflictError,
    StoreError,
    TortoiseRecordStore,
    build_store,
)

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture(params=["memory", "file", "tortoise"])
async def store(request, tmp_path):
    """The same contract checked against every backend."""
    if request.param == "memory":
        yield InMemoryRecordStore("widgets")
    elif request.param == "file":
        yield FileRecordStore("widgets", tmp_path / "widgets.json")
    else:
        await Tortoise.init(db_url="sqlite://:memory:", modules={"models": ["storefront.common.models"]})
        await Tortoise.generate_schemas()
        yield TortoiseRecordStore("widgets")
        await Tortoise.close_connections()


async def test_insert_and_get(store):
    created = await store.insert({"id": "w1", "name": "Phone Stand"})
    assert created["created_at"] == created["updated_at"]

    fetched = await store.get("w1")
    assert fetched == created
    assert await store.get("missing") is None


async def test_insert_rejects_duplicate_id(store):
    await store.insert({"id": "w1", "name": "Phone Stand"})
    with pytest.raises(RecordConflictError):
        await store.insert({"id": "w1", "name": "Other"})
    assert len(await store.all()) == 1


async def test_insert_rejects_conflicting_record(store):
    await store.insert({"id": "w1", "sku": "ABC"})
    with pytest.raises(RecordConflictError):
        await store.insert({"id": "w2", "sku": "ABC"}, conflicts_with=lambda r: r["sku"] == "ABC")
    assert [r["id"] for r in await store.all()] == ["w1"]


async def test_find_and_find_one(store):
    await store.insert({"id": "w1", "colour": "red"})
    await store.insert({"id": "w2", "colour": "blue"})
    await store.insert({"id": "w3", "colour": "red"})

    reds = await store.find(lambda r: r["colour"] == "red")
    assert sorted(r["id"] for r in reds) == ["w1", "w3"]
    assert (await store.find_one(lambda r: r["colour"] == "blue"))["id"] == "w2"
    assert await store.find_one(lambda r: r["colour"] == "green") is None


async def test_update_merges_and_keeps_identity(store):
    created = await store.insert({"id": "w1", "name": "Stand", "stock": 5})

    updated = await store.update("w1", {"stock": 4, "id": "hijack", "created_at": "1970-01-01T00:00:00+00:00"})

    assert updated["id"] == "w1"
    assert updated["name"] == "Stand"
    assert updated["stock"] == 4
    assert updated["created_at"] == created["created_at"]
    assert datetime.fromisoformat(updated["updated_at"]) > datetime.fromisoformat(created["updated_at"])
    assert await store.get("hijack") is None


async def test_update_unknown_returns_none(store):
    assert await store.update("missing", {"stock": 1}) is None


async def test_delete(store):
    await store.insert({"id": "w1"})
    assert await store.delete("w1") is True
    assert await store.delete("w1") is False
    assert await store.all() == []


async def test_returned_records_are_copies(store):
    await store.insert({"id": "w1", "tags": ["a"]})
    fetched = await store.get("w1")
    fetched["tags"].append("b")
    assert (await store.get("w1"))["tags"] == ["a"]


# --- File backend specifics ---

async def test_file_store_creates_empty_file(tmp_path):
    path = tmp_path / "nested" / "users.json"
    file_store = FileRecordStore("users", path)
    assert file_store.mode is PersistenceMode.DURABLE
    assert json.loads(path.read_text()) == []


async def test_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "users.json"
    await FileRecordStore("users", path).insert({"id": "u1", "email": "a@example.com"})

    reopened = FileRecordStore("users", path)
    assert (await reopened.get("u1"))["email"] == "a@example.com"


async def test_file_store_reloads_before_each_operation(tmp_path):
    path = tmp_path / "orders.json"
    first = FileRecordStore("orders", path)
    second = FileRecordStore("orders", path)

    await first.insert({"id": "o1"})
    assert await second.get("o1") is not None

    await second.update("o1", {"status": "shipped"})
    assert (await first.get("o1"))["status"] == "shipped"


async def test_crash_before_rename_leaves_old_file_intact(tmp_path, monkeypatch):
    path = tmp_path / "orders.json"
    file_store = FileRecordStore("orders", path)
    await file_store.insert({"id": "o1", "total_amount": 10})
    before = path.read_text()
    seen = {}

    def crash_instead_of_rename(src, dst):
        seen["tmp"] = json.loads(open(src, encoding="utf-8").read())
        seen["real"] = open(dst, encoding="utf-8").read()
        raise OSError("simulated crash")

    monkeypatch.setattr(store_module.os, "replace", crash_instead_of_rename)

    created = await file_store.insert({"id": "o2", "total_amount": 20})

    assert created["id"] == "o2"
    assert [r["id"] for r in seen["tmp"]] == ["o1", "o2"]
    assert seen["real"] == before
    assert path.read_text() == before
    assert [r["id"] for r in json.loads(path.read_text())] == ["o1"]
    assert not (tmp_path / "orders.json.tmp").exists()
    assert file_store.mode is PersistenceMode.VOLATILE_FALLBACK


async def test_unwritable_directory_degrades_to_memory(tmp_path, caplog):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("plain file")
    file_store = FileRecordStore("users", blocker / "users.json")

    assert file_store.mode is PersistenceMode.VOLATILE_FALLBACK
    assert "File system not writable" in caplog.text

    created = await file_store.insert({"id": "u1", "name": "Ada"})
    updated = await file_store.update("u1", {"name": "Ada L."})
    assert created["id"] == "u1"
    assert updated["name"] == "Ada L."
    assert [r["id"] for r in await file_store.all()] == ["u1"]
    assert await file_store.delete("u1") is True
    assert await file_store.all() == []


async def test_degraded_warning_logged_once(tmp_path, caplog):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("plain file")
    file_store = FileRecordStore("users", blocker / "users.json")
    for index in range(3):
        await file_store.insert({"id": f"u{index}"})

    warnings = [r for r in caplog.records if r.levelname == "WARNING" and r.name == "storefront.common.store"]
    assert len(warnings) == 1


async def test_corrupt_file_does_not_crash(tmp_path):
    path = tmp_path / "users.json"
    path.write_text("{not json")

    file_store = FileRecordStore("users", path)

    assert file_store.mode is PersistenceMode.VOLATILE_FALLBACK
    assert await file_store.all() == []
    await file_store.insert({"id": "u1"})
    assert path.read_text() == "{not json"


async def test_non_object_entries_degrade_instead_of_crashing(tmp_path):
    path = tmp_path / "users.json"
    path.write_text('[null, 3, {"id": "u1"}]')

    file_store = FileRecordStore("users", path)

    assert file_store.mode is PersistenceMode.VOLATILE_FALLBACK
    assert await file_store.get("u1") is None
    assert await file_store.find_one(lambda r: r.get("id") == "u1") is None
    await file_store.insert({"id": "u2"})
    assert [r["id"] for r in await file_store.all()] == ["u2"]


async def test_describe_reports_mode_and_file(tmp_path):
    file_store = FileRecordStore("users", tmp_path / "users.json")
    assert file_store.describe() == {
        "collection": "users",
        "mode": "durable",
        "file": str(tmp_path / "users.json"),
    }


async def test_build_store_picks_backend(tmp_path):
    assert isinstance(build_store("users", backend="memory"), InMemoryRecordStore)
    assert isinstance(build_store("users", backend="sqlite"), TortoiseRecordStore)
    file_store = build_store("users", backend="file", data_dir=tmp_path)
    assert isinstance(file_store, FileRecordStore)
    assert file_store.path == tmp_path / "users.json"


async def test_database_errors_surface_as_store_error(monkeypatch, caplog):
    async def locked(*args, **kwargs):
        raise OperationalError("database is locked")

    def no_transaction():
        raise OperationalError("database is locked")

    monkeypatch.setattr(StoredRecord, "get_or_none", locked)
    monkeypatch.setattr(store_module, "in_transaction", no_transaction)
    db_store = TortoiseRecordStore("orders")

    with pytest.raises(StoreError, match="orders store unavailable"):
        await db_store.get("o1")
    with pytest.raises(StoreError):
        await db_store.update("o1", {"status": "shipped"})
    with pytest.raises(StoreError) as excinfo:
        await db_store.insert({"id": "o2"})
    assert not isinstance(excinfo.value, RecordConflictError)
    assert isinstance(excinfo.value.__cause__, OperationalError)
    assert any("Database error during get on orders" in r.message for r in caplog.records)


async def test_next_timestamp_accepts_zulu_suffix():
    assert next_timestamp("2999-01-01T00:00:00.000Z") == "2999-01-01T00:00:00.000001+00:00"
    assert next_timestamp("2999-01-01T00:00:00") == "2999-01-01T00:00:00.000001+00:00"
