import json

import pytest

from transconnect_core import JsonFileStore, MemoryStore, StorageFailure


@pytest.mark.asyncio
async def test_memory_store_returns_copies():
    store = MemoryStore({"users": [{"id": "1"}]})

    value = await store.get("users")
    value.append({"id": "2"})

    assert await store.get("users") == [{"id": "1"}]
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_memory_store_rejects_unserializable_values():
    store = MemoryStore()

    with pytest.raises(StorageFailure):
        await store.set("bad", {"value": object()})

    assert await store.get("bad") is None


@pytest.mark.asyncio
async def test_json_file_store_round_trip_and_remove(tmp_path):
    store = JsonFileStore(tmp_path / "data")

    await store.set("theme_preference", "dark")
    assert (tmp_path / "data" / "theme_preference.json").exists()
    assert await store.get("theme_preference") == "dark"

    await store.remove("theme_preference")
    assert await store.get("theme_preference") is None
    await store.remove("theme_preference")


@pytest.mark.asyncio
async def test_json_file_store_leaves_no_temp_files(tmp_path):
    store = JsonFileStore(tmp_path)

    await store.set("users", [{"id": "1", "email": "a@b.co"}])
    await store.set("users", [{"id": "2", "email": "c@d.co"}])

    assert sorted(path.name for path in tmp_path.iterdir()) == ["users.json"]
    assert json.loads((tmp_path / "users.json").read_text(encoding="utf-8")) == [{"id": "2", "email": "c@d.co"}]


@pytest.mark.asyncio
async def test_json_file_store_reports_corrupt_files(tmp_path):
    (tmp_path / "users.json").write_text("{not json", encoding="utf-8")
    store = JsonFileStore(tmp_path)

    with pytest.raises(StorageFailure):
        await store.get("users")


@pytest.mark.asyncio
async def test_json_file_store_rejects_path_like_keys(tmp_path):
    store = JsonFileStore(tmp_path)

    with pytest.raises(ValueError):
        await store.get("../outside")
