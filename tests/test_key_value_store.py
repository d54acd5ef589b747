import pytest

from invoice_scan.storage import (
    InMemoryKeyValueStore,
    SqliteKeyValueStore,
    create_key_value_store,
)
from invoice_scan.utils.exceptions import StorageError


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryKeyValueStore()
    return SqliteKeyValueStore(tmp_path / "kv.db")


def test_set_and_get(store):
    store.set("audit_logs", [{"id": "a", "name": "株式会社"}])
    assert store.get("audit_logs") == [{"id": "a", "name": "株式会社"}]


def test_missing_key_returns_default(store):
    assert store.get("missing") is None
    assert store.get("missing", []) == []


def test_overwrite(store):
    store.set("k", 1)
    store.set("k", 2)
    assert store.get("k") == 2


def test_delete(store):
    store.set("k", {"a": 1})

    assert store.delete("k") is True
    assert store.delete("k") is False
    assert store.get("k") is None


def test_keys(store):
    store.set("b", 1)
    store.set("a", 2)
    assert store.keys() == ["a", "b"]


def test_values_are_copies(store):
    store.set("k", {"items": [1]})
    value = store.get("k")
    value["items"].append(2)

    assert store.get("k") == {"items": [1]}


def test_unserializable_value_raises(store):
    with pytest.raises(StorageError):
        store.set("k", {"x": object()})


def test_sqlite_persists_across_instances(tmp_path):
    SqliteKeyValueStore(tmp_path / "kv.db").set("records:invoice", {"inv-1": {"total": 1}})
    reopened = SqliteKeyValueStore(tmp_path / "kv.db")

    assert reopened.get("records:invoice") == {"inv-1": {"total": 1}}


def test_sqlite_creates_parent_directory(tmp_path):
    store = SqliteKeyValueStore(tmp_path / "nested" / "dir" / "kv.db")
    store.set("k", True)

    assert (tmp_path / "nested" / "dir" / "kv.db").exists()


def test_factory_memory_backend():
    assert isinstance(create_key_value_store("memory"), InMemoryKeyValueStore)


def test_factory_reads_database_location_from_config(tmp_path, config_file, monkeypatch):
    path = config_file(
        f"paths:\n  data_dir: {tmp_path.as_posix()}\n"
        "storage:\n  backend: sqlite\n  database_name: scan.db\n  table_name: kv\n"
    )
    monkeypatch.setenv("INVOICE_SCAN_CONFIG", str(path))

    store = create_key_value_store()

    assert isinstance(store, SqliteKeyValueStore)
    assert store.db_path == tmp_path / "scan.db"
    assert store.table_name == "kv"
