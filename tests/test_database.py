import json

import pytest

from crumbelore import database
from crumbelore.database import RecordStore
from crumbelore.errors import StoreInitError


def test_read_missing_collection_returns_empty_after_retries(store, monkeypatch):
    sleeps = []
    monkeypatch.setattr(database.time, "sleep", lambda s: sleeps.append(s))

    assert store.read("books") == []
    # three attempts, two pauses between them
    assert len(sleeps) == 2


def test_read_corrupt_collection_returns_empty(store):
    store.initialize()
    store.path_for("books").write_text("{not json", encoding="utf-8")

    assert store.read("books") == []


def test_read_non_array_document_returns_empty(store):
    store.initialize()
    store.path_for("users").write_text(json.dumps({"id": 1}), encoding="utf-8")

    assert store.read("users") == []


def test_write_then_read(store):
    store.initialize()
    records = [{"id": "a", "title": "Ä title"}, {"id": "b"}]

    assert store.write("books", records) is True
    assert store.read("books") == records
    assert "books" in store.collections()


def test_write_keeps_backup_of_previous_contents(store):
    store.initialize()
    store.write("orders", [{"id": "ORD-1"}])
    store.write("orders", [{"id": "ORD-1"}, {"id": "ORD-2"}])

    backup = json.loads(store.backup_path_for("orders").read_text(encoding="utf-8"))
    assert backup == [{"id": "ORD-1"}]
    assert len(store.read("orders")) == 2


def test_write_failure_returns_false_after_retries(tmp_path, monkeypatch):
    store = RecordStore(tmp_path, retries=3, retry_delay=0)
    attempts = []

    def boom(path, data):
        attempts.append(path)
        raise OSError("disk full")

    monkeypatch.setattr(RecordStore, "_write_json", staticmethod(boom))

    assert store.write("books", [{"id": "x"}]) is False
    assert len(attempts) == 3


def test_write_recovers_on_second_attempt(tmp_path, monkeypatch):
    store = RecordStore(tmp_path, retries=3, retry_delay=0)
    real_write = RecordStore._write_json
    calls = {"n": 0}

    def flaky(path, data):
        calls["n"] += 1
        if calls["n"] == 1:
            raise OSError("busy")
        real_write(path, data)

    monkeypatch.setattr(RecordStore, "_write_json", staticmethod(flaky))

    assert store.write("books", [{"id": "x"}]) is True
    assert store.read("books") == [{"id": "x"}]


def test_backup_failure_does_not_block_write(store, monkeypatch):
    store.initialize()
    store.write("books", [{"id": "old"}])

    def no_copy(src, dst):
        raise OSError("read-only")

    monkeypatch.setattr(database.shutil, "copyfile", no_copy)

    assert store.write("books", [{"id": "new"}]) is True
    assert store.read("books") == [{"id": "new"}]


def test_initialize_failure_is_fatal(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    store = RecordStore(blocker / "data")

    with pytest.raises(StoreInitError):
        store.initialize()


def test_interleaved_read_modify_write_loses_an_update(store):
    store.initialize()
    store.write("orders", [])

    first = store.read("orders")
    second = store.read("orders")
    first.append({"id": "ORD-1"})
    second.append({"id": "ORD-2"})
    store.write("orders", first)
    store.write("orders", second)

    # last writer wins; there is no merge
    assert store.read("orders") == [{"id": "ORD-2"}]
