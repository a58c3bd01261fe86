"""Tests for the sqlite-backed key-value store."""

import sqlite3

import pytest

from porepbench._internal.store import KVStore, open_store, prefix_limit
from porepbench.errors import StoreError


def test_put_get_delete(store):
    store.put(b"\x10", b"miner")
    assert store.get(b"\x10") == b"miner"
    store.put(b"\x10", b"miner-2")
    assert store.get(b"\x10") == b"miner-2"
    store.delete(b"\x10")
    assert store.get(b"\x10") is None


def test_prefix_scan_is_ordered_and_disjoint(store):
    store.put(b"\x20\x02", b"b")
    store.put(b"\x20\x01", b"a")
    store.put(b"\x30\x01", b"st")
    store.put(b"\x20", b"bare")
    store.put(b"\x21", b"next-namespace")

    assert store.iter_prefix(b"\x20") == [
        (b"\x20", b"bare"),
        (b"\x20\x01", b"a"),
        (b"\x20\x02", b"b"),
    ]
    assert store.iter_prefix(b"\x30") == [(b"\x30\x01", b"st")]


def test_prefix_limit():
    assert prefix_limit(b"\x20") == b"\x21"
    assert prefix_limit(b"\x20\xff") == b"\x21"
    assert prefix_limit(b"\xff\xff") is None


def test_unbounded_prefix_scan(store):
    store.put(b"\xff\x01", b"x")
    assert store.iter_prefix(b"\xff") == [(b"\xff\x01", b"x")]


def test_delete_prefix(store):
    for i in range(5):
        store.put(b"\x30" + bytes([i]), b"v")
    store.put(b"\x01", b"validator")
    assert store.delete_prefix(b"\x30") == 5
    assert store.iter_prefix(b"\x30") == []
    assert store.get(b"\x01") == b"validator"


def test_transaction_rolls_back_on_error(store):
    store.put(b"\x01", b"old")
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.put(b"\x01", b"new")
            store.put(b"\x02", b"other")
            raise RuntimeError("boom")
    assert store.get(b"\x01") == b"old"
    assert store.get(b"\x02") is None


def test_nested_transaction_commits_once(store):
    with store.transaction():
        store.put(b"\x01", b"a")
        with store.transaction():
            store.put(b"\x02", b"b")
    assert store.count() == 2


def test_records_survive_reopen(tmp_path):
    path = tmp_path / "db.sqlite3"
    with open_store(path) as kv:
        kv.put(b"\x01", b"persisted")
    with open_store(path) as kv:
        assert kv.get(b"\x01") == b"persisted"


def test_open_store_closes_on_error(tmp_path):
    with pytest.raises(ValueError):
        with open_store(tmp_path / "db.sqlite3") as kv:
            raise ValueError("phase failed")
    assert kv.closed
    with pytest.raises(StoreError, match="closed"):
        kv.get(b"\x01")


def test_unopenable_path_is_store_error(tmp_path):
    with pytest.raises(StoreError, match="cannot open store"):
        KVStore(tmp_path / "missing-dir" / "db.sqlite3")


def test_connection_closed_when_schema_setup_fails(tmp_path, monkeypatch):
    path = tmp_path / "garbage.sqlite3"
    path.write_bytes(b"x" * 4096)
    opened = []
    real_connect = sqlite3.connect

    def tracking_connect(*args, **kwargs):
        conn = real_connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr("porepbench._internal.store.sqlite3.connect", tracking_connect)
    with pytest.raises(StoreError, match="cannot open store"):
        KVStore(path)
    assert len(opened) == 1
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].execute("SELECT 1")
