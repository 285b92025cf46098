import datetime
import sqlite3

import pytest

from sqio.history import (
    Entry,
    HistoryNotFoundError,
    HistoryStore,
    ListOptions,
    default_path,
)


def test_append_and_list(tmp_path):
    store = HistoryStore(str(tmp_path / "history.db"))
    store.append(Entry(sql="select 1", connection="local", elapsed_ms=10, success=True, row_count=1, driver="sqlite"))
    entries = store.list(10)
    assert len(entries) == 1
    assert entries[0].sql == "select 1"
    assert entries[0].success is True
    assert entries[0].row_count == 1
    assert entries[0].driver == "sqlite"
    assert entries[0].elapsed_ms == 10


def test_defaults_and_limit(tmp_path, monkeypatch):
    env_path = str(tmp_path / "env-history.db")
    monkeypatch.setenv("SQIO_HISTORY_PATH", env_path)
    assert HistoryStore().path == env_path
    monkeypatch.setenv("SQIO_HISTORY_PATH", "")
    store = HistoryStore(str(tmp_path / "history.db"))
    store.append(Entry(sql="select 1"))
    entries = store.list(0)
    assert len(entries) == 1
    assert entries[0].executed_at is not None
    assert default_path().endswith("history.db")


def test_executed_at_round_trip(tmp_path):
    store = HistoryStore(str(tmp_path / "history.db"))
    moment = datetime.datetime(2024, 5, 6, 7, 8, 9, 123400, tzinfo=datetime.timezone.utc)
    store.append(Entry(sql="select 1", executed_at=moment))
    assert store.list()[0].executed_at == moment


def test_limit_orders_newest_first(tmp_path):
    store = HistoryStore(str(tmp_path / "history.db"))
    for n in range(3):
        store.append(Entry(sql=f"select {n}"))
    assert [e.sql for e in store.list(2)] == ["select 2", "select 1"]


def test_list_with_options_and_updates(tmp_path):
    store = HistoryStore(str(tmp_path / "history.db"))
    store.append(Entry(sql="select * from users", connection="local", tags="report"))
    store.append(Entry(sql="select * from orders", connection="warehouse", favorite=True, tags="finance"))
    entries = store.list_with_options(
        ListOptions(search="orders", connection="warehouse", favorite=True, tags="finance")
    )
    assert len(entries) == 1
    assert "orders" in entries[0].sql
    store.set_favorite(entries[0].id, False)
    store.set_tags(entries[0].id, "audited")
    entry = store.get(entries[0].id)
    assert entry.favorite is False
    assert entry.tags == "audited"
    with pytest.raises(HistoryNotFoundError):
        store.get(999)
    with pytest.raises(HistoryNotFoundError):
        store.set_favorite(999, True)


def test_migrates_legacy_schema(tmp_path):
    path = str(tmp_path / "history.db")
    conn = sqlite3.connect(path)
    conn.execute(
        """create table history (
id integer primary key autoincrement,
sql text not null,
connection text not null,
elapsed_ms integer not null,
executed_at text not null,
tags text not null default '',
favorite integer not null default 0
)"""
    )
    conn.execute(
        "insert into history (sql, connection, elapsed_ms, executed_at, tags, favorite) "
        "values ('select 1', 'legacy', 3, '2024-01-01T00:00:00Z', '', 0)"
    )
    conn.commit()
    conn.close()

    store = HistoryStore(path)
    entries = store.list(10)
    assert len(entries) == 1
    assert entries[0].success is True
    assert entries[0].row_count == 0
    assert entries[0].executed_at == datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

    store.append(Entry(sql="select broken", error="syntax error"))
    entries = store.list(10)
    assert len(entries) == 2
    assert entries[0].success is False
    assert entries[0].error == "syntax error"


def test_open_error_when_parent_is_file(tmp_path):
    file_path = tmp_path / "not-a-dir"
    file_path.write_text("x")
    store = HistoryStore(str(file_path / "history.db"))
    with pytest.raises(OSError):
        store.append(Entry(sql="select 1"))