"""
存储管理层测试：连接生命周期、建表幂等、配置解析
"""
import logging
import sqlite3
import threading
from unittest.mock import MagicMock

import pytest

from contactbook import db as db_module
from contactbook.db import StoreManager, get_db_path, get_store, reset_store
from contactbook.errors import DatabaseError


def test_db_path_env_has_priority(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("db_path: other.db\n", encoding="utf-8")
    target = tmp_path / "env" / "c.db"
    monkeypatch.setenv("CONTACTS_DB_PATH", str(target))
    assert get_db_path(str(cfg)) == str(target)
    # 目录会被自动创建
    assert target.parent.is_dir()


def test_db_path_from_config(tmp_path, monkeypatch):
    monkeypatch.delenv("CONTACTS_DB_PATH", raising=False)
    cfg = tmp_path / "config.yaml"
    db_file = tmp_path / "data" / "contacts.db"
    cfg.write_text(f"db_path: {db_file}\n", encoding="utf-8")
    assert get_db_path(str(cfg)) == str(db_file)


def test_db_path_prefers_test_path_under_pytest(tmp_path, monkeypatch):
    monkeypatch.delenv("CONTACTS_DB_PATH", raising=False)
    monkeypatch.setenv("APP_ENV", "test")
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        f"db_path: {tmp_path / 'prod.db'}\ntest_db_path: {tmp_path / 'test.db'}\n",
        encoding="utf-8",
    )
    assert get_db_path(str(cfg)) == str(tmp_path / "test.db")


def test_malformed_config_is_ignored(tmp_path, monkeypatch):
    monkeypatch.delenv("CONTACTS_DB_PATH", raising=False)
    cfg = tmp_path / "config.yaml"
    cfg.write_text("db_path: [unclosed\n", encoding="utf-8")
    assert db_module.read_config_yaml(str(cfg)) == {}
    assert get_db_path(str(cfg)) == db_module._ROOT_DB


def test_connection_is_lazy_and_reused(tmp_path):
    store = StoreManager(str(tmp_path / "c.db"))
    assert store._conn is None
    c1 = store.acquire_connection()
    c2 = store.acquire_connection()
    assert c1 is c2
    assert c1.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    store.release_connection()


def test_reopens_after_close(tmp_path):
    store = StoreManager(str(tmp_path / "c.db"))
    c1 = store.acquire_connection()
    c1.close()
    c2 = store.acquire_connection()
    assert c2 is not c1
    assert c2.execute("SELECT 1").fetchone()[0] == 1

    store.release_connection()
    assert store._conn is None
    c3 = store.acquire_connection()
    assert c3.execute("SELECT 1").fetchone()[0] == 1
    store.release_connection()


def test_concurrent_acquire_creates_one_connection(tmp_path, monkeypatch):
    real_connect = sqlite3.connect
    calls = []

    def counting_connect(*a, **kw):
        calls.append(1)
        return real_connect(*a, **kw)

    monkeypatch.setattr(db_module.sqlite3, "connect", counting_connect)
    store = StoreManager(str(tmp_path / "c.db"))
    barrier = threading.Barrier(16)
    seen = []

    def worker():
        barrier.wait()
        seen.append(id(store.acquire_connection()))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len(set(seen)) == 1
    store.release_connection()


def test_initialize_schema_is_idempotent(tmp_path):
    store = StoreManager(str(tmp_path / "c.db"))
    store.initialize_schema()
    with store.connection() as conn:
        conn.execute("INSERT INTO contacts(name, phone, email) VALUES('A','1','a@x.com')")
    store.initialize_schema()

    with store.connection() as conn:
        assert conn.execute("SELECT COUNT(1) FROM contacts").fetchone()[0] == 1
        names = {
            r["name"]
            for r in conn.execute("SELECT name FROM sqlite_master WHERE tbl_name='contacts'")
        }
        assert {"contacts", "idx_contacts_email", "idx_contacts_name"} <= names
        assert conn.execute("PRAGMA user_version").fetchone()[0] == store.database_version()
    store.release_connection()


def test_open_failure_raises_database_error(tmp_path):
    store = StoreManager(str(tmp_path / "missing" / "c.db"))
    with pytest.raises(DatabaseError) as ei:
        store.acquire_connection()
    assert "connection" in ei.value.message
    assert isinstance(ei.value.cause, sqlite3.Error)


def test_schema_failure_raises_database_error(tmp_path):
    bogus = tmp_path / "bogus.db"
    bogus.write_bytes(b"x" * 2048)
    store = StoreManager(str(bogus))
    with pytest.raises(DatabaseError) as ei:
        store.initialize_schema()
    assert isinstance(ei.value.cause, sqlite3.Error)
    store.release_connection()


def test_release_failure_is_only_logged(tmp_path, caplog):
    store = StoreManager(str(tmp_path / "c.db"))
    bad = MagicMock()
    bad.close.side_effect = sqlite3.OperationalError("disk gone")
    store._conn = bad
    with caplog.at_level(logging.WARNING, logger="contactbook.db"):
        store.release_connection()
    assert "Failed to close database connection" in caplog.text
    assert store._conn is None


def test_release_waits_for_running_statement(tmp_path):
    """关闭连接需等待进行中的语句结束"""
    store = StoreManager(str(tmp_path / "c.db"))
    store.initialize_schema()
    entered = threading.Event()
    finish = threading.Event()
    released = threading.Event()
    results = []

    def user():
        with store.connection() as conn:
            entered.set()
            finish.wait(5)
            results.append(conn.execute("SELECT COUNT(1) FROM contacts").fetchone()[0])

    def closer():
        store.release_connection()
        released.set()

    t_user = threading.Thread(target=user)
    t_user.start()
    assert entered.wait(5)
    t_close = threading.Thread(target=closer)
    t_close.start()

    assert not released.wait(0.2)
    finish.set()
    t_user.join(5)
    t_close.join(5)
    assert released.is_set()
    assert results == [0]
    assert store._conn is None


def test_release_without_connection_is_noop(tmp_path):
    store = StoreManager(str(tmp_path / "c.db"))
    store.release_connection()
    assert store._conn is None


def test_default_store_is_shared(tmp_db_path):
    reset_store()
    try:
        a = get_store()
        b = get_store()
        assert a is b
        assert a.db_path == tmp_db_path
    finally:
        reset_store()
