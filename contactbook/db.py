from __future__ import annotations

# contactbook/db.py
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator

import yaml

from .errors import DatabaseError

logger = logging.getLogger(__name__)

# DB 路径解析顺序：
# 1) 环境变量 CONTACTS_DB_PATH（最高优先级）
# 2) config.yaml 的 test_db_path（当检测到测试环境时）
# 3) config.yaml 的 db_path（默认）
# 4) 兜底：项目根 contacts.db
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "contacts.db")
_DEFAULT_CONFIG = os.path.join(_PROJECT_ROOT, "config.yaml")

SCHEMA_VERSION = 1

DDL = """
CREATE TABLE IF NOT EXISTS contacts (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  phone TEXT NOT NULL,
  email TEXT NOT NULL UNIQUE COLLATE NOCASE,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_contacts_email ON contacts(email);
CREATE INDEX IF NOT EXISTS idx_contacts_name ON contacts(name COLLATE NOCASE);
"""


def read_config_yaml(cfg_path: str | None = None) -> dict:
    cfg_path = cfg_path or _DEFAULT_CONFIG
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable config {cfg_path}: {e}")
        return {}
    if not isinstance(cfg, dict):
        return {}
    out = {}
    for k in ("db_path", "test_db_path"):
        v = cfg.get(k)
        if isinstance(v, str) and v.strip():
            out[k] = v.strip()
    return out


def get_db_path(config_path: str | None = None) -> str:
    env_path = os.environ.get("CONTACTS_DB_PATH")
    cfg = read_config_yaml(config_path)
    cfg_db = cfg.get("db_path")
    cfg_test = cfg.get("test_db_path")
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_path:
        path = env_path
    elif is_test and cfg_test:
        path = cfg_test
    elif cfg_db:
        path = cfg_db
    else:
        path = _ROOT_DB

    # 确保目录存在
    dirn = os.path.dirname(path) or "."
    os.makedirs(dirn, exist_ok=True)
    return path


def _is_usable(conn: sqlite3.Connection | None) -> bool:
    if conn is None:
        return False
    try:
        conn.total_changes
        return True
    except sqlite3.ProgrammingError:
        # closed connection
        return False


class StoreManager:
    """
    持有唯一的 SQLite 连接并负责建表。

    连接惰性打开；acquire_connection() 先做无锁快速检查，未就绪时再加锁创建，
    保证并发调用下只建立一个物理连接。
    """

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._open_lock = threading.Lock()
        self._use_lock = threading.RLock()

    @property
    def db_path(self) -> str:
        if self._db_path is None:
            self._db_path = get_db_path()
        return self._db_path

    def _open(self) -> sqlite3.Connection:
        path = self.db_path
        try:
            conn = sqlite3.connect(
                path,
                check_same_thread=False,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            logger.error(f"Failed to open database {path}: {e}")
            raise DatabaseError("Failed to establish database connection", e) from e
        try:
            # SQLite 默认关闭外键约束
            conn.execute("PRAGMA foreign_keys = ON;")
        except sqlite3.Error as e:
            conn.close()
            logger.error(f"Failed to configure database {path}: {e}")
            raise DatabaseError("Failed to establish database connection", e) from e
        conn.row_factory = sqlite3.Row
        logger.info(f"Opened database connection: {path}")
        return conn

    def acquire_connection(self) -> sqlite3.Connection:
        conn = self._conn
        if _is_usable(conn):
            return conn
        with self._open_lock:
            if not _is_usable(self._conn):
                self._conn = self._open()
            return self._conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield the shared connection; statements on it are serialized."""
        with self._use_lock:
            yield self.acquire_connection()

    def initialize_schema(self) -> None:
        try:
            with self.connection() as conn:
                conn.executescript(DDL)
                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        except sqlite3.Error as e:
            logger.error(f"Schema initialization failed: {e}")
            raise DatabaseError("Failed to initialize database schema", e) from e
        logger.info(f"Schema ready (version {SCHEMA_VERSION}) at {self.db_path}")

    def database_version(self) -> int:
        return SCHEMA_VERSION

    def release_connection(self) -> None:
        # 等待进行中的语句结束；加锁顺序与 connection() 一致：_use_lock -> _open_lock
        with self._use_lock:
            with self._open_lock:
                conn, self._conn = self._conn, None
            if conn is None:
                return
            try:
                conn.close()
                logger.info("Database connection closed")
            except sqlite3.Error as e:
                # 关闭失败只记录，不影响退出
                logger.warning(f"Failed to close database connection: {e}")


_store: StoreManager | None = None
_store_lock = threading.Lock()


def get_store() -> StoreManager:
    """Process-wide default StoreManager, created on first use."""
    global _store
    store = _store
    if store is not None:
        return store
    with _store_lock:
        if _store is None:
            _store = StoreManager()
        return _store


def reset_store() -> None:
    global _store
    with _store_lock:
        store, _store = _store, None
    if store is not None:
        store.release_connection()
