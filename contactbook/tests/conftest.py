import os
import sys
import sqlite3
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


@pytest.fixture(scope="session")
def tmp_db_path(tmp_path_factory):
    path = tmp_path_factory.mktemp("db") / "contacts_test.db"
    # Point the store to this temp DB
    os.environ["CONTACTS_DB_PATH"] = str(path)
    return str(path)


@pytest.fixture()
def store(tmp_db_path):
    from contactbook.db import StoreManager
    s = StoreManager(tmp_db_path)
    s.initialize_schema()
    yield s
    s.release_connection()


@pytest.fixture()
def repo(store):
    from contactbook.services.contact_svc import ContactRepository
    return ContactRepository(store)


@pytest.fixture(autouse=True)
def _clean_db(tmp_db_path):
    # Safety: ensure we only ever wipe the temp DB, never a real one
    assert os.environ.get("CONTACTS_DB_PATH") == tmp_db_path, "Refusing to clean non-temp DB"
    conn = sqlite3.connect(tmp_db_path)
    try:
        try:
            conn.execute("DELETE FROM contacts")
        except sqlite3.OperationalError:
            # schema not created yet
            pass
        conn.commit()
    finally:
        conn.close()
    yield
