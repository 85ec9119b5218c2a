from __future__ import annotations

from sqlite3 import Connection

_COLUMNS = "name, phone, email, created_at, updated_at"
_ORDER = "ORDER BY name COLLATE NOCASE, email"

LIST_ALL_SQL = f"SELECT {_COLUMNS} FROM contacts {_ORDER}"


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_all(conn: Connection):
    return conn.execute(LIST_ALL_SQL).fetchall()


def search(conn: Connection, term: str):
    sql = (
        f"SELECT {_COLUMNS} FROM contacts "
        "WHERE name LIKE :q ESCAPE '\\' OR phone LIKE :q ESCAPE '\\' OR email LIKE :q ESCAPE '\\' "
        f"{_ORDER}"
    )
    return conn.execute(sql, {"q": f"%{escape_like(term)}%"}).fetchall()


def get_one(conn: Connection, email: str):
    return conn.execute(
        f"SELECT {_COLUMNS} FROM contacts WHERE email=?", (email,)
    ).fetchone()


def insert(conn: Connection, name: str, phone: str, email: str) -> int:
    cur = conn.execute(
        "INSERT INTO contacts(name, phone, email, updated_at) VALUES(?,?,?,CURRENT_TIMESTAMP)",
        (name, phone, email),
    )
    return int(cur.lastrowid)


def update(conn: Connection, prior_email: str, name: str, phone: str, email: str) -> int:
    cur = conn.execute(
        "UPDATE contacts SET name=?, phone=?, email=?, updated_at=CURRENT_TIMESTAMP WHERE email=?",
        (name, phone, email, prior_email),
    )
    return cur.rowcount


def delete(conn: Connection, email: str) -> int:
    cur = conn.execute("DELETE FROM contacts WHERE email=?", (email,))
    return cur.rowcount


def delete_all(conn: Connection) -> int:
    cur = conn.execute("DELETE FROM contacts")
    return cur.rowcount


def count_all(conn: Connection) -> int:
    return int(conn.execute("SELECT COUNT(1) AS c FROM contacts").fetchone()["c"])


def exists(conn: Connection, email: str) -> bool:
    row = conn.execute("SELECT 1 FROM contacts WHERE email=? LIMIT 1", (email,)).fetchone()
    return row is not None
