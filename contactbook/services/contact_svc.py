from __future__ import annotations

import logging
import os
import sqlite3
from typing import Optional

import pandas as pd

from ..db import StoreManager, get_store
from ..errors import DatabaseError
from ..models import Contact
from ..repository import contact_repo

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["name", "phone", "email", "created_at", "updated_at"]

SAMPLE_CONTACTS = [
    Contact("John Doe", "555-0123", "john.doe@email.com"),
    Contact("Jane Smith", "555-0456", "jane.smith@email.com"),
    Contact("Bob Johnson", "555-0789", "bob.johnson@email.com"),
]


def is_unique_violation(e: sqlite3.IntegrityError) -> bool:
    """UNIQUE 约束冲突（按扩展错误码判断，不匹配错误文本）"""
    return getattr(e, "sqlite_errorcode", None) == sqlite3.SQLITE_CONSTRAINT_UNIQUE


def _fail(message: str, e: BaseException) -> DatabaseError:
    logger.error(f"{message}: {e}")
    return DatabaseError(message, e)


class ContactRepository:
    """
    联系人 CRUD / 搜索门面。

    - 重复邮箱、记录不存在：返回 False（正常业务结果）
    - 其他存储错误：抛出 DatabaseError
    邮箱匹配统一不区分大小写（列排序规则 NOCASE）。
    """

    def __init__(self, store: StoreManager | None = None):
        self._store = store or get_store()

    @property
    def store(self) -> StoreManager:
        return self._store

    def list_all(self) -> list[Contact]:
        try:
            with self._store.connection() as conn:
                rows = contact_repo.list_all(conn)
        except sqlite3.Error as e:
            raise _fail("Failed to retrieve contacts from database", e) from e
        return [Contact.from_row(r) for r in rows]

    def search(self, term: Optional[str]) -> list[Contact]:
        if not term:
            return self.list_all()
        try:
            with self._store.connection() as conn:
                rows = contact_repo.search(conn, term)
        except sqlite3.Error as e:
            raise _fail("Failed to search contacts in database", e) from e
        return [Contact.from_row(r) for r in rows]

    def get(self, email: str) -> Optional[Contact]:
        try:
            with self._store.connection() as conn:
                row = contact_repo.get_one(conn, email)
        except sqlite3.Error as e:
            raise _fail("Failed to load contact from database", e) from e
        return Contact.from_row(row) if row else None

    def insert(self, contact: Contact) -> bool:
        try:
            with self._store.connection() as conn:
                contact_repo.insert(conn, contact.name, contact.phone, contact.email)
        except sqlite3.IntegrityError as e:
            if is_unique_violation(e):
                logger.warning(f"Duplicate email on insert: {contact.email}")
                return False
            raise _fail("Failed to insert contact into database", e) from e
        except sqlite3.Error as e:
            raise _fail("Failed to insert contact into database", e) from e
        logger.debug(f"Inserted {contact}")
        return True

    def update(self, contact: Contact, prior_email: str) -> bool:
        try:
            with self._store.connection() as conn:
                changed = contact_repo.update(conn, prior_email, contact.name, contact.phone, contact.email)
        except sqlite3.IntegrityError as e:
            if is_unique_violation(e):
                logger.warning(f"Email collision on update {prior_email} -> {contact.email}")
                return False
            raise _fail("Failed to update contact in database", e) from e
        except sqlite3.Error as e:
            raise _fail("Failed to update contact in database", e) from e
        if changed == 0:
            logger.debug(f"No contact matched {prior_email} for update")
            return False
        logger.debug(f"Updated {prior_email} -> {contact}")
        return True

    def delete(self, email: str) -> bool:
        try:
            with self._store.connection() as conn:
                removed = contact_repo.delete(conn, email)
        except sqlite3.Error as e:
            raise _fail("Failed to delete contact from database", e) from e
        logger.debug(f"Delete {email}: {removed} row(s)")
        return removed > 0

    def delete_all(self) -> int:
        try:
            with self._store.connection() as conn:
                removed = contact_repo.delete_all(conn)
        except sqlite3.Error as e:
            raise _fail("Failed to delete all contacts from database", e) from e
        logger.info(f"Cleared {removed} contact(s)")
        return removed

    def count(self) -> int:
        try:
            with self._store.connection() as conn:
                return contact_repo.count_all(conn)
        except sqlite3.Error as e:
            raise _fail("Failed to count contacts in database", e) from e

    def exists(self, email: str) -> bool:
        try:
            with self._store.connection() as conn:
                return contact_repo.exists(conn, email)
        except sqlite3.Error as e:
            raise _fail("Failed to check if contact exists", e) from e

    def seed_samples(self) -> int:
        inserted = 0
        for c in SAMPLE_CONTACTS:
            if self.insert(Contact(c.name, c.phone, c.email)):
                inserted += 1
        return inserted

    def export_csv(self, path: str) -> int:
        try:
            with self._store.connection() as conn:
                df = pd.read_sql_query(contact_repo.LIST_ALL_SQL, conn)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise _fail("Failed to export contacts", e) from e
        df = df[EXPORT_COLUMNS]
        out_dir = os.path.dirname(path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        df.to_csv(path, index=False, encoding="utf-8-sig")
        logger.info(f"Exported {len(df)} contact(s) to {path}")
        return len(df)
