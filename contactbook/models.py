from __future__ import annotations

import datetime as dt
import string
from dataclasses import dataclass, field
from sqlite3 import Row
from typing import Any, Optional

# SQLite NOCASE 只折叠 ASCII 字母
_ASCII_FOLD = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def _parse_ts(value: Any) -> Optional[dt.datetime]:
    # SQLite CURRENT_TIMESTAMP -> 'YYYY-MM-DD HH:MM:SS' (UTC)
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value
    return dt.datetime.fromisoformat(str(value))


@dataclass(eq=False)
class Contact:
    """A single contact. Identity is the email, compared case-insensitively."""

    name: str
    phone: str
    email: str
    created_at: Optional[dt.datetime] = field(default=None, compare=False)
    updated_at: Optional[dt.datetime] = field(default=None, compare=False)

    @classmethod
    def from_row(cls, row: Row) -> "Contact":
        keys = row.keys()
        return cls(
            name=row["name"],
            phone=row["phone"],
            email=row["email"],
            created_at=_parse_ts(row["created_at"]) if "created_at" in keys else None,
            updated_at=_parse_ts(row["updated_at"]) if "updated_at" in keys else None,
        )

    @property
    def email_key(self) -> Optional[str]:
        return self.email.translate(_ASCII_FOLD) if self.email is not None else None

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Contact):
            return NotImplemented
        return self.email_key == other.email_key

    def __hash__(self) -> int:
        return hash(self.email_key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "created_at": self.created_at.isoformat(sep=" ") if self.created_at else None,
            "updated_at": self.updated_at.isoformat(sep=" ") if self.updated_at else None,
        }
