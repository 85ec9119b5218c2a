from __future__ import annotations

import re

from pydantic import BaseModel, field_validator

from .models import Contact

_PHONE_RE = re.compile(r"^[0-9+()\-.\s]+$")


class ContactForm(BaseModel):
    """Form input for add / edit. Values are trimmed before validation."""

    name: str
    phone: str
    email: str

    @field_validator("name", "phone", "email", mode="before")
    @classmethod
    def _strip_required(cls, v):
        if v is None:
            raise ValueError("All fields are required.")
        v = str(v).strip()
        if not v:
            raise ValueError("All fields are required.")
        return v

    @field_validator("email")
    @classmethod
    def _check_email(cls, v: str) -> str:
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Please enter a valid email address.")
        return v

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, v: str) -> str:
        if not _PHONE_RE.match(v) or not any(ch.isdigit() for ch in v):
            raise ValueError("Please enter a valid phone number.")
        return v

    def to_contact(self) -> Contact:
        return Contact(name=self.name, phone=self.phone, email=self.email)


def first_error(err) -> str:
    """Human-readable message of the first pydantic validation error."""
    errors = err.errors()
    if not errors:
        return str(err)
    msg = errors[0].get("msg", "")
    # pydantic 前缀 "Value error, "
    return msg.split(", ", 1)[1] if msg.startswith("Value error, ") else msg
