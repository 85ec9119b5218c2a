#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Contact book (SQLite)

Commands:
  init                Initialize the database (optionally add sample contacts)
  list                Show all contacts ordered by name
  search              Show contacts whose name, phone or email contains TERM
  add                 Add a contact (email must be unique, case-insensitive)
  edit                Edit the contact identified by its current email
  delete              Delete the contact with the given email
  clear               Delete every contact (requires --yes)
  count               Show the number of contacts
  exists              Check whether a contact with the given email exists
  export              Write all contacts to a CSV file
"""
from __future__ import annotations

import argparse
import logging
import sys

from pydantic import ValidationError

from .db import StoreManager, get_db_path
from .errors import DatabaseError
from .models import Contact
from .schemas import ContactForm, first_error
from .services.contact_svc import ContactRepository

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAIL = 1
EXIT_INVALID = 2


def _print_table(contacts: list[Contact]) -> None:
    if not contacts:
        print("(empty)")
        return
    w_name = max(len("Name"), *(len(c.name) for c in contacts))
    w_phone = max(len("Phone"), *(len(c.phone) for c in contacts))
    print(f"{'Name':<{w_name}}  {'Phone':<{w_phone}}  Email")
    for c in contacts:
        print(f"{c.name:<{w_name}}  {c.phone:<{w_phone}}  {c.email}")


def _validate(name, phone, email) -> Contact | None:
    try:
        return ContactForm(name=name, phone=phone, email=email).to_contact()
    except ValidationError as ve:
        print(f"Validation Error: {first_error(ve)}", file=sys.stderr)
        return None


# ---------------- Commands ----------------

def cmd_init(repo: ContactRepository, args) -> int:
    print(f"Database ready: {repo.store.db_path}")
    if args.seed:
        n = repo.seed_samples()
        print(f"Added {n} sample contact(s).")
    return EXIT_OK


def cmd_list(repo: ContactRepository, args) -> int:
    _print_table(repo.list_all())
    return EXIT_OK


def cmd_search(repo: ContactRepository, args) -> int:
    _print_table(repo.search(args.term))
    return EXIT_OK


def cmd_add(repo: ContactRepository, args) -> int:
    contact = _validate(args.name, args.phone, args.email)
    if contact is None:
        return EXIT_INVALID
    if not repo.insert(contact):
        print(f"A contact with email {contact.email} already exists.", file=sys.stderr)
        return EXIT_FAIL
    print(f"Added {contact.name} <{contact.email}>.")
    return EXIT_OK


def cmd_edit(repo: ContactRepository, args) -> int:
    current = repo.get(args.prior_email)
    if current is None:
        print(f"No contact with email {args.prior_email}.", file=sys.stderr)
        return EXIT_FAIL
    contact = _validate(
        args.name if args.name is not None else current.name,
        args.phone if args.phone is not None else current.phone,
        args.email if args.email is not None else current.email,
    )
    if contact is None:
        return EXIT_INVALID
    if not repo.update(contact, args.prior_email):
        print(
            f"Could not update {args.prior_email}: contact missing or {contact.email} already in use.",
            file=sys.stderr,
        )
        return EXIT_FAIL
    print(f"Updated {contact.name} <{contact.email}>.")
    return EXIT_OK


def cmd_delete(repo: ContactRepository, args) -> int:
    if not repo.delete(args.email):
        print(f"No contact with email {args.email}.", file=sys.stderr)
        return EXIT_FAIL
    print(f"Deleted {args.email}.")
    return EXIT_OK


def cmd_clear(repo: ContactRepository, args) -> int:
    if not args.yes:
        print("Refusing to delete all contacts without --yes.", file=sys.stderr)
        return EXIT_FAIL
    n = repo.delete_all()
    print(f"Deleted {n} contact(s).")
    return EXIT_OK


def cmd_count(repo: ContactRepository, args) -> int:
    print(f"Total contacts: {repo.count()}")
    return EXIT_OK


def cmd_exists(repo: ContactRepository, args) -> int:
    found = repo.exists(args.email)
    print("yes" if found else "no")
    return EXIT_OK if found else EXIT_FAIL


def cmd_export(repo: ContactRepository, args) -> int:
    n = repo.export_csv(args.path)
    print(f"Exported {n} contact(s) to {args.path}.")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="contactbook", description="Contact book (SQLite)")
    parser.add_argument("--config", default=None, help="YAML config with db_path")
    parser.add_argument("--db", default=None, help="database file (overrides config)")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers()

    p_init = sub.add_parser("init", help="initialize the database")
    p_init.add_argument("--seed", action="store_true", help="add sample contacts")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("list", help="list all contacts")
    p_list.set_defaults(func=cmd_list)

    p_search = sub.add_parser("search", help="search name / phone / email")
    p_search.add_argument("term")
    p_search.set_defaults(func=cmd_search)

    p_add = sub.add_parser("add", help="add a contact")
    p_add.add_argument("--name", required=True)
    p_add.add_argument("--phone", required=True)
    p_add.add_argument("--email", required=True)
    p_add.set_defaults(func=cmd_add)

    p_edit = sub.add_parser("edit", help="edit a contact by its current email")
    p_edit.add_argument("prior_email")
    p_edit.add_argument("--name")
    p_edit.add_argument("--phone")
    p_edit.add_argument("--email")
    p_edit.set_defaults(func=cmd_edit)

    p_del = sub.add_parser("delete", help="delete a contact")
    p_del.add_argument("email")
    p_del.set_defaults(func=cmd_delete)

    p_clear = sub.add_parser("clear", help="delete all contacts")
    p_clear.add_argument("--yes", action="store_true")
    p_clear.set_defaults(func=cmd_clear)

    p_count = sub.add_parser("count", help="number of contacts")
    p_count.set_defaults(func=cmd_count)

    p_exists = sub.add_parser("exists", help="check an email")
    p_exists.add_argument("email")
    p_exists.set_defaults(func=cmd_exists)

    p_exp = sub.add_parser("export", help="export contacts to CSV")
    p_exp.add_argument("path")
    p_exp.set_defaults(func=cmd_export)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_OK

    store = StoreManager(args.db or get_db_path(args.config))
    logger.debug(f"Using database {store.db_path}")
    try:
        # 无法建库则无法继续
        try:
            store.initialize_schema()
        except DatabaseError as e:
            print(f"Database Error: {e}", file=sys.stderr)
            return EXIT_FAIL
        repo = ContactRepository(store)
        try:
            return args.func(repo, args)
        except DatabaseError as e:
            print(f"Database Error: {e}", file=sys.stderr)
            return EXIT_FAIL
    finally:
        store.release_connection()


if __name__ == "__main__":
    sys.exit(main())
