#!/usr/bin/env python3
"""
Create an administrator or reset an administrator's password.

Passwords are stored as PBKDF2-HMAC-SHA256 hashes ("salthex$hashhex");
this script never reads or reveals existing passwords.

Usage:
    python manage_admin.py create --username admin
    python manage_admin.py reset-password --username admin --password "NewStrongPass!234"
    python manage_admin.py --db ./jubilee.db create --username admin

If --password is omitted, you will be prompted to enter it securely.
"""

import argparse
import asyncio
import getpass
import sys

from jubilee_api.app.core.config import settings
from jubilee_api.app.core.db import get_database_path, init_db
from jubilee_api.app.core.exceptions import AppError
from jubilee_api.app.services.admin_auth_service import AdminAuthService


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Manage Silver Jubilee admin accounts (SQLite).")
    ap.add_argument("--db", help="Path to SQLite DB file (defaults to DATABASE_URL)")
    sub = ap.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a new admin")
    create.add_argument("--username", required=True)
    create.add_argument("--password", help="Password. If omitted, you'll be prompted securely.")

    reset = sub.add_parser("reset-password", help="Set a new password for an existing admin")
    reset.add_argument("--username", required=True)
    reset.add_argument("--password", help="New password. If omitted, you'll be prompted securely.")
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.db:
        settings.database_url = args.db
    init_db()

    password = args.password or getpass.getpass("Enter password: ")
    if not password:
        print("[!] Empty password is not allowed.", file=sys.stderr)
        return 1

    try:
        if args.command == "create":
            admin = asyncio.run(AdminAuthService.create_admin(args.username, password))
            print(f"[+] Admin created: {admin.username} (id {admin.id}) in {get_database_path()}")
        else:
            asyncio.run(AdminAuthService.reset_password(args.username, password))
            print(f"[+] Password updated for admin: {args.username}")
    except AppError as exc:
        print(f"[!] {exc.message}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
