"""
Create an admin user, or reset the password of an existing one.

Usage:
  python -m scripts.create_admin_user admin@example.com --name "Site Owner"
  (the password is prompted for, or read from ADMIN_PASSWORD)
"""
from __future__ import annotations

import argparse
import getpass
import os
import sys

from core.database import create_user, get_user_by_email, init_db, update_user_password

MIN_PASSWORD_LENGTH = 8


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or update an admin user.")
    parser.add_argument("email")
    parser.add_argument("--name", default=None, help="Display name")
    args = parser.parse_args(argv)

    password = os.getenv("ADMIN_PASSWORD") or getpass.getpass("Password: ")
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        return 1

    init_db()
    existing = get_user_by_email(args.email)
    if existing:
        update_user_password(existing["id"], password)
        print(f"Password updated for {existing['email']} (id={existing['id']}).")
        return 0

    user_id = create_user(args.email, password, role="admin", display_name=args.name)
    print(f"Created admin user {args.email.lower()} (id={user_id}).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
