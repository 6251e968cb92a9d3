"""
Admin user accounts.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional

from core.db.base import get_conn
from core.db.users.auth import hash_password

log = logging.getLogger("site.users")

_USER_COLUMNS = "id, email, password_hash, display_name, role, active, last_login_at, created_at"


def create_user(
    email: str,
    raw_password: str,
    role: str = "admin",
    display_name: str | None = None,
) -> int:
    conn = get_conn()
    cur = conn.cursor()
    now = datetime.utcnow().isoformat(timespec="seconds")

    cur.execute(
        """
        INSERT INTO users (email, password_hash, display_name, role, active, created_at)
        VALUES (?, ?, ?, ?, 1, ?)
        RETURNING id
        """,
        (email.strip().lower(), hash_password(raw_password), display_name, role, now),
    )
    row = cur.fetchone()
    user_id = int(row["id"]) if row else 0

    conn.commit()
    conn.close()
    log.info("Created user id=%s role=%s", user_id, role)
    return user_id


def get_user_by_email(email: str) -> Dict | None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?",
        ((email or "").strip().lower(),),
    )
    row = cur.fetchone()
    conn.close()
    return row


def get_user_by_id(user_id: int) -> Optional[Dict]:
    """Look up a user by numeric id. Returns dict or None."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,))
    row = cur.fetchone()
    conn.close()
    return row


def list_users() -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT id, email, display_name, role, active, last_login_at, created_at FROM users ORDER BY id")
    rows = cur.fetchall()
    conn.close()
    return rows


def update_user_password(user_id: int, raw_password: str) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE users SET password_hash=? WHERE id=?",
        (hash_password(raw_password), user_id),
    )
    conn.commit()
    conn.close()


def update_last_login(user_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE users SET last_login_at=? WHERE id=?",
        (datetime.utcnow().isoformat(timespec="seconds"), user_id),
    )
    conn.commit()
    conn.close()


__all__ = [
    "create_user",
    "get_user_by_email",
    "get_user_by_id",
    "list_users",
    "update_user_password",
    "update_last_login",
]
