"""
Admin login sessions with a sliding inactivity timeout.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.db.base import fetch_one, get_conn

SESSION_TIMEOUT_MINUTES = 60  # inactivity timeout


def _now() -> datetime:
    return datetime.utcnow().replace(microsecond=0)


def _expiry_from(now: datetime) -> str:
    return (now + timedelta(minutes=SESSION_TIMEOUT_MINUTES)).isoformat()


def create_session(user_id: int) -> str:
    """Create a login session for user_id and return its token."""
    token = secrets.token_urlsafe(32)
    now = _now()
    with get_conn() as conn:
        conn.cursor().execute(
            """
            INSERT INTO sessions (id, user_id, created_at, last_seen_at, expires_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (token, user_id, now.isoformat(), now.isoformat(), _expiry_from(now)),
        )
    return token


def delete_session(session_id: str) -> None:
    if not session_id:
        return
    with get_conn() as conn:
        conn.cursor().execute("DELETE FROM sessions WHERE id = ?", (session_id,))


def get_session(session_id: str) -> Optional[Dict]:
    """
    Look up a session by token. Missing, malformed or expired sessions return None;
    expired ones are deleted on the way out.
    """
    if not session_id:
        return None
    row = fetch_one(
        "SELECT id, user_id, created_at, last_seen_at, expires_at FROM sessions WHERE id = ?",
        (session_id,),
    )
    if not row:
        return None

    try:
        expires_at = datetime.fromisoformat(str(row["expires_at"]))
    except ValueError:
        delete_session(session_id)
        return None
    if expires_at < _now():
        delete_session(session_id)
        return None
    return row


def touch_session(session_id: str) -> None:
    """Push the expiry forward from now."""
    if not session_id:
        return
    now = _now()
    with get_conn() as conn:
        conn.cursor().execute(
            "UPDATE sessions SET last_seen_at = ?, expires_at = ? WHERE id = ?",
            (now.isoformat(), _expiry_from(now), session_id),
        )


def delete_expired_sessions() -> int:
    """Drop every session whose expiry is in the past. Returns how many were removed."""
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute("DELETE FROM sessions WHERE expires_at < ?", (_now().isoformat(),))
        return cur.rowcount


__all__ = [
    "SESSION_TIMEOUT_MINUTES",
    "create_session",
    "delete_expired_sessions",
    "delete_session",
    "get_session",
    "touch_session",
]
