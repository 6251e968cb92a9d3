"""
Key/value site settings (RSS channel metadata and similar).
"""
from __future__ import annotations

import os
from typing import Dict

from core.db.base import fetch_all, fetch_one, get_conn, utcnow_iso


def site_defaults() -> Dict[str, str]:
    return {
        "site_name": os.getenv("SITE_NAME", "Personal Blog"),
        "site_description": os.getenv("SITE_DESCRIPTION", "Latest blog posts"),
        "contact_email": os.getenv("CONTACT_EMAIL", "contact@example.com"),
    }


def set_site_setting(key: str, value: str | None, is_public: bool = True) -> None:
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO site_settings (key, value, is_public, updated_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT (key) DO UPDATE SET value = excluded.value, is_public = excluded.is_public,
            updated_at = excluded.updated_at
        """,
        (key, value, 1 if is_public else 0, now),
    )
    conn.commit()
    conn.close()


def get_site_setting(key: str) -> str | None:
    row = fetch_one("SELECT value FROM site_settings WHERE key = ?", (key,))
    return row["value"] if row else None


def get_public_site_settings() -> Dict[str, str]:
    """Environment defaults overlaid with public rows from site_settings."""
    settings = site_defaults()
    for row in fetch_all("SELECT key, value FROM site_settings WHERE is_public = 1"):
        if row["value"] is not None:
            settings[row["key"]] = row["value"]
    return settings


__all__ = ["site_defaults", "set_site_setting", "get_site_setting", "get_public_site_settings"]
