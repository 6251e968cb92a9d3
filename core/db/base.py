"""
Low-level database helpers.

SQLite (file at DATABASE_PATH) is the default; a postgres:// DATABASE_URL
switches every connection to Postgres through psycopg. Queries are always
written with `?` placeholders.
"""
from __future__ import annotations

import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Iterable

try:
    import psycopg
    from psycopg.rows import dict_row
except Exception:  # pragma: no cover - optional in SQLite-only mode
    psycopg = None
    dict_row = None


def _resolve_database_url() -> str | None:
    url = os.getenv("DATABASE_URL")
    if not url:
        return None
    if url.startswith("postgres://") or url.startswith("postgresql://"):
        return url
    raise RuntimeError("DATABASE_URL must start with postgres:// or postgresql://")


database_url = _resolve_database_url()
database_path = Path(os.getenv("DATABASE_PATH", "site.db"))


def dialect() -> str:
    return "postgres" if database_url else "sqlite"


def _convert_qmarks(sql: str) -> str:
    if "?" not in sql:
        return sql
    return sql.replace("?", "%s")


class _CursorWrapper:
    def __init__(self, cursor, dialect: str):
        self._cursor = cursor
        self._dialect = dialect

    def execute(self, sql: str, params: Iterable | None = None):
        if self._dialect == "postgres":
            sql = _convert_qmarks(sql)
        if params is None:
            return self._cursor.execute(sql)
        return self._cursor.execute(sql, tuple(params))

    def executemany(self, sql: str, seq_of_params: Iterable):
        if self._dialect == "postgres":
            sql = _convert_qmarks(sql)
        return self._cursor.executemany(sql, seq_of_params)

    def fetchone(self):
        row = self._cursor.fetchone()
        return dict(row) if row is not None else None

    def fetchall(self):
        return [dict(r) for r in self._cursor.fetchall()]

    def __iter__(self):
        return (dict(r) for r in self._cursor)

    @property
    def rowcount(self):
        return getattr(self._cursor, "rowcount", 0)


class _ConnWrapper:
    def __init__(self, conn, dialect: str):
        self._conn = conn
        self.dialect = dialect

    def cursor(self):
        return _CursorWrapper(self._conn.cursor(), self.dialect)

    def commit(self):
        return self._conn.commit()

    def rollback(self):
        return self._conn.rollback()

    def close(self):
        return self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        self.close()
        return False


def get_conn():
    """
    Return a DB connection for the configured backend.
    Rows come back as plain dicts from both backends.
    """
    if database_url:
        if psycopg is None:
            raise RuntimeError("psycopg is required when DATABASE_URL points at Postgres")
        conn = psycopg.connect(database_url, row_factory=dict_row)
        return _ConnWrapper(conn, "postgres")

    conn = sqlite3.connect(database_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return _ConnWrapper(conn, "sqlite")


def fetch_all(sql: str, params: Iterable | None = None) -> list[dict]:
    """Run a read query on a short-lived connection."""
    conn = get_conn()
    try:
        cur = conn.cursor()
        cur.execute(sql, params)
        return cur.fetchall()
    finally:
        conn.close()


def fetch_one(sql: str, params: Iterable | None = None) -> dict | None:
    conn = get_conn()
    try:
        cur = conn.cursor()
        cur.execute(sql, params)
        return cur.fetchone()
    finally:
        conn.close()


def fetch_count(sql: str, params: Iterable | None = None) -> int:
    """Run a `SELECT COUNT(...) AS count` query and return the integer."""
    row = fetch_one(sql, params)
    return int(row["count"]) if row and row.get("count") is not None else 0


def execute(sql: str, params: Iterable | None = None) -> int:
    """Run a single write statement and return the affected row count."""
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(sql, params)
        return cur.rowcount


def placeholders(values: Iterable) -> str:
    return ",".join("?" for _ in values)


def utcnow_iso() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")


def check_ids_exist(cur, table: str, ids: Iterable, label: str) -> None:
    """Raise ValueError naming every id in `ids` with no row in `table`."""
    ids = list(ids)
    if not ids:
        return
    cur.execute(f"SELECT id FROM {table} WHERE id IN ({placeholders(ids)})", ids)
    found = {r["id"] for r in cur.fetchall()}
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValueError(f"Unknown {label} id(s): {', '.join(str(m) for m in missing)}")
