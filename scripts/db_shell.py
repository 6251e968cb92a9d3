"""
Quick helper to run a query against the site database (SQLite by default,
Postgres when DATABASE_URL is set).

Usage:
  python -m scripts.db_shell                                  # list tables
  python -m scripts.db_shell "SELECT id, title FROM blog_posts"
"""
from __future__ import annotations

import sys

from dotenv import load_dotenv

load_dotenv(override=True)

from core.database import dialect, execute, fetch_all  # noqa: E402

_READ_PREFIXES = ("select", "with", "pragma", "explain")

_LIST_TABLES = {
    "sqlite": "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name",
    "postgres": "SELECT tablename AS name FROM pg_tables WHERE schemaname='public' ORDER BY tablename",
}


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else argv
    query = " ".join(args).strip() or _LIST_TABLES[dialect()]
    print(f"Using DB: {dialect()}", file=sys.stderr)

    try:
        if query.lower().startswith(_READ_PREFIXES):
            for row in fetch_all(query):
                print(row)
        else:
            print(f"OK ({execute(query)} row(s) affected)")
    except Exception as exc:
        print(f"Error running query: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
