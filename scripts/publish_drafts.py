"""
Publish every draft blog post and backfill missing published_at values.

Usage:
  python -m scripts.publish_drafts            # publish drafts
  python -m scripts.publish_drafts --dry-run  # only list them
"""
from __future__ import annotations

import argparse
import sys

from core.database import backfill_published_at, bulk_update_status, fetch_all, init_db


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Publish all draft blog posts.")
    parser.add_argument("--dry-run", action="store_true", help="List drafts without changing anything")
    args = parser.parse_args(argv)

    init_db()
    drafts = fetch_all("SELECT id, title FROM blog_posts WHERE status = 'draft' ORDER BY id")
    print(f"Found {len(drafts)} draft post(s)")
    for post in drafts:
        print(f"  - {post['id']}: {post['title']}")

    if args.dry_run:
        print("[dry-run] nothing changed.")
        return 0

    published = bulk_update_status([p["id"] for p in drafts], "published") if drafts else 0
    backfilled = backfill_published_at()
    print(f"Published {published} post(s); backfilled published_at on {backfilled} post(s).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
