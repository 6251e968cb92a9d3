"""
Re-slug blog posts whose slug is empty or malformed.

Usage:
  python -m scripts.fix_blog_slugs [--dry-run]
"""
from __future__ import annotations

import argparse
import sys

from core.database import init_db, repair_post_slugs


def _short(title: str, width: int = 50) -> str:
    return title if len(title) <= width else title[:width] + "..."


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Repair invalid blog post slugs.")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    init_db()
    changes = repair_post_slugs(dry_run=args.dry_run)
    if not changes:
        print("All blog posts already have valid slugs.")
        return 0

    for change in changes:
        print(f"  Post {change['id']}: \"{_short(change['title'])}\" {change['old_slug']!r} -> {change['new_slug']!r}")
    verb = "Would update" if args.dry_run else "Updated"
    print(f"{verb} {len(changes)} post(s).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
