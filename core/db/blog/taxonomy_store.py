"""
Blog categories and tags.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from core.content import slugify
from core.db.base import fetch_all, fetch_one, get_conn, utcnow_iso

log = logging.getLogger("site.blog")


def create_category(
    name: str,
    slug: str | None = None,
    description: str | None = None,
    color: str | None = None,
) -> Dict:
    name = (name or "").strip()
    if not name:
        raise ValueError("Category name is required")
    slug = slugify(slug or name)
    if not slug:
        raise ValueError("Category slug is empty")
    if get_category_by_slug(slug, active_only=False):
        raise ValueError(f"Category '{slug}' already exists")

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO blog_categories (name, slug, description, color, post_count, is_active, created_at)
        VALUES (?, ?, ?, ?, 0, 1, ?)
        RETURNING id
        """,
        (name, slug, description, color, utcnow_iso()),
    )
    category_id = cur.fetchone()["id"]
    conn.commit()
    conn.close()
    log.info("Created blog category %s (%s)", category_id, slug)
    return get_category_by_slug(slug, active_only=False)


def create_tag(name: str, slug: str | None = None) -> Dict:
    name = (name or "").strip()
    if not name:
        raise ValueError("Tag name is required")
    slug = slugify(slug or name)
    if not slug:
        raise ValueError("Tag slug is empty")
    if get_tag_by_slug(slug):
        raise ValueError(f"Tag '{slug}' already exists")

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "INSERT INTO blog_tags (name, slug, post_count, created_at) VALUES (?, ?, 0, ?) RETURNING id",
        (name, slug, utcnow_iso()),
    )
    cur.fetchone()
    conn.commit()
    conn.close()
    return get_tag_by_slug(slug)


def get_or_create_tag(name: str) -> Dict:
    existing = get_tag_by_slug(slugify(name))
    return existing or create_tag(name)


def list_categories(active_only: bool = True) -> List[Dict]:
    sql = """
        SELECT id, name, slug, description, color, post_count, is_active, created_at
        FROM blog_categories
    """
    if active_only:
        sql += " WHERE is_active = 1"
    sql += " ORDER BY post_count DESC, name ASC"
    return fetch_all(sql)


def list_tags(used_only: bool = False) -> List[Dict]:
    sql = "SELECT id, name, slug, post_count, created_at FROM blog_tags"
    if used_only:
        sql += " WHERE post_count > 0"
    sql += " ORDER BY post_count DESC, name ASC"
    return fetch_all(sql)


def get_category_by_slug(slug: str, active_only: bool = True) -> Optional[Dict]:
    sql = """
        SELECT id, name, slug, description, color, post_count, is_active, created_at
        FROM blog_categories
        WHERE slug = ?
    """
    if active_only:
        sql += " AND is_active = 1"
    return fetch_one(sql, (slug,))


def get_tag_by_slug(slug: str) -> Optional[Dict]:
    return fetch_one(
        "SELECT id, name, slug, post_count, created_at FROM blog_tags WHERE slug = ?",
        (slug,),
    )


def recount_taxonomy(cur=None) -> None:
    """Recompute post_count on every category and tag from published posts."""
    own_conn = None
    if cur is None:
        own_conn = get_conn()
        cur = own_conn.cursor()

    cur.execute(
        """
        UPDATE blog_categories SET post_count = (
            SELECT COUNT(*)
            FROM blog_post_categories pc
            JOIN blog_posts p ON p.id = pc.post_id
            WHERE pc.category_id = blog_categories.id AND p.status = 'published'
        )
        """
    )
    cur.execute(
        """
        UPDATE blog_tags SET post_count = (
            SELECT COUNT(*)
            FROM blog_post_tags pt
            JOIN blog_posts p ON p.id = pt.post_id
            WHERE pt.tag_id = blog_tags.id AND p.status = 'published'
        )
        """
    )

    if own_conn is not None:
        own_conn.commit()
        own_conn.close()


__all__ = [
    "create_category",
    "create_tag",
    "get_or_create_tag",
    "list_categories",
    "list_tags",
    "get_category_by_slug",
    "get_tag_by_slug",
    "recount_taxonomy",
]
