"""
Blog post storage: CRUD, listing, search, related posts and archive.
"""
from __future__ import annotations

import calendar
import logging
import re
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from markupsafe import escape

from core.content import process_content, slugify, strip_markdown
from core.db.base import check_ids_exist, fetch_all, fetch_count, fetch_one, get_conn, placeholders, utcnow_iso
from core.db.blog.taxonomy_store import get_category_by_slug, get_tag_by_slug, recount_taxonomy
from core.db.pagination import clamp_page_args, empty_page, offset_for, paginate

log = logging.getLogger("site.blog")

POST_STATUSES = ("draft", "published", "archived")
SORT_COLUMNS = ("published_at", "created_at", "updated_at", "title", "view_count")

_SUMMARY_COLUMNS = """
    p.id, p.title, p.slug, p.excerpt, p.status, p.featured, p.featured_image_url,
    p.meta_title, p.meta_description, p.meta_keywords, p.reading_time, p.word_count,
    p.view_count, p.author_id, p.published_at, p.created_at, p.updated_at,
    COALESCE(u.display_name, u.email) AS author_name
"""
_FULL_COLUMNS = _SUMMARY_COLUMNS + ", p.content, p.content_html, u.email AS author_email"
_FROM = " FROM blog_posts p LEFT JOIN users u ON u.id = p.author_id "

# Fields a caller may set directly on update; content-derived ones are computed.
_EDITABLE_FIELDS = (
    "title",
    "excerpt",
    "featured_image_url",
    "meta_title",
    "meta_description",
    "meta_keywords",
)


def _normalize(row: Dict) -> Dict:
    row["featured"] = bool(row.get("featured"))
    return row


def _ids(values: Iterable | None) -> List[int]:
    if not values:
        return []
    out = []
    for v in values:
        iv = int(v)
        if iv not in out:
            out.append(iv)
    return out


def _unique_slug(cur, base: str, exclude_id: int | None = None) -> str:
    base = base or "post"
    candidate = base
    n = 1
    while True:
        if exclude_id is None:
            cur.execute("SELECT id FROM blog_posts WHERE slug = ?", (candidate,))
        else:
            cur.execute("SELECT id FROM blog_posts WHERE slug = ? AND id != ?", (candidate, exclude_id))
        if cur.fetchone() is None:
            return candidate
        n += 1
        candidate = f"{base}-{n}"


def _replace_links(cur, post_id: int, category_ids: List[int] | None, tag_ids: List[int] | None) -> None:
    if category_ids is not None:
        cur.execute("DELETE FROM blog_post_categories WHERE post_id = ?", (post_id,))
        for cid in category_ids:
            cur.execute(
                "INSERT INTO blog_post_categories (post_id, category_id) VALUES (?, ?)",
                (post_id, cid),
            )
    if tag_ids is not None:
        cur.execute("DELETE FROM blog_post_tags WHERE post_id = ?", (post_id,))
        for tid in tag_ids:
            cur.execute(
                "INSERT INTO blog_post_tags (post_id, tag_id) VALUES (?, ?)",
                (post_id, tid),
            )


def _keywords_text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v).strip() for v in value if str(v).strip())
    return str(value)


def attach_taxonomy(posts: List[Dict]) -> List[Dict]:
    """Add `categories` and `tags` lists to each post dict in place."""
    if not posts:
        return posts
    ids = [p["id"] for p in posts]
    marks = placeholders(ids)
    categories = fetch_all(
        f"""
        SELECT pc.post_id, c.id, c.name, c.slug, c.color
        FROM blog_post_categories pc
        JOIN blog_categories c ON c.id = pc.category_id
        WHERE pc.post_id IN ({marks})
        ORDER BY c.name
        """,
        ids,
    )
    tags = fetch_all(
        f"""
        SELECT pt.post_id, t.id, t.name, t.slug
        FROM blog_post_tags pt
        JOIN blog_tags t ON t.id = pt.tag_id
        WHERE pt.post_id IN ({marks})
        ORDER BY t.name
        """,
        ids,
    )
    by_id = {p["id"]: p for p in posts}
    for p in posts:
        p["categories"] = []
        p["tags"] = []
    for row in categories:
        post_id = row.pop("post_id")
        by_id[post_id]["categories"].append(row)
    for row in tags:
        post_id = row.pop("post_id")
        by_id[post_id]["tags"].append(row)
    return posts


def create_post(data: Dict, author_id: int | None = None) -> Dict:
    title = (data.get("title") or "").strip()
    content = data.get("content") or ""
    if not title:
        raise ValueError("title is required")
    if not content.strip():
        raise ValueError("content is required")

    status = data.get("status") or "draft"
    if status not in POST_STATUSES:
        raise ValueError(f"Invalid status '{status}'")

    category_ids = _ids(data.get("category_ids"))
    tag_ids = _ids(data.get("tag_ids"))
    processed = process_content(content, title)
    now = utcnow_iso()

    published_at = data.get("published_at")
    if status == "published" and not published_at:
        published_at = now

    meta_keywords = _keywords_text(data.get("meta_keywords"))
    if meta_keywords is None:
        meta_keywords = ", ".join(processed.keywords)

    with get_conn() as conn:
        cur = conn.cursor()
        check_ids_exist(cur, "blog_categories", category_ids, "category")
        check_ids_exist(cur, "blog_tags", tag_ids, "tag")
        slug = _unique_slug(cur, slugify(data.get("slug") or title))
        cur.execute(
            """
            INSERT INTO blog_posts (
                title, slug, excerpt, content, content_html, status, featured,
                featured_image_url, meta_title, meta_description, meta_keywords,
                reading_time, word_count, view_count, author_id, published_at,
                created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                title,
                slug,
                data.get("excerpt") or processed.excerpt,
                content,
                processed.html,
                status,
                1 if data.get("featured") else 0,
                data.get("featured_image_url"),
                data.get("meta_title") or title,
                data.get("meta_description") or processed.meta_description,
                meta_keywords,
                processed.reading_time,
                processed.word_count,
                author_id,
                published_at,
                now,
                now,
            ),
        )
        post_id = cur.fetchone()["id"]
        _replace_links(cur, post_id, category_ids, tag_ids)
        recount_taxonomy(cur)

    log.info("Created blog post %s (%s, %s)", post_id, slug, status)
    return get_post_by_id(post_id)


def update_post(post_id: int, changes: Dict) -> Optional[Dict]:
    existing = fetch_one("SELECT * FROM blog_posts WHERE id = ?", (post_id,))
    if not existing:
        return None

    sets: Dict[str, object] = {}
    for key in _EDITABLE_FIELDS:
        if key in changes:
            sets[key] = changes[key]
    if "meta_keywords" in sets:
        sets["meta_keywords"] = _keywords_text(sets["meta_keywords"])
    if "featured" in changes:
        sets["featured"] = 1 if changes["featured"] else 0

    if "title" in sets and not (sets["title"] or "").strip():
        raise ValueError("title is required")

    if "content" in changes:
        content = changes["content"] or ""
        if not content.strip():
            raise ValueError("content is required")
        processed = process_content(content, sets.get("title") or existing["title"])
        sets["content"] = content
        sets["content_html"] = processed.html
        sets["reading_time"] = processed.reading_time
        sets["word_count"] = processed.word_count
        if "excerpt" not in changes:
            sets["excerpt"] = processed.excerpt

    if "status" in changes:
        status = changes["status"]
        if status not in POST_STATUSES:
            raise ValueError(f"Invalid status '{status}'")
        sets["status"] = status
        if status == "published" and not existing.get("published_at") and not changes.get("published_at"):
            sets["published_at"] = utcnow_iso()
    if changes.get("published_at"):
        sets["published_at"] = changes["published_at"]

    category_ids = _ids(changes["category_ids"]) if "category_ids" in changes else None
    tag_ids = _ids(changes["tag_ids"]) if "tag_ids" in changes else None

    with get_conn() as conn:
        cur = conn.cursor()
        if category_ids:
            check_ids_exist(cur, "blog_categories", category_ids, "category")
        if tag_ids:
            check_ids_exist(cur, "blog_tags", tag_ids, "tag")
        if "slug" in changes:
            sets["slug"] = _unique_slug(cur, slugify(changes["slug"] or sets.get("title") or existing["title"]), exclude_id=post_id)

        sets["updated_at"] = utcnow_iso()
        assignments = ", ".join(f"{col} = ?" for col in sets)
        cur.execute(f"UPDATE blog_posts SET {assignments} WHERE id = ?", list(sets.values()) + [post_id])
        _replace_links(cur, post_id, category_ids, tag_ids)
        recount_taxonomy(cur)

    log.info("Updated blog post %s (%s)", post_id, ", ".join(sorted(sets)))
    return get_post_by_id(post_id)


def delete_post(post_id: int) -> bool:
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute("DELETE FROM blog_posts WHERE id = ?", (post_id,))
        deleted = cur.rowcount > 0
        recount_taxonomy(cur)
    if deleted:
        log.info("Deleted blog post %s", post_id)
    return deleted


def bulk_update_status(post_ids: Iterable, status: str) -> int:
    if status not in POST_STATUSES:
        raise ValueError(f"Invalid status '{status}'")
    ids = _ids(post_ids)
    if not ids:
        return 0
    now = utcnow_iso()
    marks = placeholders(ids)
    with get_conn() as conn:
        cur = conn.cursor()
        if status == "published":
            cur.execute(
                f"""
                UPDATE blog_posts
                SET status = ?, published_at = COALESCE(published_at, ?), updated_at = ?
                WHERE id IN ({marks})
                """,
                [status, now, now] + ids,
            )
        else:
            cur.execute(
                f"UPDATE blog_posts SET status = ?, updated_at = ? WHERE id IN ({marks})",
                [status, now] + ids,
            )
        changed = cur.rowcount
        recount_taxonomy(cur)
    log.info("Bulk status update to %s touched %s post(s)", status, changed)
    return changed


def list_posts(
    page=1,
    limit=10,
    status: str | None = "published",
    featured: bool | None = None,
    sort_by: str = "published_at",
    sort_order: str = "DESC",
    include_taxonomy: bool = True,
    category_ids: Iterable | None = None,
    tag_ids: Iterable | None = None,
) -> Tuple[List[Dict], Dict]:
    page, limit = clamp_page_args(page, limit)
    if sort_by not in SORT_COLUMNS:
        sort_by = "published_at"
    direction = "ASC" if str(sort_order).upper() == "ASC" else "DESC"

    where = []
    params: List = []
    if status:
        where.append("p.status = ?")
        params.append(status)
    if featured is not None:
        where.append("p.featured = ?")
        params.append(1 if featured else 0)
    cats = _ids(category_ids)
    if cats:
        where.append(f"p.id IN (SELECT post_id FROM blog_post_categories WHERE category_id IN ({placeholders(cats)}))")
        params.extend(cats)
    tags = _ids(tag_ids)
    if tags:
        where.append(f"p.id IN (SELECT post_id FROM blog_post_tags WHERE tag_id IN ({placeholders(tags)}))")
        params.extend(tags)
    where_sql = (" WHERE " + " AND ".join(where)) if where else ""

    total = fetch_count(f"SELECT COUNT(*) AS count FROM blog_posts p{where_sql}", params)
    rows = fetch_all(
        f"SELECT {_SUMMARY_COLUMNS}{_FROM}{where_sql} ORDER BY p.{sort_by} {direction}, p.id DESC LIMIT ? OFFSET ?",
        params + [limit, offset_for(page, limit)],
    )
    rows = [_normalize(r) for r in rows]
    if include_taxonomy:
        attach_taxonomy(rows)
    return rows, paginate(page, limit, total)


def get_post_by_slug(slug: str, published_only: bool = True) -> Optional[Dict]:
    sql = f"SELECT {_FULL_COLUMNS}{_FROM} WHERE p.slug = ?"
    if published_only:
        sql += " AND p.status = 'published'"
    row = fetch_one(sql, (slug,))
    if not row:
        return None
    return attach_taxonomy([_normalize(row)])[0]


def get_post_by_id(post_id: int) -> Optional[Dict]:
    row = fetch_one(f"SELECT {_FULL_COLUMNS}{_FROM} WHERE p.id = ?", (post_id,))
    if not row:
        return None
    return attach_taxonomy([_normalize(row)])[0]


def search_terms(query: str) -> List[str]:
    terms: List[str] = []
    for term in re.findall(r"\w+", (query or "").lower()):
        if len(term) > 2 and term not in terms:
            terms.append(term)
    return terms


def _like(term: str) -> str:
    return "%" + term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"


def build_snippet(text: str, terms: List[str], radius: int = 80) -> str:
    """Plain-text window around the first match with every term wrapped in <mark>."""
    plain = strip_markdown(text)
    lowered = plain.lower()
    hits = [lowered.find(t) for t in terms if lowered.find(t) >= 0]
    if hits:
        first = min(hits)
        start = max(0, first - radius)
        end = min(len(plain), first + radius)
    else:
        start, end = 0, min(len(plain), radius * 2)
    window = plain[start:end].strip()
    snippet = str(escape(window))
    if terms:
        pattern = re.compile("(" + "|".join(re.escape(t) for t in terms) + ")", re.IGNORECASE)
        snippet = pattern.sub(r"<mark>\1</mark>", snippet)
    if start > 0:
        snippet = "..." + snippet
    if end < len(plain):
        snippet += "..."
    return snippet


def search_posts(
    query: str,
    page=1,
    limit=10,
    category_ids: Iterable | None = None,
    tag_ids: Iterable | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> Tuple[List[Dict], Dict]:
    page, limit = clamp_page_args(page, limit)
    terms = search_terms(query)
    if not terms:
        return [], empty_page(page, limit)

    score_parts = []
    score_params: List = []
    match_parts = []
    match_params: List = []
    for term in terms:
        pattern = _like(term)
        score_parts.append(
            "(CASE WHEN LOWER(p.title) LIKE ? ESCAPE '\\' THEN 3 ELSE 0 END"
            " + CASE WHEN LOWER(COALESCE(p.excerpt, '')) LIKE ? ESCAPE '\\' THEN 2 ELSE 0 END"
            " + CASE WHEN LOWER(p.content) LIKE ? ESCAPE '\\' THEN 1 ELSE 0 END)"
        )
        score_params.extend([pattern, pattern, pattern])
        match_parts.append(
            "(LOWER(p.title) LIKE ? ESCAPE '\\'"
            " OR LOWER(COALESCE(p.excerpt, '')) LIKE ? ESCAPE '\\'"
            " OR LOWER(p.content) LIKE ? ESCAPE '\\')"
        )
        match_params.extend([pattern, pattern, pattern])

    where = ["p.status = 'published'", "(" + " OR ".join(match_parts) + ")"]
    params: List = list(match_params)
    cats = _ids(category_ids)
    if cats:
        where.append(f"p.id IN (SELECT post_id FROM blog_post_categories WHERE category_id IN ({placeholders(cats)}))")
        params.extend(cats)
    tags = _ids(tag_ids)
    if tags:
        where.append(f"p.id IN (SELECT post_id FROM blog_post_tags WHERE tag_id IN ({placeholders(tags)}))")
        params.extend(tags)
    if date_from:
        where.append("p.published_at >= ?")
        params.append(date_from)
    if date_to:
        where.append("p.published_at <= ?")
        params.append(date_to + "T23:59:59" if len(date_to) == 10 else date_to)
    where_sql = " WHERE " + " AND ".join(where)

    total = fetch_count(f"SELECT COUNT(*) AS count FROM blog_posts p{where_sql}", params)
    rows = fetch_all(
        f"""
        SELECT {_SUMMARY_COLUMNS}, p.content, ({" + ".join(score_parts)}) AS score
        {_FROM}{where_sql}
        ORDER BY score DESC, p.published_at DESC, p.id DESC
        LIMIT ? OFFSET ?
        """,
        score_params + params + [limit, offset_for(page, limit)],
    )
    for row in rows:
        _normalize(row)
        content = row.pop("content") or ""
        row["snippet"] = build_snippet(content, terms)
    attach_taxonomy(rows)
    return rows, paginate(page, limit, total)


def get_related_posts(post_id: int, limit: int = 5) -> List[Dict]:
    rows = fetch_all(
        f"""
        SELECT {_SUMMARY_COLUMNS}, s.score
        FROM (
            SELECT other.id AS post_id,
                (SELECT COUNT(*) FROM blog_post_categories a
                 JOIN blog_post_categories b ON a.category_id = b.category_id
                 WHERE a.post_id = ? AND b.post_id = other.id) * 3
              + (SELECT COUNT(*) FROM blog_post_tags a
                 JOIN blog_post_tags b ON a.tag_id = b.tag_id
                 WHERE a.post_id = ? AND b.post_id = other.id) * 2 AS score
            FROM blog_posts other
            WHERE other.status = 'published' AND other.id != ?
        ) s
        JOIN blog_posts p ON p.id = s.post_id
        LEFT JOIN users u ON u.id = p.author_id
        WHERE s.score > 0
        ORDER BY s.score DESC, p.published_at DESC
        LIMIT ?
        """,
        (post_id, post_id, post_id, int(limit)),
    )
    return [_normalize(r) for r in rows]


def get_popular_posts(limit: int = 10, days: int | None = 30) -> List[Dict]:
    sql = f"SELECT {_SUMMARY_COLUMNS}{_FROM} WHERE p.status = 'published'"
    params: List = []
    if days:
        cutoff = (datetime.utcnow() - timedelta(days=int(days))).isoformat(timespec="seconds")
        sql += " AND p.published_at >= ?"
        params.append(cutoff)
    sql += " ORDER BY p.view_count DESC, p.published_at DESC LIMIT ?"
    params.append(int(limit))
    return [_normalize(r) for r in fetch_all(sql, params)]


def get_recent_posts(limit: int = 5) -> List[Dict]:
    rows = fetch_all(
        f"SELECT {_SUMMARY_COLUMNS}{_FROM} WHERE p.status = 'published' ORDER BY p.published_at DESC, p.id DESC LIMIT ?",
        (int(limit),),
    )
    return [_normalize(r) for r in rows]


def get_featured_posts(limit: int = 3) -> List[Dict]:
    rows = fetch_all(
        f"""
        SELECT {_SUMMARY_COLUMNS}{_FROM}
        WHERE p.status = 'published' AND p.featured = 1
        ORDER BY p.published_at DESC, p.id DESC
        LIMIT ?
        """,
        (int(limit),),
    )
    return attach_taxonomy([_normalize(r) for r in rows])


def increment_view_count(post_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE blog_posts SET view_count = view_count + 1 WHERE id = ?", (post_id,))
    conn.commit()
    conn.close()


def get_archive() -> List[Dict]:
    rows = fetch_all(
        """
        SELECT substr(published_at, 1, 4) AS year, substr(published_at, 6, 2) AS month, COUNT(*) AS post_count
        FROM blog_posts
        WHERE status = 'published' AND published_at IS NOT NULL
        GROUP BY substr(published_at, 1, 4), substr(published_at, 6, 2)
        ORDER BY year DESC, month DESC
        """
    )
    archive = []
    for row in rows:
        year, month = int(row["year"]), int(row["month"])
        archive.append(
            {
                "year": year,
                "month": month,
                "month_name": calendar.month_name[month],
                "post_count": int(row["post_count"]),
            }
        )
    return archive


def get_rss_posts(limit: int = 20) -> List[Dict]:
    rows = fetch_all(
        f"""
        SELECT {_FULL_COLUMNS}{_FROM}
        WHERE p.status = 'published' AND p.published_at IS NOT NULL
        ORDER BY p.published_at DESC, p.id DESC
        LIMIT ?
        """,
        (int(limit),),
    )
    return attach_taxonomy([_normalize(r) for r in rows])


def posts_by_category(slug: str, page=1, limit=10):
    """Return (category, posts, pagination), or None for an unknown category."""
    category = get_category_by_slug(slug)
    if not category:
        return None
    posts, pagination = list_posts(page, limit, category_ids=[category["id"]])
    return category, posts, pagination


def posts_by_tag(slug: str, page=1, limit=10):
    tag = get_tag_by_slug(slug)
    if not tag:
        return None
    posts, pagination = list_posts(page, limit, tag_ids=[tag["id"]])
    return tag, posts, pagination


# -------- maintenance --------

_VALID_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def repair_post_slugs(dry_run: bool = False) -> List[Dict]:
    """
    Re-slug posts whose slug is empty or not in lowercase-hyphen form. Returns
    [{id, title, old_slug, new_slug}] for every post that needed a change.
    """
    changes: List[Dict] = []
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute("SELECT id, title, slug FROM blog_posts ORDER BY created_at, id")
        for row in cur.fetchall():
            slug = (row["slug"] or "").strip()
            if _VALID_SLUG_RE.match(slug):
                continue
            base = slugify(row["title"]) or f"post-{row['id']}"
            new_slug = _unique_slug(cur, base, exclude_id=row["id"])
            changes.append({"id": row["id"], "title": row["title"], "old_slug": row["slug"], "new_slug": new_slug})
            if not dry_run:
                cur.execute(
                    "UPDATE blog_posts SET slug = ?, updated_at = ? WHERE id = ?",
                    (new_slug, utcnow_iso(), row["id"]),
                )
        if dry_run:
            conn.rollback()
    if changes and not dry_run:
        log.info("Repaired %s blog post slug(s)", len(changes))
    return changes


def backfill_published_at() -> int:
    """Give published posts without a published_at their creation time."""
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(
            """
            UPDATE blog_posts SET published_at = COALESCE(created_at, ?)
            WHERE status = 'published' AND published_at IS NULL
            """,
            (utcnow_iso(),),
        )
        return cur.rowcount


__all__ = [
    "POST_STATUSES",
    "SORT_COLUMNS",
    "attach_taxonomy",
    "create_post",
    "update_post",
    "delete_post",
    "bulk_update_status",
    "list_posts",
    "get_post_by_slug",
    "get_post_by_id",
    "search_terms",
    "build_snippet",
    "search_posts",
    "get_related_posts",
    "get_popular_posts",
    "get_recent_posts",
    "get_featured_posts",
    "increment_view_count",
    "get_archive",
    "get_rss_posts",
    "posts_by_category",
    "posts_by_tag",
    "repair_post_slugs",
    "backfill_published_at",
]
