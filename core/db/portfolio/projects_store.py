"""
Portfolio projects, project categories and technologies.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from core.content import process_content, slugify
from core.db.base import check_ids_exist, fetch_all, fetch_count, fetch_one, get_conn, placeholders, utcnow_iso
from core.db.pagination import clamp_page_args, offset_for, paginate

log = logging.getLogger("site.portfolio")

PROJECT_TYPES = ("web", "mobile", "desktop", "api", "library", "other")
PROJECT_STATUSES = ("active", "archived", "private")
PROJECT_SORT_COLUMNS = ("created_at", "updated_at", "title", "view_count", "start_date", "end_date")

_PROJECT_COLUMNS = """
    id, title, slug, short_description, full_description, status, featured, project_type,
    client_name, my_role, team_size, live_url, github_url, featured_image_url, gallery_images,
    view_count, start_date, end_date, created_at, updated_at
"""


def _normalize(row: Dict) -> Dict:
    row["featured"] = bool(row.get("featured"))
    raw = row.get("gallery_images")
    try:
        row["gallery_images"] = json.loads(raw) if raw else []
    except (TypeError, ValueError):
        row["gallery_images"] = []
    return row


def _ids(values: Iterable | None) -> List[int]:
    out: List[int] = []
    for v in values or []:
        try:
            iv = int(v)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid id {v!r}") from None
        if iv not in out:
            out.append(iv)
    return out


def _skill_links(skills) -> List[Tuple[int, str]]:
    """[(skill_id, usage_level)] from the payload, first entry per skill wins."""
    links: List[Tuple[int, str]] = []
    for index, skill in enumerate(skills or [], start=1):
        if not isinstance(skill, dict) or skill.get("skill_id") in (None, ""):
            raise ValueError(f"Skill {index} is missing skill_id")
        skill_id = _ids([skill["skill_id"]])[0]
        if skill_id not in [s for s, _ in links]:
            links.append((skill_id, skill.get("usage_level") or "primary"))
    return links


def _unique_slug(cur, base: str) -> str:
    base = base or "project"
    candidate, n = base, 1
    while True:
        cur.execute("SELECT id FROM portfolio_projects WHERE slug = ?", (candidate,))
        if cur.fetchone() is None:
            return candidate
        n += 1
        candidate = f"{base}-{n}"


def _attach_taxonomy(projects: List[Dict]) -> List[Dict]:
    if not projects:
        return projects
    ids = [p["id"] for p in projects]
    marks = placeholders(ids)
    by_id = {p["id"]: p for p in projects}
    for p in projects:
        p["categories"] = []
        p["technologies"] = []
    for row in fetch_all(
        f"""
        SELECT ppc.project_id, c.id, c.name, c.slug
        FROM project_project_categories ppc
        JOIN project_categories c ON c.id = ppc.category_id
        WHERE ppc.project_id IN ({marks})
        ORDER BY c.sort_order, c.name
        """,
        ids,
    ):
        by_id[row.pop("project_id")]["categories"].append(row)
    for row in fetch_all(
        f"""
        SELECT ppt.project_id, t.id, t.name, t.slug, t.category, t.website_url
        FROM project_project_technologies ppt
        JOIN project_technologies t ON t.id = ppt.technology_id
        WHERE ppt.project_id IN ({marks})
        ORDER BY t.name
        """,
        ids,
    ):
        by_id[row.pop("project_id")]["technologies"].append(row)
    return projects


def create_project_category(name: str, slug: str | None = None, description: str | None = None, sort_order: int = 0) -> Dict:
    slug = slugify(slug or name)
    if not slug:
        raise ValueError("Category name is required")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO project_categories (name, slug, description, sort_order, is_active, created_at)
        VALUES (?, ?, ?, ?, 1, ?)
        RETURNING id
        """,
        (name.strip(), slug, description, int(sort_order), utcnow_iso()),
    )
    category_id = cur.fetchone()["id"]
    conn.commit()
    conn.close()
    return fetch_one("SELECT * FROM project_categories WHERE id = ?", (category_id,))


def create_technology(name: str, category: str | None = None, website_url: str | None = None) -> Dict:
    slug = slugify(name)
    if not slug:
        raise ValueError("Technology name is required")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO project_technologies (name, slug, category, website_url, is_active, created_at)
        VALUES (?, ?, ?, ?, 1, ?)
        RETURNING id
        """,
        (name.strip(), slug, category, website_url, utcnow_iso()),
    )
    tech_id = cur.fetchone()["id"]
    conn.commit()
    conn.close()
    return fetch_one("SELECT * FROM project_technologies WHERE id = ?", (tech_id,))


def list_project_categories() -> List[Dict]:
    return fetch_all(
        "SELECT id, name, slug, description, sort_order FROM project_categories WHERE is_active = 1 ORDER BY sort_order, name"
    )


def list_technologies() -> List[Dict]:
    return fetch_all(
        "SELECT id, name, slug, category, website_url FROM project_technologies WHERE is_active = 1 ORDER BY name"
    )


def create_project(data: Dict) -> Dict:
    title = (data.get("title") or "").strip()
    if not title:
        raise ValueError("title is required")
    short_description = (data.get("short_description") or "").strip()
    if not short_description:
        raise ValueError("short_description is required")
    project_type = data.get("project_type") or "web"
    if project_type not in PROJECT_TYPES:
        raise ValueError(f"Invalid project_type '{project_type}'")
    status = data.get("status") or "active"
    if status not in PROJECT_STATUSES:
        raise ValueError(f"Invalid status '{status}'")

    content = data.get("content")
    content_html = process_content(content, title).html if content else None
    category_ids = _ids(data.get("category_ids"))
    technology_ids = _ids(data.get("technology_ids"))
    skill_links = _skill_links(data.get("skills"))
    now = utcnow_iso()

    with get_conn() as conn:
        cur = conn.cursor()
        check_ids_exist(cur, "project_categories", category_ids, "project category")
        check_ids_exist(cur, "project_technologies", technology_ids, "technology")
        check_ids_exist(cur, "skills", [s for s, _ in skill_links], "skill")
        slug = _unique_slug(cur, slugify(data.get("slug") or title))
        cur.execute(
            """
            INSERT INTO portfolio_projects (
                title, slug, short_description, full_description, content, content_html,
                status, featured, project_type, client_name, my_role, team_size, live_url,
                github_url, featured_image_url, gallery_images, view_count, start_date,
                end_date, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                title,
                slug,
                short_description,
                data.get("full_description"),
                content,
                content_html,
                status,
                1 if data.get("featured") else 0,
                project_type,
                data.get("client_name"),
                data.get("my_role"),
                data.get("team_size"),
                data.get("live_url"),
                data.get("github_url"),
                data.get("featured_image_url"),
                json.dumps(data.get("gallery_images") or []),
                data.get("start_date"),
                data.get("end_date"),
                now,
                now,
            ),
        )
        project_id = cur.fetchone()["id"]
        for cid in category_ids:
            cur.execute(
                "INSERT INTO project_project_categories (project_id, category_id) VALUES (?, ?)",
                (project_id, cid),
            )
        for tid in technology_ids:
            cur.execute(
                "INSERT INTO project_project_technologies (project_id, technology_id) VALUES (?, ?)",
                (project_id, tid),
            )
        for skill_id, usage_level in skill_links:
            cur.execute(
                "INSERT INTO project_skills (project_id, skill_id, usage_level) VALUES (?, ?, ?)",
                (project_id, skill_id, usage_level),
            )

    log.info("Created portfolio project %s (%s)", project_id, slug)
    return get_project_by_id(project_id)


def get_project_by_id(project_id: int) -> Optional[Dict]:
    row = fetch_one(f"SELECT {_PROJECT_COLUMNS}, content, content_html FROM portfolio_projects WHERE id = ?", (project_id,))
    if not row:
        return None
    return _attach_taxonomy([_normalize(row)])[0]


def list_projects(
    page=1,
    limit=12,
    status: str | None = "active",
    featured: bool | None = None,
    sort_by: str = "created_at",
    sort_order: str = "DESC",
    category_id: int | None = None,
    technology_id: int | None = None,
) -> Tuple[List[Dict], Dict]:
    page, limit = clamp_page_args(page, limit, default=12)
    if sort_by not in PROJECT_SORT_COLUMNS:
        sort_by = "created_at"
    direction = "ASC" if str(sort_order).upper() == "ASC" else "DESC"

    where, params = [], []
    if status:
        where.append("status = ?")
        params.append(status)
    if featured is not None:
        where.append("featured = ?")
        params.append(1 if featured else 0)
    if category_id:
        where.append("id IN (SELECT project_id FROM project_project_categories WHERE category_id = ?)")
        params.append(int(category_id))
    if technology_id:
        where.append("id IN (SELECT project_id FROM project_project_technologies WHERE technology_id = ?)")
        params.append(int(technology_id))
    where_sql = (" WHERE " + " AND ".join(where)) if where else ""

    total = fetch_count(f"SELECT COUNT(*) AS count FROM portfolio_projects{where_sql}", params)
    rows = fetch_all(
        f"""
        SELECT {_PROJECT_COLUMNS} FROM portfolio_projects{where_sql}
        ORDER BY featured DESC, {sort_by} {direction}, id DESC
        LIMIT ? OFFSET ?
        """,
        params + [limit, offset_for(page, limit)],
    )
    return _attach_taxonomy([_normalize(r) for r in rows]), paginate(page, limit, total)


def get_project_skills(project_id: int) -> List[Dict]:
    return fetch_all(
        """
        SELECT s.id, s.name, s.category, s.proficiency_level, ps.usage_level
        FROM project_skills ps
        JOIN skills s ON s.id = ps.skill_id
        WHERE ps.project_id = ?
        ORDER BY s.proficiency_level DESC, s.name
        """,
        (project_id,),
    )


def get_project_by_slug(slug: str) -> Optional[Dict]:
    """Active project with its categories, technologies, skills and testimonials."""
    row = fetch_one(
        f"SELECT {_PROJECT_COLUMNS}, content, content_html FROM portfolio_projects WHERE slug = ? AND status = 'active'",
        (slug,),
    )
    if not row:
        return None
    project = _attach_taxonomy([_normalize(row)])[0]
    project["skills"] = get_project_skills(project["id"])
    project["testimonials"] = fetch_all(
        """
        SELECT id, client_name, client_position, client_company, testimonial_text, rating, date_given
        FROM testimonials
        WHERE project_id = ? AND permission_to_display = 1
        ORDER BY date_given DESC
        """,
        (project["id"],),
    )
    project["testimonial_count"] = len(project["testimonials"])
    return project


def search_projects(
    query: str,
    page=1,
    limit=12,
    category_id: int | None = None,
    technology_id: int | None = None,
    status: str | None = "active",
) -> Tuple[List[Dict], Dict]:
    page, limit = clamp_page_args(page, limit, default=12)
    pattern = f"%{(query or '').strip().lower()}%"

    where = [
        """(
            LOWER(title) LIKE ?
            OR LOWER(short_description) LIKE ?
            OR LOWER(COALESCE(full_description, '')) LIKE ?
            OR LOWER(COALESCE(client_name, '')) LIKE ?
        )"""
    ]
    params: List = [pattern, pattern, pattern, pattern]
    if status:
        where.append("status = ?")
        params.append(status)
    if category_id:
        where.append("id IN (SELECT project_id FROM project_project_categories WHERE category_id = ?)")
        params.append(int(category_id))
    if technology_id:
        where.append("id IN (SELECT project_id FROM project_project_technologies WHERE technology_id = ?)")
        params.append(int(technology_id))
    where_sql = " WHERE " + " AND ".join(where)

    total = fetch_count(f"SELECT COUNT(*) AS count FROM portfolio_projects{where_sql}", params)
    rows = fetch_all(
        f"""
        SELECT {_PROJECT_COLUMNS},
            CASE WHEN LOWER(title) LIKE ? THEN 1 ELSE 0 END AS title_match
        FROM portfolio_projects{where_sql}
        ORDER BY title_match DESC, featured DESC, created_at DESC
        LIMIT ? OFFSET ?
        """,
        [pattern] + params + [limit, offset_for(page, limit)],
    )
    for row in rows:
        row.pop("title_match", None)
    return _attach_taxonomy([_normalize(r) for r in rows]), paginate(page, limit, total)


def get_featured_projects(limit: int = 6) -> List[Dict]:
    rows = fetch_all(
        f"""
        SELECT {_PROJECT_COLUMNS} FROM portfolio_projects
        WHERE status = 'active' AND featured = 1
        ORDER BY created_at DESC
        LIMIT ?
        """,
        (int(limit),),
    )
    return _attach_taxonomy([_normalize(r) for r in rows])


def increment_project_views(project_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE portfolio_projects SET view_count = view_count + 1 WHERE id = ?", (project_id,))
    conn.commit()
    conn.close()


def get_filter_options() -> Dict:
    return {
        "categories": list_project_categories(),
        "technologies": list_technologies(),
        "projectTypes": list(PROJECT_TYPES),
        "statuses": list(PROJECT_STATUSES),
    }


def get_content_suggestions(query: str, limit: int = 5) -> List[str]:
    """Project titles and technology names; prefix matches first."""
    q = (query or "").strip().lower()
    if not q:
        return []
    prefix, contains = f"{q}%", f"%{q}%"
    rows = fetch_all(
        """
        SELECT title AS label, CASE WHEN LOWER(title) LIKE ? THEN 0 ELSE 1 END AS rank
        FROM portfolio_projects
        WHERE status = 'active' AND LOWER(title) LIKE ?
        UNION ALL
        SELECT name AS label, CASE WHEN LOWER(name) LIKE ? THEN 0 ELSE 1 END AS rank
        FROM project_technologies
        WHERE is_active = 1 AND LOWER(name) LIKE ?
        """,
        (prefix, contains, prefix, contains),
    )
    rows.sort(key=lambda r: (r["rank"], r["label"].lower()))
    out: List[str] = []
    for row in rows:
        if row["label"] not in out:
            out.append(row["label"])
        if len(out) >= limit:
            break
    return out


def _years_since(date_text: str | None) -> int:
    if not date_text:
        return 0
    try:
        start = datetime.fromisoformat(str(date_text)[:10])
    except ValueError:
        return 0
    return max(0, int((datetime.utcnow() - start).days // 365))


def get_portfolio_statistics() -> Dict:
    totals = fetch_one(
        """
        SELECT COUNT(*) AS total_projects,
            COALESCE(SUM(CASE WHEN featured = 1 THEN 1 ELSE 0 END), 0) AS featured_projects
        FROM portfolio_projects
        WHERE status = 'active'
        """
    ) or {}
    ratings = fetch_one(
        """
        SELECT AVG(rating) AS avg_rating, COUNT(*) AS total_testimonials
        FROM testimonials
        WHERE permission_to_display = 1
        """
    ) or {}
    first_job = fetch_one("SELECT MIN(start_date) AS first_job FROM work_experience") or {}
    top_skills = fetch_all(
        """
        SELECT name FROM skills
        WHERE priority_level = 'high'
        ORDER BY proficiency_level DESC, years_experience DESC
        LIMIT 8
        """
    )
    by_type = fetch_all(
        """
        SELECT project_type, COUNT(*) AS count
        FROM portfolio_projects
        WHERE status = 'active'
        GROUP BY project_type
        ORDER BY count DESC, project_type
        """
    )
    avg_rating = ratings.get("avg_rating")
    return {
        "totalProjects": int(totals.get("total_projects") or 0),
        "featuredProjects": int(totals.get("featured_projects") or 0),
        "totalTechnologies": fetch_count("SELECT COUNT(*) AS count FROM project_technologies WHERE is_active = 1"),
        "totalSkills": fetch_count("SELECT COUNT(*) AS count FROM skills"),
        "totalTestimonials": int(ratings.get("total_testimonials") or 0),
        "averageRating": round(float(avg_rating), 1) if avg_rating is not None else 0,
        "yearsExperience": _years_since(first_job.get("first_job")),
        "topSkills": [r["name"] for r in top_skills],
        "projectsByType": {r["project_type"]: int(r["count"]) for r in by_type},
    }


__all__ = [
    "PROJECT_TYPES",
    "PROJECT_STATUSES",
    "create_project_category",
    "create_technology",
    "list_project_categories",
    "list_technologies",
    "create_project",
    "get_project_by_id",
    "list_projects",
    "get_project_skills",
    "get_project_by_slug",
    "search_projects",
    "get_featured_projects",
    "increment_project_views",
    "get_filter_options",
    "get_content_suggestions",
    "get_portfolio_statistics",
]
