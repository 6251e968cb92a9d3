"""
Skills and testimonials.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from core.db.base import fetch_all, fetch_count, fetch_one, get_conn, utcnow_iso
from core.db.pagination import clamp_page_args, offset_for, paginate

log = logging.getLogger("site.portfolio")

PRIORITY_LEVELS = ("high", "medium", "low")
_SKILL_UPDATABLE = ("name", "category", "proficiency_level", "years_experience", "description", "priority_level")


def _check_proficiency(value) -> int | None:
    if value is None:
        return None
    level = int(value)
    if not 1 <= level <= 5:
        raise ValueError("proficiency_level must be between 1 and 5")
    return level


def create_skill(data: Dict) -> Dict:
    name = (data.get("name") or "").strip()
    category = (data.get("category") or "").strip()
    if not name or not category:
        raise ValueError("name and category are required")
    priority = data.get("priority_level") or "medium"
    if priority not in PRIORITY_LEVELS:
        raise ValueError(f"Invalid priority_level '{priority}'")
    now = utcnow_iso()

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO skills (name, category, proficiency_level, years_experience, description,
                            priority_level, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            name,
            category,
            _check_proficiency(data.get("proficiency_level")),
            data.get("years_experience"),
            data.get("description"),
            priority,
            now,
            now,
        ),
    )
    skill_id = cur.fetchone()["id"]
    conn.commit()
    conn.close()
    return get_skill(skill_id)


def get_skill(skill_id: int) -> Optional[Dict]:
    return fetch_one("SELECT * FROM skills WHERE id = ?", (skill_id,))


def update_skill(skill_id: int, changes: Dict) -> Optional[Dict]:
    sets = {k: changes[k] for k in _SKILL_UPDATABLE if k in changes}
    if "proficiency_level" in sets:
        sets["proficiency_level"] = _check_proficiency(sets["proficiency_level"])
    if "priority_level" in sets and sets["priority_level"] not in PRIORITY_LEVELS:
        raise ValueError(f"Invalid priority_level '{sets['priority_level']}'")
    if not get_skill(skill_id):
        return None
    sets["updated_at"] = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"UPDATE skills SET {', '.join(f'{k} = ?' for k in sets)} WHERE id = ?",
        list(sets.values()) + [skill_id],
    )
    conn.commit()
    conn.close()
    return get_skill(skill_id)


def list_skills(category: str | None = None) -> List[Dict]:
    sql = "SELECT * FROM skills"
    params: List = []
    if category:
        sql += " WHERE category = ?"
        params.append(category)
    sql += " ORDER BY proficiency_level DESC, name ASC"
    return fetch_all(sql, params)


def get_skill_categories() -> List[Dict]:
    rows = fetch_all("SELECT category, COUNT(*) AS count FROM skills GROUP BY category ORDER BY category")
    return [{"category": r["category"], "count": int(r["count"])} for r in rows]


def _testimonial(row: Dict) -> Dict:
    row["featured"] = bool(row.get("featured"))
    row["permission_to_display"] = bool(row.get("permission_to_display"))
    return row


def create_testimonial(data: Dict) -> Dict:
    client_name = (data.get("client_name") or "").strip()
    text = (data.get("testimonial_text") or "").strip()
    if not client_name or not text:
        raise ValueError("client_name and testimonial_text are required")
    rating = data.get("rating")
    if rating is not None:
        rating = int(rating)
        if not 1 <= rating <= 5:
            raise ValueError("rating must be between 1 and 5")
    project_id = data.get("project_id")
    if project_id is not None and not fetch_one("SELECT id FROM portfolio_projects WHERE id = ?", (project_id,)):
        raise ValueError(f"Unknown project id {project_id}")
    now = utcnow_iso()

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO testimonials (client_name, client_position, client_company, project_id,
                                  testimonial_text, rating, date_given, permission_to_display,
                                  featured, work_relationship, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            client_name,
            data.get("client_position"),
            data.get("client_company"),
            project_id,
            text,
            rating,
            data.get("date_given") or now[:10],
            0 if data.get("permission_to_display") is False else 1,
            1 if data.get("featured") else 0,
            data.get("work_relationship"),
            now,
        ),
    )
    testimonial_id = cur.fetchone()["id"]
    conn.commit()
    conn.close()
    return _testimonial(fetch_one("SELECT * FROM testimonials WHERE id = ?", (testimonial_id,)))


def list_testimonials(
    page=1,
    limit=10,
    featured: bool | None = None,
    project_id: int | None = None,
) -> Tuple[List[Dict], Dict]:
    page, limit = clamp_page_args(page, limit)
    where, params = ["t.permission_to_display = 1"], []
    if featured is not None:
        where.append("t.featured = ?")
        params.append(1 if featured else 0)
    if project_id is not None:
        where.append("t.project_id = ?")
        params.append(int(project_id))
    where_sql = " WHERE " + " AND ".join(where)

    total = fetch_count(f"SELECT COUNT(*) AS count FROM testimonials t{where_sql}", params)
    rows = fetch_all(
        f"""
        SELECT t.*, p.title AS project_title, p.slug AS project_slug
        FROM testimonials t
        LEFT JOIN portfolio_projects p ON p.id = t.project_id
        {where_sql}
        ORDER BY t.featured DESC, t.date_given DESC, t.id DESC
        LIMIT ? OFFSET ?
        """,
        params + [limit, offset_for(page, limit)],
    )
    return [_testimonial(r) for r in rows], paginate(page, limit, total)


def get_featured_testimonials(limit: int = 5) -> List[Dict]:
    rows = fetch_all(
        """
        SELECT t.*, p.title AS project_title, p.slug AS project_slug
        FROM testimonials t
        LEFT JOIN portfolio_projects p ON p.id = t.project_id
        WHERE t.featured = 1 AND t.permission_to_display = 1
        ORDER BY t.date_given DESC
        LIMIT ?
        """,
        (int(limit),),
    )
    return [_testimonial(r) for r in rows]


__all__ = [
    "PRIORITY_LEVELS",
    "create_skill",
    "get_skill",
    "update_skill",
    "list_skills",
    "get_skill_categories",
    "create_testimonial",
    "list_testimonials",
    "get_featured_testimonials",
]
