"""
Work experience and education entries for the portfolio.
"""
from __future__ import annotations

import json
from typing import Dict, List

from core.db.base import fetch_all, fetch_one, get_conn, utcnow_iso

EMPLOYMENT_TYPES = ("full_time", "part_time", "contract", "internship", "freelance")


def _json_list(raw) -> List:
    try:
        return json.loads(raw) if raw else []
    except (TypeError, ValueError):
        return []


def _experience(row: Dict) -> Dict:
    row["achievements"] = _json_list(row.get("achievements"))
    row["technologies_used"] = _json_list(row.get("technologies_used"))
    row["is_remote"] = bool(row.get("is_remote"))
    row["is_current"] = bool(row.get("is_current"))
    return row


def create_work_experience(data: Dict) -> Dict:
    for key in ("company_name", "job_title", "start_date"):
        if not data.get(key):
            raise ValueError(f"{key} is required")
    employment_type = data.get("employment_type") or "full_time"
    if employment_type not in EMPLOYMENT_TYPES:
        raise ValueError(f"Invalid employment_type '{employment_type}'")

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO work_experience (company_name, job_title, employment_type, location, is_remote,
                                     description, achievements, technologies_used, start_date,
                                     end_date, is_current, sort_order, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            data["company_name"],
            data["job_title"],
            employment_type,
            data.get("location"),
            1 if data.get("is_remote") else 0,
            data.get("description"),
            json.dumps(data.get("achievements") or []),
            json.dumps(data.get("technologies_used") or []),
            data["start_date"],
            data.get("end_date"),
            1 if data.get("is_current") else 0,
            int(data.get("sort_order") or 0),
            utcnow_iso(),
        ),
    )
    exp_id = cur.fetchone()["id"]
    conn.commit()
    conn.close()
    return _experience(fetch_one("SELECT * FROM work_experience WHERE id = ?", (exp_id,)))


def list_work_experience() -> List[Dict]:
    rows = fetch_all(
        """
        SELECT * FROM work_experience
        ORDER BY is_current DESC, start_date DESC, sort_order ASC
        """
    )
    return [_experience(r) for r in rows]


def create_education(data: Dict) -> Dict:
    for key in ("institution_name", "degree_type", "degree_name", "start_date"):
        if not data.get(key):
            raise ValueError(f"{key} is required")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO education (institution_name, degree_type, degree_name, field_of_study,
                               start_date, end_date, is_current, sort_order, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            data["institution_name"],
            data["degree_type"],
            data["degree_name"],
            data.get("field_of_study"),
            data["start_date"],
            data.get("end_date"),
            1 if data.get("is_current") else 0,
            int(data.get("sort_order") or 0),
            utcnow_iso(),
        ),
    )
    edu_id = cur.fetchone()["id"]
    conn.commit()
    conn.close()
    row = fetch_one("SELECT * FROM education WHERE id = ?", (edu_id,))
    row["is_current"] = bool(row["is_current"])
    return row


def list_education() -> List[Dict]:
    rows = fetch_all("SELECT * FROM education ORDER BY is_current DESC, start_date DESC, sort_order ASC")
    for row in rows:
        row["is_current"] = bool(row["is_current"])
    return rows


__all__ = [
    "EMPLOYMENT_TYPES",
    "create_work_experience",
    "list_work_experience",
    "create_education",
    "list_education",
]
