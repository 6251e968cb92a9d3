import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from app.responses import error, not_found, ok
from core.database import (
    get_content_suggestions,
    get_featured_projects,
    get_featured_testimonials,
    get_filter_options,
    get_portfolio_statistics,
    get_project_by_slug,
    get_skill_categories,
    increment_project_views,
    list_education,
    list_projects,
    list_skills,
    list_testimonials,
    list_work_experience,
    search_projects,
)

log = logging.getLogger("site.portfolio")

router = APIRouter(prefix="/api/portfolio")

# below this many hits a search also returns suggestions
SUGGESTION_THRESHOLD = 3


def _flag(raw: Optional[str]):
    if raw is None or raw == "":
        return None
    return raw.lower() in ("1", "true", "yes")


@router.get("")
def portfolio_index(
    request: Request,
    page: int = 1,
    limit: int = 12,
    featured: Optional[str] = None,
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
    category: Optional[int] = None,
    technology: Optional[int] = None,
):
    projects, pagination = list_projects(
        page=page,
        limit=limit,
        featured=_flag(featured),
        sort_by=sort_by,
        sort_order=sort_order,
        category_id=category,
        technology_id=technology,
    )
    return ok(projects, request, pagination=pagination)


@router.get("/search")
def portfolio_search(
    request: Request,
    q: Optional[str] = None,
    page: int = 1,
    limit: int = 12,
    category: Optional[int] = None,
    technology: Optional[int] = None,
):
    query = (q or "").strip()
    if not query:
        return error(400, "Search query is required", "Provide a search term with ?q=")
    projects, pagination = search_projects(query, page=page, limit=limit, category_id=category, technology_id=technology)
    lowered = query.lower()
    search_meta = {
        "query": query,
        "totalResults": pagination["total"],
        "hasExactMatch": any((p.get("title") or "").lower() == lowered for p in projects),
    }
    if pagination["total"] < SUGGESTION_THRESHOLD:
        search_meta["suggestions"] = get_content_suggestions(query)
    return ok(projects, request, pagination=pagination, searchMeta=search_meta)


@router.get("/featured")
def portfolio_featured(request: Request, limit: int = 6):
    return ok(get_featured_projects(max(1, min(limit, 20))), request)


@router.get("/skills")
def portfolio_skills(request: Request, category: Optional[str] = None):
    return ok({"skills": list_skills(category), "categories": get_skill_categories()}, request)


@router.get("/testimonials")
def portfolio_testimonials(
    request: Request,
    page: int = 1,
    limit: int = 10,
    featured: Optional[str] = None,
    project: Optional[int] = None,
):
    if _flag(featured) and project is None:
        return ok(get_featured_testimonials(max(1, min(limit, 20))), request)
    testimonials, pagination = list_testimonials(page=page, limit=limit, featured=_flag(featured), project_id=project)
    return ok(testimonials, request, pagination=pagination)


@router.get("/experience")
def portfolio_experience(request: Request):
    return ok({"work": list_work_experience(), "education": list_education()}, request)


@router.get("/statistics")
def portfolio_statistics(request: Request):
    return ok(get_portfolio_statistics(), request)


@router.get("/filter-options")
def portfolio_filter_options(request: Request):
    return ok(get_filter_options(), request)


@router.get("/{slug}")
def portfolio_project(slug: str, request: Request):
    project = get_project_by_slug(slug)
    if not project:
        return not_found("Project")
    increment_project_views(project["id"])
    return ok(project, request)
