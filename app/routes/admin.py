"""
Admin-only content management: blog posts, taxonomy and portfolio entries.

Every route requires an admin session; mutations also require the X-CSRF-Token
header to match the csrf_token cookie.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from app.auth_utils import require_admin
from app.responses import error, not_found, ok, read_json
from core.database import (
    POST_STATUSES,
    bulk_update_status,
    create_category,
    create_post,
    create_project,
    create_skill,
    create_tag,
    create_testimonial,
    delete_post,
    get_post_by_id,
    list_posts,
    update_post,
)

log = logging.getLogger("site.admin")

router = APIRouter(prefix="/api/admin")


@router.get("/blog")
def admin_blog_index(
    request: Request,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    sort_by: str = Query("updated_at", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
):
    _, denied = require_admin(request)
    if denied:
        return denied
    if status and status not in POST_STATUSES:
        return error(400, f"Invalid status '{status}'")
    posts, pagination = list_posts(page=page, limit=limit, status=status, sort_by=sort_by, sort_order=sort_order)
    return ok(posts, pagination=pagination, cache=False)


@router.get("/blog/{post_id}")
def admin_blog_detail(post_id: int, request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    post = get_post_by_id(post_id)
    if not post:
        return not_found("Blog post")
    return ok(post, cache=False)


@router.post("/blog")
async def admin_blog_create(request: Request):
    user, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        post = create_post(body, author_id=user["id"])
    except ValueError as exc:
        return error(400, str(exc))
    return ok(post, status_code=201, cache=False)


@router.post("/blog/bulk")
async def admin_blog_bulk(request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None or not isinstance(body.get("ids"), list) or not body.get("status"):
        return error(400, "ids (list) and status are required")
    try:
        changed = bulk_update_status(body["ids"], body["status"])
    except ValueError as exc:
        return error(400, str(exc))
    return ok({"updated": changed, "status": body["status"]}, cache=False)


@router.put("/blog/{post_id}")
async def admin_blog_update(post_id: int, request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        post = update_post(post_id, body)
    except ValueError as exc:
        return error(400, str(exc))
    if not post:
        return not_found("Blog post")
    return ok(post, cache=False)


@router.delete("/blog/{post_id}")
def admin_blog_delete(post_id: int, request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    if not delete_post(post_id):
        return not_found("Blog post")
    return ok({"id": post_id, "deleted": True}, cache=False)


@router.post("/blog/categories")
async def admin_category_create(request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        category = create_category(
            body.get("name"),
            slug=body.get("slug"),
            description=body.get("description"),
            color=body.get("color"),
        )
    except ValueError as exc:
        return error(400, str(exc))
    return ok(category, status_code=201, cache=False)


@router.post("/blog/tags")
async def admin_tag_create(request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        tag = create_tag(body.get("name"), slug=body.get("slug"))
    except ValueError as exc:
        return error(400, str(exc))
    return ok(tag, status_code=201, cache=False)


@router.post("/portfolio")
async def admin_project_create(request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        project = create_project(body)
    except (KeyError, ValueError) as exc:
        return error(400, str(exc))
    return ok(project, status_code=201, cache=False)


@router.post("/skills")
async def admin_skill_create(request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        skill = create_skill(body)
    except (TypeError, ValueError) as exc:
        return error(400, str(exc))
    return ok(skill, status_code=201, cache=False)


@router.post("/testimonials")
async def admin_testimonial_create(request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        testimonial = create_testimonial(body)
    except (TypeError, ValueError) as exc:
        return error(400, str(exc))
    log.info("Testimonial %s added", testimonial["id"])
    return ok(testimonial, status_code=201, cache=False)
