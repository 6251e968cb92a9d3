import hashlib
import logging
import os
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import Response

from app.responses import error, etag_for, etag_matches, not_found, ok
from core.database import (
    get_archive,
    get_popular_posts,
    get_post_by_slug,
    get_public_site_settings,
    get_related_posts,
    get_rss_posts,
    increment_view_count,
    list_categories,
    list_posts,
    list_tags,
    posts_by_category,
    posts_by_tag,
    search_posts,
)
from core.rss import build_error_feed, build_rss, rfc2822

log = logging.getLogger("site.blog")

router = APIRouter(prefix="/api/blog")

PUBLIC_STATUSES = ("published", "archived")
FEED_CACHE_CONTROL = "public, max-age=1800, s-maxage=3600"
VIEW_FIELDS = ("view_count",)


def public_base_url(request: Request) -> str:
    return (os.getenv("PUBLIC_BASE_URL") or str(request.base_url)).rstrip("/")


def _id_list(raw: Optional[str]):
    """'1,2,x' -> [1, 2]"""
    ids = []
    for part in (raw or "").split(","):
        part = part.strip()
        if part.isdigit() and int(part) > 0:
            ids.append(int(part))
    return ids


def _flag(raw: Optional[str]):
    if raw is None or raw == "":
        return None
    return raw.lower() in ("1", "true", "yes")


@router.get("")
def blog_index(
    request: Request,
    page: int = 1,
    limit: int = 10,
    status: str = "published",
    featured: Optional[str] = None,
    sort_by: str = Query("published_at", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
    q: Optional[str] = None,
    categories: Optional[str] = None,
    tags: Optional[str] = None,
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
):
    query = (q or "").strip()
    if query:
        posts, pagination = search_posts(
            query,
            page=page,
            limit=limit,
            category_ids=_id_list(categories),
            tag_ids=_id_list(tags),
            date_from=date_from,
            date_to=date_to,
        )
        meta = {"searchQuery": query, "hasSearchResults": bool(posts)}
        return ok(posts, request, pagination=pagination, meta=meta, headers={"X-Total-Count": str(pagination["total"])})

    posts, pagination = list_posts(
        page=page,
        limit=limit,
        status=status if status in PUBLIC_STATUSES else "published",
        featured=_flag(featured),
        sort_by=sort_by,
        sort_order=sort_order,
        category_ids=_id_list(categories),
        tag_ids=_id_list(tags),
    )
    return ok(posts, request, pagination=pagination, headers={"X-Total-Count": str(pagination["total"])})


@router.get("/search")
def blog_search(
    request: Request,
    q: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    categories: Optional[str] = None,
    tags: Optional[str] = None,
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
):
    query = (q or "").strip()
    if not query:
        return error(400, "Search query is required", "Provide a search term with ?q=")
    posts, pagination = search_posts(
        query,
        page=page,
        limit=limit,
        category_ids=_id_list(categories),
        tag_ids=_id_list(tags),
        date_from=date_from,
        date_to=date_to,
    )
    return ok(posts, request, pagination=pagination, meta={"searchQuery": query, "hasSearchResults": bool(posts)})


@router.get("/archive")
def blog_archive(request: Request):
    return ok(get_archive(), request)


@router.get("/popular")
def blog_popular(request: Request, limit: int = 10, days: int = 30):
    limit = max(1, min(limit, 50))
    return ok(get_popular_posts(limit=limit, days=days if days > 0 else None), request)


@router.get("/categories")
def blog_categories(request: Request):
    return ok(list_categories(), request)


@router.get("/categories/{slug}")
def blog_category(slug: str, request: Request, page: int = 1, limit: int = 10):
    found = posts_by_category(slug, page, limit)
    if found is None:
        return not_found("Category")
    category, posts, pagination = found
    return ok({"category": category, "posts": posts}, request, pagination=pagination)


@router.get("/tags")
def blog_tags(request: Request, used: Optional[str] = None):
    return ok(list_tags(used_only=bool(_flag(used))), request)


@router.get("/tags/{slug}")
def blog_tag(slug: str, request: Request, page: int = 1, limit: int = 10):
    found = posts_by_tag(slug, page, limit)
    if found is None:
        return not_found("Tag")
    tag, posts, pagination = found
    return ok({"tag": tag, "posts": posts}, request, pagination=pagination)


@router.get("/rss")
def blog_rss(request: Request, limit: int = 20):
    limit = max(5, min(limit, 50))
    base_url = public_base_url(request)
    try:
        posts = get_rss_posts(limit)
        last_published = posts[0].get("published_at") if posts else None
        xml = build_rss(posts, get_public_site_settings(), base_url, now=last_published)
    except Exception:
        log.exception("RSS feed generation failed")
        return Response(
            content=build_error_feed(base_url),
            status_code=500,
            media_type="application/rss+xml; charset=utf-8",
            headers={"Cache-Control": "no-cache"},
        )

    body = xml.encode("utf-8")
    etag = f'"{hashlib.sha256(body).hexdigest()[:32]}"'
    headers = {
        "Cache-Control": FEED_CACHE_CONTROL,
        "ETag": etag,
        "X-Feed-Items": str(len(posts)),
    }
    if last_published:
        headers["Last-Modified"] = rfc2822(last_published)
    if etag_matches(request, etag):
        return Response(status_code=304, headers=headers)
    return Response(content=body, media_type="application/rss+xml; charset=utf-8", headers=headers)


@router.get("/{slug}")
def blog_post(slug: str, request: Request):
    post = get_post_by_slug(slug)
    if not post:
        return not_found("Blog post")
    post["related"] = get_related_posts(post["id"], limit=3)
    # a revalidation that ends in 304 is not a view
    if not etag_matches(request, etag_for(post, exclude=VIEW_FIELDS)):
        increment_view_count(post["id"])
    return ok(post, request, etag_exclude=VIEW_FIELDS)

