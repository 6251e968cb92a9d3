from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse
from markupsafe import escape

from app.auth_utils import get_current_user
from app.layout import format_date, render_page
from core.cache.transport import OFFLINE_HTML
from core.database import (
    get_featured_posts,
    get_featured_projects,
    get_flight_statistics,
    get_post_by_slug,
    get_public_site_settings,
    get_recent_posts,
    increment_view_count,
    list_posts,
    list_projects,
    list_trips,
)

router = APIRouter()


def _post_card(post: dict) -> str:
    tags = "".join(f"<span>#{escape(t['name'])}</span>" for t in post.get("tags") or [])
    return f"""
    <div class="card">
      <h2><a href="/blog/{escape(post['slug'])}">{escape(post['title'])}</a></h2>
      <p class="muted">{format_date(post.get('published_at'))} · {post.get('reading_time') or 1} min read</p>
      <p>{escape(post.get('excerpt') or '')}</p>
      <div class="tags">{tags}</div>
    </div>
    """


def _project_card(project: dict) -> str:
    return f"""
    <div class="card">
      <h2>{escape(project['title'])}</h2>
      <p class="muted">{escape(project.get('project_type') or '')}</p>
      <p>{escape(project.get('short_description') or '')}</p>
    </div>
    """


@router.get("/")
def home(request: Request):
    user, _ = get_current_user(request)
    site = get_public_site_settings()
    featured = get_featured_posts(3) or get_recent_posts(3)
    projects = get_featured_projects(3)
    body = f"""
    <section>
      <h2>Latest writing</h2>
      {''.join(_post_card(p) for p in featured) or '<p class="muted">No posts yet.</p>'}
    </section>
    <section>
      <h2>Selected projects</h2>
      {''.join(_project_card(p) for p in projects) or '<p class="muted">No projects yet.</p>'}
    </section>
    """
    return render_page("Home", body, site_name=site["site_name"], user=user, description=site["site_description"])


@router.get("/blog")
def blog_page(request: Request, page: int = 1):
    user, _ = get_current_user(request)
    site = get_public_site_settings()
    posts, pagination = list_posts(page=page, limit=10)
    pager = ""
    if pagination["hasPrev"]:
        pager += f'<a href="/blog?page={pagination["page"] - 1}">Newer</a> '
    if pagination["hasNext"]:
        pager += f'<a href="/blog?page={pagination["page"] + 1}">Older</a>'
    body = (''.join(_post_card(p) for p in posts) or '<p class="muted">No posts yet.</p>') + f"<p>{pager}</p>"
    return render_page("Blog", body, site_name=site["site_name"], user=user, description=site["site_description"])


@router.get("/blog/{slug}")
def blog_post_page(slug: str, request: Request):
    user, _ = get_current_user(request)
    site = get_public_site_settings()
    post = get_post_by_slug(slug)
    if not post:
        body = '<div class="card"><p>That post could not be found.</p><p><a href="/blog">Back to the blog</a></p></div>'
        return render_page("Not found", body, site_name=site["site_name"], user=user, status_code=404)
    increment_view_count(post["id"])
    categories = ", ".join(escape(c["name"]) for c in post.get("categories") or [])
    body = f"""
    <article class="card">
      <p class="muted">{format_date(post.get('published_at'))} · {post.get('reading_time') or 1} min read
         {f'· {categories}' if categories else ''}</p>
      {post.get('content_html') or ''}
    </article>
    """
    return render_page(
        post.get("meta_title") or post["title"],
        body,
        site_name=site["site_name"],
        user=user,
        description=post.get("meta_description"),
    )


@router.get("/portfolio")
def portfolio_page(request: Request):
    user, _ = get_current_user(request)
    site = get_public_site_settings()
    projects, _ = list_projects(limit=24)
    body = "".join(_project_card(p) for p in projects) or '<p class="muted">No projects yet.</p>'
    return render_page("Portfolio", body, site_name=site["site_name"], user=user)


@router.get("/flights")
def flights_page(request: Request):
    user, _ = get_current_user(request)
    site = get_public_site_settings()
    stats = get_flight_statistics()
    cards = "".join(
        f'<div class="stat"><div class="label">{label}</div><div class="value">{escape(stats.get(key))}</div></div>'
        for key, label in (
            ("totalFlights", "Flights"),
            ("totalDistance", "Kilometres"),
            ("uniqueAirports", "Airports"),
            ("uniqueCountries", "Countries"),
        )
    )
    rows = "".join(
        f"<tr><td>{escape(t['name'])}</td><td>{escape(t['start_date'])}</td><td>{escape(t['end_date'])}</td>"
        f"<td>{t['flight_count']}</td></tr>"
        for t in list_trips()
    ) or '<tr><td colspan="4">No trips recorded.</td></tr>'
    body = f"""
    <div class="stats">{cards}</div>
    <div class="card">
      <h2>Trips</h2>
      <table>
        <thead><tr><th>Trip</th><th>From</th><th>To</th><th>Flights</th></tr></thead>
        <tbody>{rows}</tbody>
      </table>
    </div>
    """
    return render_page("Flights", body, site_name=site["site_name"], user=user)


@router.get("/offline")
def offline_page():
    return HTMLResponse(OFFLINE_HTML, headers={"Cache-Control": "no-cache"})


@router.get("/manifest.json")
def manifest():
    site = get_public_site_settings()
    return JSONResponse(
        {
            "name": site["site_name"],
            "short_name": site["site_name"],
            "start_url": "/",
            "display": "standalone",
            "background_color": "#020617",
            "theme_color": "#020617",
        },
        headers={"Cache-Control": "public, max-age=86400"},
    )
