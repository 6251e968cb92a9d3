"""
Shared HTML layout and small rendering helpers for the server-rendered pages.
"""
from datetime import datetime

from fastapi.responses import HTMLResponse
from markupsafe import escape

NAV_LINKS = (
    ("/", "Home"),
    ("/blog", "Blog"),
    ("/portfolio", "Portfolio"),
    ("/flights", "Flights"),
)


def format_date(value) -> str:
    """ISO timestamp -> 'June 24, 2025' (falls back to the raw text)."""
    if not value:
        return ""
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).strftime("%B %d, %Y").replace(" 0", " ")
    except ValueError:
        return str(value)


def render_page(
    title: str,
    body: str,
    site_name: str = "Personal Site",
    user: dict | None = None,
    description: str | None = None,
    status_code: int = 200,
) -> HTMLResponse:
    """
    Shared layout: dark background, nav bar and footer. `body` is trusted HTML;
    `title` and `description` are escaped here.
    """
    nav = "\n".join(f'<a href="{href}">{label}</a>' for href, label in NAV_LINKS)
    signed_in = ""
    if user:
        signed_in = f'<div class="signed-in">Signed in as <strong>{escape(user.get("email"))}</strong></div>'
    meta_description = f'<meta name="description" content="{escape(description)}" />' if description else ""

    html = f"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{escape(title)} - {escape(site_name)}</title>
    {meta_description}
    <link rel="alternate" type="application/rss+xml" title="{escape(site_name)}" href="/api/blog/rss" />
    <style>
      :root {{ color-scheme: dark; }}
      * {{ box-sizing: border-box; }}
      body {{
        font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        margin: 0;
        background: #020617;
        color: #e5e7eb;
      }}
      .page {{ max-width: 960px; margin: 0 auto; padding: 1.5rem 1rem 3rem; }}
      header {{
        display: flex;
        justify-content: space-between;
        align-items: center;
        margin-bottom: 1.5rem;
        padding: 0.75rem 1rem;
        background: linear-gradient(90deg, rgba(56,189,248,0.08), rgba(34,197,94,0.08));
        border: 1px solid #1f2937;
        border-radius: 0.75rem;
      }}
      header h1 {{ font-size: 1.4rem; margin: 0; }}
      nav {{ display: flex; gap: 0.6rem; align-items: center; }}
      nav a {{
        text-decoration: none;
        color: #e5e7eb;
        padding: 6px 10px;
        border-radius: 8px;
        background: rgba(255,255,255,0.04);
      }}
      nav a:hover {{ color: #38bdf8; }}
      a {{ color: #38bdf8; }}
      .signed-in, .muted {{ font-size: 0.85rem; color: #9ca3af; }}
      .card {{
        border-radius: 0.75rem;
        border: 1px solid #1f2937;
        padding: 1rem 1.25rem;
        margin-bottom: 1rem;
      }}
      .card h2 {{ margin-top: 0; }}
      .tags span {{ font-size: 0.8rem; margin-right: 0.4rem; color: #22c55e; }}
      article img {{ max-width: 100%; height: auto; }}
      table {{ width: 100%; border-collapse: collapse; font-size: 0.9rem; }}
      th, td {{ border: 1px solid #1f2937; padding: 0.4rem 0.6rem; text-align: left; }}
      .stats {{ display: flex; gap: 0.75rem; flex-wrap: wrap; margin-bottom: 1rem; }}
      .stat {{ flex: 0 0 140px; padding: 0.6rem 0.8rem; border-radius: 0.75rem; border: 1px solid #1f2937; }}
      .stat .label {{ font-size: 0.75rem; color: #9ca3af; }}
      .stat .value {{ font-size: 1.2rem; font-weight: 600; }}
      footer {{
        margin-top: 2.5rem;
        padding: 1.5rem 0;
        border-top: 1px solid #1f2937;
        text-align: center;
        font-size: 0.9rem;
      }}
    </style>
  </head>
  <body>
    <div class="page">
      <header>
        <div>
          <h1>{escape(title)}</h1>
          {signed_in}
        </div>
        <nav>
          {nav}
        </nav>
      </header>
      <main>
        {body}
      </main>
      <footer>
        <div><strong>(c) {datetime.now().year} {escape(site_name)}</strong></div>
        <div><a href="/api/blog/rss">RSS</a></div>
      </footer>
    </div>
  </body>
</html>
"""
    return HTMLResponse(content=html, status_code=status_code)
