"""
RSS 2.0 feed rendering for published blog posts.
"""
from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Dict, Iterable

from markupsafe import escape

from core.content import absolute_urls, rss_excerpt

FEED_TTL_MINUTES = 1800
GENERATOR = "Personal Site"


def rfc2822(value: str | datetime | None) -> str:
    """ISO-8601 text (naive = UTC) -> 'Tue, 24 Jun 2025 09:22:20 GMT'."""
    if value is None:
        dt = datetime.now(timezone.utc)
    elif isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            dt = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


def _cdata(text: str) -> str:
    return "<![CDATA[" + (text or "").replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _item(post: Dict, site: Dict, base_url: str) -> str:
    post_url = f"{base_url}/blog/{post['slug']}"
    description = post.get("excerpt") or rss_excerpt(post.get("content") or "")
    description = absolute_urls(description, base_url)
    author = escape(post.get("author_name") or "Author")
    contact = escape(site["contact_email"])
    categories = "".join(
        f"\n      <category>{escape(c['name'])}</category>" for c in post.get("categories") or []
    )
    return (
        "    <item>\n"
        f"      <title>{escape(post['title'])}</title>\n"
        f"      <description>{_cdata(description)}</description>\n"
        f"      <link>{escape(post_url)}</link>\n"
        f'      <guid isPermaLink="true">{escape(post_url)}</guid>\n'
        f"      <pubDate>{rfc2822(post.get('published_at'))}</pubDate>\n"
        f"      <author>{contact} ({author})</author>"
        f"{categories}\n"
        f'      <source url="{escape(base_url)}/api/blog/rss">{escape(site["site_name"])}</source>\n'
        "    </item>"
    )


def build_rss(posts: Iterable[Dict], site: Dict, base_url: str, now: str | datetime | None = None) -> str:
    """
    Build the feed document as a single string.

    `site` needs site_name, site_description and contact_email.
    """
    base_url = base_url.rstrip("/")
    contact = escape(site["contact_email"])
    items = "\n".join(_item(p, site, base_url) for p in posts)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/" '
        'xmlns:atom="http://www.w3.org/2005/Atom">\n'
        "  <channel>\n"
        f"    <title>{escape(site['site_name'])}</title>\n"
        f"    <description>{escape(site['site_description'])}</description>\n"
        f"    <link>{escape(base_url)}</link>\n"
        f'    <atom:link href="{escape(base_url)}/api/blog/rss" rel="self" type="application/rss+xml"/>\n'
        "    <language>en-us</language>\n"
        f"    <managingEditor>{contact}</managingEditor>\n"
        f"    <webMaster>{contact}</webMaster>\n"
        f"    <lastBuildDate>{rfc2822(now)}</lastBuildDate>\n"
        f"    <generator>{GENERATOR}</generator>\n"
        f"    <ttl>{FEED_TTL_MINUTES}</ttl>\n"
        + (items + "\n" if items else "")
        + "  </channel>\n"
        "</rss>\n"
    )


def build_error_feed(base_url: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss version="2.0">\n'
        "  <channel>\n"
        "    <title>RSS Feed Error</title>\n"
        "    <description>An error occurred while generating the RSS feed</description>\n"
        f"    <link>{escape(base_url.rstrip('/'))}</link>\n"
        f"    <lastBuildDate>{rfc2822(None)}</lastBuildDate>\n"
        "  </channel>\n"
        "</rss>\n"
    )


__all__ = ["FEED_TTL_MINUTES", "rfc2822", "build_rss", "build_error_feed"]
