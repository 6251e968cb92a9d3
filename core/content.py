"""
Markdown content processing for posts and projects.

Markdown is rendered with Python-Markdown, then passed through an allowlist
sanitizer that also decorates images and gives every heading a unique id so
a table of contents can link to it.
"""
from __future__ import annotations

import html
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Dict, List

import markdown
from markupsafe import escape

WORDS_PER_MINUTE = 200

ALLOWED_TAGS = {
    "a", "abbr", "b", "blockquote", "br", "code", "dd", "del", "div", "dl", "dt",
    "em", "figcaption", "figure", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i",
    "img", "ins", "li", "ol", "p", "pre", "s", "span", "strong", "sub", "sup",
    "table", "tbody", "td", "tfoot", "th", "thead", "tr", "u", "ul",
}
VOID_TAGS = {"br", "hr", "img"}
# Dropped together with everything inside them.
DROP_CONTENT_TAGS = {"script", "style", "iframe", "object", "embed", "noscript", "template"}

GLOBAL_ATTRS = {"id", "class", "title"}
TAG_ATTRS = {
    "a": {"href", "rel", "target"},
    "img": {"src", "alt", "width", "height", "loading", "decoding"},
    "ol": {"start"},
    "td": {"align", "colspan", "rowspan"},
    "th": {"align", "colspan", "rowspan"},
}
ALLOWED_SCHEMES = ("http", "https", "ftp", "mailto", "tel")
URL_ATTRS = {"href", "src"}

HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}

STOP_WORDS = frozenset(
    """
    the and for are but not you all can had her was one our out day get has him his
    how its may new now old see two who boy did man men she use way were with this
    that have from they know want been good much some time very when come here just
    like long make over such take than them well will what would there could other into
    more also only first after where should being through about before because between
    during without
    """.split()
)

_MD_IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_MD_LINK_RE = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_MD_FORMAT_RE = re.compile(r"[#*_`~]")
_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_INTERNAL_LINK_RE = re.compile(r"\[\[([^\]]+)\]\]")


@dataclass
class ProcessedContent:
    html: str
    excerpt: str
    reading_time: int
    word_count: int
    toc: List[Dict] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    meta_description: str = ""


def _safe_url(value: str) -> bool:
    value = (value or "").strip()
    # control characters are a classic way to smuggle "java\tscript:"
    compact = re.sub(r"[\x00-\x20]", "", value).lower()
    if ":" not in compact.split("/", 1)[0].split("?", 1)[0].split("#", 1)[0]:
        return True  # relative URL or fragment
    scheme = compact.split(":", 1)[0]
    return scheme in ALLOWED_SCHEMES


class _Sanitizer(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.out: List[str] = []
        self.headings: List[Dict] = []
        self._used_ids: Dict[str, int] = {}
        self._drop_depth = 0
        self._heading = None  # (index in out, tag, attrs, text parts)

    def _clean_attrs(self, tag, attrs):
        allowed = GLOBAL_ATTRS | TAG_ATTRS.get(tag, set())
        cleaned = []
        for name, value in attrs:
            name = name.lower()
            if name not in allowed:
                continue
            value = value or ""
            if name in URL_ATTRS and not _safe_url(value):
                continue
            cleaned.append((name, value))
        if tag == "img":
            names = {n for n, _ in cleaned}
            if "loading" not in names:
                cleaned.append(("loading", "lazy"))
            if "decoding" not in names:
                cleaned.append(("decoding", "async"))
            if "alt" not in names:
                cleaned.append(("alt", ""))
        return cleaned

    @staticmethod
    def _render_start(tag, attrs):
        parts = [tag] + [f'{n}="{html.escape(v, quote=True)}"' for n, v in attrs]
        return "<" + " ".join(parts) + ">"

    def _unique_id(self, text: str) -> str:
        base = slugify(text) or "section"
        if base in self._used_ids:
            self._used_ids[base] += 1
            return f"{base}-{self._used_ids[base]}"
        self._used_ids[base] = 1
        return base

    def handle_starttag(self, tag, attrs):
        if self._drop_depth:
            if tag in DROP_CONTENT_TAGS:
                self._drop_depth += 1
            return
        if tag in DROP_CONTENT_TAGS:
            self._drop_depth = 1
            return
        if tag not in ALLOWED_TAGS:
            return
        attrs = self._clean_attrs(tag, attrs)
        if tag in HEADING_TAGS and self._heading is None:
            self.out.append("")  # placeholder, filled once the heading text is known
            self._heading = (len(self.out) - 1, tag, attrs, [])
            return
        self.out.append(self._render_start(tag, attrs))

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)
        if tag not in VOID_TAGS:
            self.handle_endtag(tag)

    def handle_endtag(self, tag):
        if self._drop_depth:
            if tag in DROP_CONTENT_TAGS:
                self._drop_depth -= 1
            return
        if tag not in ALLOWED_TAGS or tag in VOID_TAGS:
            return
        if self._heading is not None and tag == self._heading[1]:
            index, htag, attrs, text_parts = self._heading
            text = _WS_RE.sub(" ", "".join(text_parts)).strip()
            existing = dict(attrs).get("id")
            heading_id = existing or self._unique_id(text)
            if not existing:
                attrs = attrs + [("id", heading_id)]
            self.out[index] = self._render_start(htag, attrs)
            self.headings.append({"level": int(htag[1]), "text": text, "id": heading_id})
            self._heading = None
        self.out.append(f"</{tag}>")

    def handle_data(self, data):
        if self._drop_depth:
            return
        if self._heading is not None:
            self._heading[3].append(data)
        self.out.append(html.escape(data, quote=False))

    def handle_comment(self, data):
        pass

    def result(self) -> str:
        return "".join(self.out)


def render_markdown(text: str) -> str:
    md = markdown.Markdown(extensions=["extra", "sane_lists"])
    return md.convert(text or "")


def sanitize_html(raw_html: str):
    """Return (clean_html, flat_headings)."""
    parser = _Sanitizer()
    parser.feed(raw_html or "")
    parser.close()
    return parser.result(), parser.headings


def build_toc(headings: List[Dict]) -> List[Dict]:
    """Nest a flat heading list by level."""
    tree: List[Dict] = []
    stack: List[Dict] = []
    for heading in headings:
        node = {**heading, "children": []}
        while stack and stack[-1]["level"] >= node["level"]:
            stack.pop()
        if stack:
            stack[-1]["children"].append(node)
        else:
            tree.append(node)
        stack.append(node)
    return tree


def strip_markdown(text: str) -> str:
    text = _MD_IMAGE_RE.sub("", text or "")
    text = _MD_LINK_RE.sub(r"\1", text)
    text = _MD_FORMAT_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    return _WS_RE.sub(" ", text).strip()


def generate_excerpt(text: str, max_length: int = 160) -> str:
    plain = strip_markdown(text)
    if len(plain) <= max_length:
        return plain

    truncated = plain[:max_length]
    last_sentence = truncated.rfind(".")
    last_space = truncated.rfind(" ")

    if last_sentence > max_length * 0.7:
        return truncated[: last_sentence + 1]
    if last_space > max_length * 0.8:
        return truncated[:last_space] + "..."
    return truncated + "..."


def count_words(text: str) -> int:
    plain = strip_markdown(text)
    if not plain:
        return 0
    return len(plain.split())


def reading_time(text: str) -> int:
    return math.ceil(count_words(text) / WORDS_PER_MINUTE)


def meta_description(text: str, title: str | None = None) -> str:
    excerpt = generate_excerpt(text, 140)
    if len(excerpt) < 100 and title:
        combined = f"{title} - {excerpt}"
        if len(combined) <= 160:
            return combined
    return excerpt


def extract_keywords(text: str, title: str | None = None, limit: int = 10) -> List[str]:
    words = re.findall(r"\b[a-z]{3,}\b", f"{title or ''} {text or ''}".lower())
    counts = Counter(w for w in words if len(w) > 3 and w not in STOP_WORDS)
    # most_common keeps first-seen order for ties
    return [word for word, count in counts.most_common() if count > 1][:limit]


def slugify(title: str) -> str:
    slug = (title or "").lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def absolute_urls(content_html: str, base_url: str) -> str:
    """Rewrite root-relative src/href attributes against base_url."""
    base = (base_url or "").rstrip("/")
    return re.sub(
        r'(src|href)="/(?!/)([^"]*)"',
        lambda m: f'{m.group(1)}="{base}/{m.group(2)}"',
        content_html or "",
    )


def add_internal_links(content_html: str, link_map: Dict[str, str]) -> str:
    """
    Replace [[slug]] / [[slug|text]] references with links when the slug is known.
    Unknown references are left untouched.
    """

    def _replace(match):
        slug, _, display = match.group(1).partition("|")
        slug = slug.strip()
        url = link_map.get(slug)
        if not url:
            return match.group(0)
        label = display.strip() or slug
        return f'<a href="{escape(url)}" class="internal-link">{escape(label)}</a>'

    return _INTERNAL_LINK_RE.sub(_replace, content_html or "")


def rss_excerpt(text: str) -> str:
    return str(escape(generate_excerpt(text, 300)))


def process_content(markdown_text: str, title: str | None = None) -> ProcessedContent:
    rendered = render_markdown(markdown_text)
    clean_html, headings = sanitize_html(rendered)
    return ProcessedContent(
        html=clean_html,
        excerpt=generate_excerpt(markdown_text, 160),
        reading_time=reading_time(markdown_text),
        word_count=count_words(markdown_text),
        toc=build_toc(headings),
        keywords=extract_keywords(markdown_text, title),
        meta_description=meta_description(markdown_text, title),
    )


__all__ = [
    "ProcessedContent",
    "process_content",
    "render_markdown",
    "sanitize_html",
    "build_toc",
    "strip_markdown",
    "generate_excerpt",
    "count_words",
    "reading_time",
    "meta_description",
    "extract_keywords",
    "slugify",
    "absolute_urls",
    "add_internal_links",
    "rss_excerpt",
]
