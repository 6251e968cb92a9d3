from core.content import (
    add_internal_links,
    absolute_urls,
    build_toc,
    count_words,
    extract_keywords,
    generate_excerpt,
    process_content,
    reading_time,
    sanitize_html,
    slugify,
)


def test_process_content_renders_markdown_with_heading_ids():
    processed = process_content("# Hello World\n\nSome **bold** text.\n\n## Details\n\nMore.")
    assert '<h1 id="hello-world">Hello World</h1>' in processed.html
    assert "<strong>bold</strong>" in processed.html
    assert processed.toc == [
        {
            "level": 1,
            "text": "Hello World",
            "id": "hello-world",
            "children": [{"level": 2, "text": "Details", "id": "details", "children": []}],
        }
    ]
    assert processed.word_count == 7
    assert processed.reading_time == 1


def test_duplicate_headings_get_unique_ids():
    processed = process_content("## Intro\n\ntext\n\n## Intro\n\nmore")
    assert 'id="intro"' in processed.html
    assert 'id="intro-2"' in processed.html


def test_sanitizer_drops_scripts_and_event_handlers():
    clean, _ = sanitize_html('<p onclick="steal()">hi<script>alert(1)</script></p><style>p{}</style>')
    assert clean == "<p>hi</p>"


def test_sanitizer_removes_unsafe_urls():
    clean, _ = sanitize_html('<a href="javascript:alert(1)">x</a><a href="java\tscript:alert(1)">y</a>')
    assert clean == "<a>x</a><a>y</a>"

    clean, _ = sanitize_html('<a href="https://example.com/a?b=1&c=2">ok</a>')
    assert 'href="https://example.com/a?b=1&amp;c=2"' in clean


def test_images_are_lazy_loaded():
    clean, _ = sanitize_html('<img src="/media/a.png">')
    assert clean == '<img src="/media/a.png" loading="lazy" decoding="async" alt="">'


def test_text_is_escaped():
    clean, _ = sanitize_html("<p>1 &lt; 2 &amp; <b>3</b></p>")
    assert clean == "<p>1 &lt; 2 &amp; <b>3</b></p>"


def test_build_toc_handles_level_jumps():
    headings = [
        {"level": 2, "text": "A", "id": "a"},
        {"level": 3, "text": "B", "id": "b"},
        {"level": 2, "text": "C", "id": "c"},
    ]
    toc = build_toc(headings)
    assert [h["id"] for h in toc] == ["a", "c"]
    assert toc[0]["children"][0]["id"] == "b"


def test_generate_excerpt():
    assert generate_excerpt("Short **text**.") == "Short text."

    long_text = "word " * 100
    excerpt = generate_excerpt(long_text, 50)
    assert excerpt.endswith("...")
    assert len(excerpt) <= 53

    sentences = "This is the first sentence of the post. " + "Another one follows here " * 10
    assert generate_excerpt(sentences, 60).endswith("...")


def test_reading_time_and_word_count():
    assert count_words("") == 0
    assert reading_time("") == 0
    assert reading_time("one") == 1
    assert reading_time("word " * 400) == 2
    assert count_words("[link text](http://x) ![img](a.png) plain") == 3


def test_slugify():
    assert slugify("Hello, World!  Again") == "hello-world-again"
    assert slugify("  --Already-slugged--  ") == "already-slugged"
    assert slugify("") == ""


def test_extract_keywords_needs_repeats():
    text = "python python fastapi fastapi fastapi code"
    assert extract_keywords(text) == ["fastapi", "python"]


def test_absolute_urls_rewrites_root_relative_only():
    html = '<img src="/a.png"><a href="//cdn.example.com/x">x</a><a href="https://e.com/">e</a>'
    out = absolute_urls(html, "https://site.example/")
    assert 'src="https://site.example/a.png"' in out
    assert 'href="//cdn.example.com/x"' in out
    assert 'href="https://e.com/"' in out


def test_internal_links():
    html = "<p>See [[first-post]] and [[second|the second]] and [[unknown]].</p>"
    out = add_internal_links(html, {"first-post": "/blog/first-post", "second": "/blog/second"})
    assert '<a href="/blog/first-post" class="internal-link">first-post</a>' in out
    assert '<a href="/blog/second" class="internal-link">the second</a>' in out
    assert "[[unknown]]" in out
