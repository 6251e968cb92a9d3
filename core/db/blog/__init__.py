"""
Blog storage helpers: posts, categories and tags.
"""
from core.db.blog.taxonomy_store import (
    create_category,
    create_tag,
    get_category_by_slug,
    get_or_create_tag,
    get_tag_by_slug,
    list_categories,
    list_tags,
    recount_taxonomy,
)
from core.db.blog.posts_store import (
    POST_STATUSES,
    SORT_COLUMNS,
    backfill_published_at,
    build_snippet,
    bulk_update_status,
    create_post,
    delete_post,
    get_archive,
    get_featured_posts,
    get_popular_posts,
    get_post_by_id,
    get_post_by_slug,
    get_recent_posts,
    get_related_posts,
    get_rss_posts,
    increment_view_count,
    list_posts,
    posts_by_category,
    posts_by_tag,
    repair_post_slugs,
    search_posts,
    search_terms,
    update_post,
)

__all__ = [
    "create_category",
    "create_tag",
    "get_category_by_slug",
    "get_or_create_tag",
    "get_tag_by_slug",
    "list_categories",
    "list_tags",
    "recount_taxonomy",
    "POST_STATUSES",
    "SORT_COLUMNS",
    "build_snippet",
    "bulk_update_status",
    "create_post",
    "delete_post",
    "get_archive",
    "get_featured_posts",
    "get_popular_posts",
    "get_post_by_id",
    "get_post_by_slug",
    "get_recent_posts",
    "get_related_posts",
    "get_rss_posts",
    "increment_view_count",
    "list_posts",
    "posts_by_category",
    "posts_by_tag",
    "search_posts",
    "search_terms",
    "update_post",
    "repair_post_slugs",
    "backfill_published_at",
]
