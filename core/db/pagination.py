"""
Pagination helpers shared by the list queries.
"""
from __future__ import annotations

import math
from typing import Dict, Tuple


def clamp_page_args(page, limit, default: int = 10, maximum: int = 50) -> Tuple[int, int]:
    """Coerce raw page/limit values into 1 <= page and 1 <= limit <= maximum."""
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = default
    page = max(1, page)
    limit = max(1, min(limit, maximum))
    return page, limit


def offset_for(page: int, limit: int) -> int:
    return (page - 1) * limit


def paginate(page: int, limit: int, total: int) -> Dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


def empty_page(page: int, limit: int) -> Dict:
    return paginate(page, limit, 0)


__all__ = ["clamp_page_args", "offset_for", "paginate", "empty_page"]
