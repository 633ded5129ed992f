from __future__ import annotations

import math

from sqlalchemy.orm import Query

from . import schemas, settings


def clamp_page(page: int | None, limit: int | None) -> tuple[int, int]:
    """Normalize page/limit query values: page >= 1, 1 <= limit <= FORUM_PAGE_SIZE_MAX."""
    page = max(page or 1, 1)
    limit = settings.FORUM_PAGE_SIZE_DEFAULT if limit is None else limit
    limit = min(max(limit, 1), settings.FORUM_PAGE_SIZE_MAX)
    return page, limit


def paginate(query: Query, page: int, limit: int) -> tuple[list, schemas.Pagination]:
    """
    Apply offset pagination to an ordered query.

    Returns:
        (items, pagination) where pagination.pages is ceil(total / limit)
    """
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, schemas.Pagination(
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit),
    )
