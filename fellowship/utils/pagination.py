import math
from flask import current_app, request
from sqlalchemy import or_


def get_page_args(default_limit=None):
    """Read ``page`` and ``limit`` from the query string, clamped to sane values."""
    default_limit = default_limit or current_app.config.get("DEFAULT_PAGE_SIZE", 20)
    page = request.args.get("page", 1, type=int) or 1
    limit = request.args.get("limit", default_limit, type=int) or default_limit
    return max(page, 1), min(max(limit, 1), 100)


def apply_search(query, model, search_term, search_columns):
    """Case-insensitive substring match of ``search_term`` across ``search_columns``."""
    if search_term:
        search_filters = [
            getattr(model, col).ilike(f"%{search_term}%") for col in search_columns
        ]
        query = query.filter(or_(*search_filters))
    return query


def paginate(query, page=1, limit=20):
    """
    Applies pagination to a SQLAlchemy query.

    Returns:
      (items, pagination) where pagination is {page, limit, total, pages}
    """
    page = page if page > 0 else 1
    limit = limit if limit > 0 else 20

    paginated = query.paginate(page=page, per_page=limit, error_out=False)
    return paginated.items, {
        "page": page,
        "limit": limit,
        "total": paginated.total,
        "pages": math.ceil(paginated.total / limit) if paginated.total else 0,
    }
