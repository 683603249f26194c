# Overview: 1-based page normalization and counted page queries for list endpoints.

from __future__ import annotations

from flask import current_app


def normalize_page(page: int | None, page_size: int | None) -> tuple[int, int]:
    """Non-positive or missing values fall back to page 1 / the configured default size."""
    default_size = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_size = current_app.config.get("MAX_PAGE_SIZE", 100)

    if not page or page <= 0:
        page = 1
    if not page_size or page_size <= 0:
        page_size = default_size
    return page, min(page_size, max_size)


def paginate(query, page: int | None, page_size: int | None):
    """
    Return (rows, total, page, page_size) for an already ordered query.

    total is taken from the same session as the page rows.
    """
    page, page_size = normalize_page(page, page_size)
    total = query.order_by(None).count()
    rows = query.limit(page_size).offset((page - 1) * page_size).all()
    return rows, total, page, page_size
