"""routes/paging.py — limit/skip defaults for paged list endpoints."""

from __future__ import annotations

from flask import current_app


def page_window(args: dict) -> tuple[int, int]:
    """
    (limit, skip) from a validated query dict. A missing limit falls back to
    DEFAULT_PAGE_LIMIT; anything above MAX_PAGE_LIMIT is capped.
    """
    limit = args.get("limit") or current_app.config["DEFAULT_PAGE_LIMIT"]
    return min(limit, current_app.config["MAX_PAGE_LIMIT"]), args.get("skip") or 0
