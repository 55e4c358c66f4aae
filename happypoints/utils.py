"""Utility functions for the application."""

from flask import request

from happypoints.constants import MAX_PAGE_LIMIT


def limit_arg(default):
    """Read the ``limit`` query parameter, clamped to 1..MAX_PAGE_LIMIT.

    Missing or non-numeric values fall back to ``default``.
    """
    limit = request.args.get("limit", type=int)
    if limit is None:
        limit = default
    return max(1, min(limit, MAX_PAGE_LIMIT))
