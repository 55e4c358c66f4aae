"""Helpers for building JSON responses."""

from __future__ import annotations

from typing import Any

from flask import jsonify

from .types import APIResponse


def api_response(message: str, data: Any = None, status: int = 200):
    """Return a success envelope with the given payload."""
    body = APIResponse(success=True, message=message, data=data)
    return jsonify(body), status
