"""API token authentication."""

import functools
import hmac
from collections.abc import Callable
from typing import Any

from flask import current_app, jsonify, request


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def token_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator that rejects requests without the configured API token.

    When API_TOKEN is not configured, all requests pass through
    (open access).
    """

    @functools.wraps(view)
    def wrapped_view(*args: Any, **kwargs: Any) -> Any:
        expected = current_app.config.get("API_TOKEN")
        # If no token is configured, allow all requests
        if not expected:
            return view(*args, **kwargs)
        if not hmac.compare_digest(_bearer_token().encode(), expected.encode()):
            return jsonify({"success": False, "error": "Unauthorized"}), 401
        return view(*args, **kwargs)

    return wrapped_view
