from __future__ import annotations

import uuid
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, flash, g, jsonify, redirect, request, session, url_for

from app.shopdesk.security import is_exempt_path

SESSION_SHOP_KEY = "active_shop_id"
MISSING_SHOP_MESSAGE = "Shop ID is missing"


def load_active_shop() -> None:
    """
    Loads g.active_shop_id from the session (set by the sign-in / shop picker
    that lives outside this app), falling back to DEFAULT_SHOP_ID.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if is_exempt_path(request.path):
        g.active_shop_id = None
        return

    shop_id = session.get(SESSION_SHOP_KEY) or current_app.config.get("DEFAULT_SHOP_ID") or ""
    g.active_shop_id = str(shop_id).strip() or None


def active_shop_id() -> str | None:
    return getattr(g, "active_shop_id", None)


def require_shop(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if active_shop_id():
            return fn(*args, **kwargs)
        current_app.logger.warning("No active shop (path=%s request_id=%s)", request.path, getattr(g, "request_id", None))
        if request.path.startswith("/api/"):
            return jsonify({"ok": False, "error": MISSING_SHOP_MESSAGE}), 400
        flash(MISSING_SHOP_MESSAGE, "danger")
        return redirect(url_for("routes.index"))

    return wrapped
