from flask import Blueprint, render_template

from app.shopdesk.shop import active_shop_id

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return render_template("public/index.html", shop_id=active_shop_id())


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200
