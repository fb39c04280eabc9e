import logging
from datetime import timedelta

from flask import Flask, g, jsonify, render_template, request, session
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect

from app.shopdesk.config import load_config
from app.shopdesk.db import init_db, register_fork_disposal, teardown_db_session
from app.shopdesk.routes import bp as routes_bp
from app.shopdesk.shop import load_active_shop
from app.shopdesk.modules.customers.admin import bp as customers_bp
from app.shopdesk.modules.customers.api import bp as customers_api_bp
from app.shopdesk.utils import format_money, parse_timestamp

# Tables the sql store expects.
_EXPECTED_TABLES = ("customers", "customer_loans", "audit_events")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=12)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    # CSRF protection (minimal)
    from app.shopdesk.security import ensure_csrf_token, is_exempt_path, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_shop() -> dict:
        return {
            "active_shop_id": getattr(g, "active_shop_id", None),
            "currency_label": app.config.get("CURRENCY_LABEL") or "RS",
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d %H:%M") -> str:
        ts = parse_timestamp(value)
        if ts is None:
            return "-"
        return ts.strftime(format)

    @app.template_filter("money")
    def _money_filter(value) -> str:
        return format_money(value, app.config.get("CURRENCY_LABEL") or "RS")

    @app.before_request
    def _csrf_guard():
        if is_exempt_path(request.path):
            return None
        ensure_csrf_token()
        session.permanent = True
        if not validate_csrf(request):
            app.logger.warning("CSRF check failed (path=%s)", request.path)
            if request.path.startswith("/api/"):
                return jsonify({"ok": False, "error": "CSRF token missing or invalid."}), 400
            return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    backend = app.config.get("STORE_BACKEND")
    if backend not in ("sql", "supabase"):
        raise RuntimeError(f"STORE_BACKEND must be 'sql' or 'supabase' (got '{backend}').")
    if backend == "supabase":
        missing = [k for k in ("SUPABASE_URL", "SUPABASE_KEY") if not app.config.get(k)]
        if missing:
            raise RuntimeError(f"STORE_BACKEND=supabase requires: {', '.join(missing)}")

    init_db(app)
    register_fork_disposal(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(customers_api_bp, url_prefix="/api")

    app.before_request(load_active_shop)
    app.teardown_appcontext(teardown_db_session)

    # Schema health (lean): only meaningful when documents live in our own database.
    app.config.setdefault("_schema_health_ok", True)
    app.config.setdefault("_schema_health_missing", [])

    def _run_schema_health_check() -> None:
        if backend != "sql":
            return
        missing: list[str] = []
        try:
            insp = sa_inspect(app.extensions["sqlalchemy_engine"])
            missing = [f"{t} (table)" for t in _EXPECTED_TABLES if not insp.has_table(t)]
        except Exception as e:
            app.logger.exception("Schema health check failed: %s", e)
        app.config["_schema_health_ok"] = not missing
        app.config["_schema_health_missing"] = missing
        if missing:
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))

    _run_schema_health_check()

    @app.before_request
    def _schema_health_guardrail():  # type: ignore[no-redef]
        if app.config.get("_schema_health_ok"):
            return None
        if not request.path.startswith(("/customers", "/api/")):
            return None
        # Tables may have been created since startup (e.g. `alembic upgrade head` on a live app).
        _run_schema_health_check()
        if app.config.get("_schema_health_ok"):
            return None
        return render_template("errors/schema_out_of_date.html", missing=app.config.get("_schema_health_missing") or []), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if request.path.startswith("/api/"):
            return jsonify({"ok": False, "error": "Not found."}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        if request.path.startswith("/api/"):
            return jsonify({"ok": False, "error": "Internal server error.", "request_id": rid}), 500
        return render_template("errors/500.html", request_id=rid), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve (store=%s)", backend)

    return app
