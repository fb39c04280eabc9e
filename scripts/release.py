"""
Release-phase helper.

Goal:
- Fail fast if DATABASE_URL is missing (avoid silently using SQLite in prod).
- Run alembic migrations.
- Optionally seed a demo shop (SEED_DEMO_SHOP), never in production.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _require_env(name: str) -> str:
    v = (os.environ.get(name) or "").strip()
    if not v:
        raise RuntimeError(f"Missing required environment variable {name}.")
    return v


def run_release() -> None:
    db_url = _require_env("DATABASE_URL")
    env = (os.environ.get("ENV") or "").strip().lower()
    is_production = env in ("prod", "production")
    # Guardrail: prevent accidental prod deploys against SQLite.
    if is_production and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")

    print("=== ShopDesk release start ===", flush=True)
    print(f"ENV={env or '(unset)'}", flush=True)
    print("Running Alembic migrations...", flush=True)

    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")
    print("Migrations complete.", flush=True)

    demo_shop = (os.environ.get("SEED_DEMO_SHOP") or "").strip()
    if demo_shop and not is_production:
        from scripts import init_db

        n = init_db.seed_demo(demo_shop, database_url=db_url)
        print(f"Seeded {n} demo customers for shop {demo_shop}.", flush=True)
    print("=== ShopDesk release done ===", flush=True)


def main() -> None:
    run_release()


if __name__ == "__main__":
    main()
