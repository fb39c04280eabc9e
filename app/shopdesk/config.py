import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    store_backend: str
    supabase_url: str
    supabase_key: str

    default_shop_id: str
    currency_label: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///shopdesk.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        store_backend=_getenv("STORE_BACKEND", "sql").lower(),
        supabase_url=_getenv("SUPABASE_URL", ""),
        supabase_key=_getenv("SUPABASE_KEY", ""),
        default_shop_id=_getenv("DEFAULT_SHOP_ID", ""),
        currency_label=_getenv("CURRENCY_LABEL", "RS"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "STORE_BACKEND": s.store_backend,
        "SUPABASE_URL": s.supabase_url,
        "SUPABASE_KEY": s.supabase_key,
        "DEFAULT_SHOP_ID": s.default_shop_id,
        "CURRENCY_LABEL": s.currency_label,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # forms only, no uploads
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
