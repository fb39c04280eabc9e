from __future__ import annotations

import os
from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

_SESSION_OPTIONS: dict[str, object] = {
    "class_": Session,
    "autoflush": False,
    "autocommit": False,
    "expire_on_commit": False,
    "future": True,
}


def engine_options(db_url: str) -> dict[str, object]:
    """create_engine() kwargs for the app and the scripts."""
    opts: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        opts.update(pool_recycle=1800, pool_size=5, max_overflow=10, pool_timeout=30)
    return opts


def make_engine(db_url: str) -> Engine:
    return create_engine(db_url, **engine_options(db_url))


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, **_SESSION_OPTIONS)


def init_db(app: Flask) -> None:
    engine = make_engine(app.config["DATABASE_URL"])
    if app.config.get("ENV") != "production":
        @event.listens_for(engine, "checkout")
        def _on_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            app.logger.debug("DB connection checkout (store=%s)", app.config.get("STORE_BACKEND"))
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)


def db_session(app: Flask | None = None) -> Session:
    """
    Request-scoped session, opened lazily by the sql document store.
    """
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        sm = (app or current_app).extensions["sqlalchemy_sessionmaker"]
        s = g.db_session = sm()
    return s


def teardown_db_session(_exc: BaseException | None) -> None:
    # The store wraps the session, so drop both together.
    g.pop("document_store", None)
    s: Session | None = g.pop("db_session", None)
    if s is None:
        return
    try:
        s.close()
    except Exception as e:
        current_app.logger.warning("DB session close failed: %s", e)


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Session outside a request (tests, shell). Commits on success.
    """
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def register_fork_disposal(app: Flask) -> None:
    """
    gunicorn --preload forks after create_app(); children must not reuse
    the parent's pooled connections.
    """
    if not hasattr(os, "register_at_fork"):
        return

    def _dispose_in_child() -> None:
        engine = app.extensions.get("sqlalchemy_engine")
        if engine is not None:
            engine.dispose()
            app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

    os.register_at_fork(after_in_child=_dispose_in_child)
