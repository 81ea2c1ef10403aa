"""Engine and session wiring for the CRM database."""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from imobipro.core.config import get_config

logger = logging.getLogger(__name__)

config = get_config()
LOCAL_SQLITE_URL = "sqlite:///./imobipro.db"

DATABASE_URL: str = config.DATABASE_URL
engine: Engine
SessionLocal: sessionmaker


def enable_sqlite_foreign_keys(sqlite_engine: Engine) -> None:
    """Turn on FK enforcement so contact deletes cascade to activities and appointments."""

    @event.listens_for(sqlite_engine, "connect")
    def _foreign_keys_on(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _engine_options(database_url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": config.DEBUG and config.LOG_LEVEL == "DEBUG"}
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(pool_pre_ping=True, pool_recycle=1800, pool_size=10, max_overflow=20)
    return options


def _bind(database_url: str) -> None:
    global DATABASE_URL, engine, SessionLocal
    new_engine = create_engine(database_url, **_engine_options(database_url))
    if database_url.startswith("sqlite"):
        enable_sqlite_foreign_keys(new_engine)
    DATABASE_URL = database_url
    engine = new_engine
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


_bind(DATABASE_URL)


def get_engine() -> Engine:
    return engine


def get_active_database_url() -> str:
    """URL the session factory is bound to; differs from config after a fallback."""
    return DATABASE_URL


def reset_engine(database_url: str | None = None) -> None:
    _bind(database_url or DATABASE_URL)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session for FastAPI dependencies."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Session for workers and scripts; rolls back whatever was left uncommitted."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _ping(target: Engine) -> None:
    with target.connect() as conn:
        conn.execute(text("SELECT 1"))


def verify_database_connection() -> bool:
    """Check connectivity at startup, switching to local SQLite when allowed."""
    try:
        _ping(engine)
        return True
    except SQLAlchemyError as exc:
        if config.DB_CONNECTIVITY_REQUIRED:
            logger.exception("database.connection_failed", extra={"event": "database.connection_failed"})
            return False
        logger.warning(
            "database.connection_failed.optional",
            extra={"event": "database.connection_failed.optional", "reason": str(exc)},
        )
        return _use_local_sqlite(reason=str(exc))


def _use_local_sqlite(reason: str) -> bool:
    if DATABASE_URL.startswith("sqlite"):
        return False
    previous_url = DATABASE_URL
    _bind(LOCAL_SQLITE_URL)
    try:
        _ping(engine)
    except SQLAlchemyError as exc:
        _bind(previous_url)
        logger.error(
            "database.connection_fallback.failed",
            extra={"event": "database.connection_fallback.failed", "reason": str(exc)},
        )
        return False
    logger.warning(
        "database.connection_fallback.sqlite",
        extra={
            "event": "database.connection_fallback.sqlite",
            "from_scheme": previous_url.split("://", 1)[0],
            "reason": reason,
        },
    )
    return True
