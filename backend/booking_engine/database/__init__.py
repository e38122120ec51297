"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.config import settings

logger = logging.getLogger(__name__)

# SQLite serializes writers with a file lock; wait for it rather than failing fast.
SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _is_memory_sqlite(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in db_url


def build_engine_kwargs(db_url: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
        }
        if _is_memory_sqlite(db_url):
            kwargs["poolclass"] = StaticPool
    return kwargs


def build_engine(db_url: str) -> Engine:
    new_engine = create_engine(db_url, **build_engine_kwargs(db_url))

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        logger.debug("Database connection established")

    return new_engine


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, expire_on_commit=False)


engine: Engine = build_engine(settings.database_url)

SessionLocal = build_session_factory(engine)

Base: DeclarativeMeta = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables on ``bind`` (defaults to the process engine)."""
    from .. import models  # noqa: F401  (registers mappers on Base.metadata)

    Base.metadata.create_all(bind=bind or engine)


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "engine",
    "init_db",
]
