"""Engine, session factory and the request-scoped session dependency.

SQLite only enforces ``ON DELETE`` rules when foreign keys are switched on
per connection, so every SQLite engine created here (and the one used by
the test suite) goes through :func:`enable_sqlite_foreign_keys`.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .core import get_settings


settings = get_settings()


def enable_sqlite_foreign_keys(target: Engine) -> Engine:
    """Turn on ``PRAGMA foreign_keys`` for each new SQLite connection."""
    if target.dialect.name != "sqlite":
        return target

    @event.listens_for(target, "connect")
    def _set_pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return target


engine = enable_sqlite_foreign_keys(
    create_engine(
        settings.DATABASE_URL,
        connect_args=(
            {"check_same_thread": False}
            if settings.DATABASE_URL.startswith("sqlite")
            else {}
        ),
        future=True,
    )
)
"""Engine bound to ``DATABASE_URL``."""


SessionLocal = sessionmaker(bind=engine, autoflush=False, future=True)


Base = declarative_base()
"""Declarative base for users, categories, contacts, mail and drafts."""


def get_db():
    """
    Yield one session per request and close it afterwards.

    Uncommitted work is discarded on close, so a request that fails
    half-way leaves no partial writes behind.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
