# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
SQLAlchemy engine, session factory, declarative base, and the FastAPI
dependency that provides a DB session per request.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from core.config import settings


def build_engine(url: str, **kwargs) -> Engine:
    """
    Create an engine for *url*.  SQLite needs cross-thread access (FastAPI
    runs sync handlers in a thread pool) and has foreign keys off by default.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        eng = create_engine(url, **kwargs)

        @event.listens_for(eng, "connect")
        def _enable_foreign_keys(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return eng

    # pool_pre_ping keeps idle connections alive across MySQL's wait_timeout
    return create_engine(url, pool_pre_ping=True, **kwargs)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    FastAPI dependency.  Yields a session for the duration of the request,
    then closes it.  Use with Depends(get_db).
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create any missing tables.  Alembic remains the path for upgrades."""
    # Import every ORM model so that Base.metadata knows about all tables.
    import models.user          # noqa: F401
    import models.book          # noqa: F401
    import models.shelf_item    # noqa: F401
    import models.session       # noqa: F401
    import models.audit_log     # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
