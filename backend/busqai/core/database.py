"""
Local store connection management.

WHAT: SQLite store for the session token and the shopping list
WHY: The only state the client keeps across restarts; everything else lives in the data service
HOW: SQLAlchemy sync engine (WAL journal), transactional session context manager
"""

from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

SQLITE_PREFIX = "sqlite:///"

Base = declarative_base()


def _create_engine(url: str) -> Engine:
    """Engine for the local store; creates the SQLite file's directory."""
    if url.startswith(SQLITE_PREFIX):
        Path(url[len(SQLITE_PREFIX):]).parent.mkdir(parents=True, exist_ok=True)
        local = create_engine(url, connect_args={"check_same_thread": False}, echo=settings.DEBUG)

        @event.listens_for(local, "connect")
        def _sqlite_pragmas(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return local
    return create_engine(url, echo=settings.DEBUG)


engine = _create_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@contextmanager
def get_db():
    """
    Transactional session.

    Commits when the block exits normally, rolls back and re-raises otherwise.

    Usage:
        with get_db() as db:
            db.add(entry)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def ping_database() -> dict:
    """Connectivity check for /status and /health; never raises."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).scalar()
    except Exception as e:
        logger.error(f"Local store ping failed: {e}")
        return {"available": False, "url": settings.DATABASE_URL, "error": str(e)}
    return {"available": True, "url": settings.DATABASE_URL, "error": None}


def init_db() -> None:
    """Create the local tables if they do not exist."""
    from . import models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(bind=engine)
    logger.info("Local store ready")


def close_db() -> None:
    """Release pooled connections (shutdown)."""
    engine.dispose()
    logger.info("Local store connections closed")
