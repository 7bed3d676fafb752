from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from farealert.config import get_settings
import logging

logger = logging.getLogger(__name__)
settings = get_settings()

db_url = settings.database_url


def _connect_args(url: str) -> dict:
    """Bound how long a connection attempt (or SQLite lock wait) may block."""
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": settings.database_timeout_seconds}
    if url.startswith("postgresql"):
        return {"connect_timeout": settings.database_timeout_seconds}
    return {}


engine = create_engine(db_url, connect_args=_connect_args(db_url))


def enable_sqlite_foreign_keys(target_engine):
    # Without this, ON DELETE CASCADE doesn't work!
    @event.listens_for(target_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if db_url.startswith("sqlite"):
    enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def utc_now() -> datetime:
    """Current time as a naive UTC datetime, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
