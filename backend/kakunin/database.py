"""SQLAlchemy engine and session factories.

FastAPI endpoints take a session from get_db; Celery tasks and scripts open
their own with SessionLocal or get_db_session. Services flush, callers commit.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from .config import get_settings

DATABASE_URL = get_settings().DATABASE_URL


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Local runs only; the API and its threadpool share the file
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


engine = create_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Session that commits on success and rolls back on error.

    Usage:
        with get_db_session() as session:
            session.add(user)
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


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency; the endpoint decides when to commit."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
