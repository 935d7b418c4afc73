"""
Database configuration for SQLAlchemy + SQLite.

SQLite keeps saved queries local with no extra services; tests point
make_engine() at an in-memory database instead.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

from .settings import settings

DATABASE_URL = f"sqlite:///{settings.sqlite_path}"


def make_engine(url: str = DATABASE_URL) -> Engine:
    """Engine with the SQLite options FastAPI needs."""
    kwargs = {}
    if url.startswith("sqlite"):
        # FastAPI runs sync dependencies in a threadpool.
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url:
            # One shared connection, otherwise every session sees an empty DB.
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


engine = make_engine()

# Session factory used by dependency injection
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class for ORM models."""
    pass


def get_db():
    """
    FastAPI dependency that yields a DB session per request,
    then closes it cleanly afterwards.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
