"""
db/session.py

SQLAlchemy engine and session factory.

Nothing touches the database at import time: the engine is built on first
use, so the pure ``insights`` engine and the unit tests import cleanly
without a configured URL.
"""

from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import resolve_database_url

# env var -> (create_engine kwarg, default)
POOL_ENV = {
    "DB_POOL_SIZE": ("pool_size", 5),
    "DB_MAX_OVERFLOW": ("max_overflow", 10),
    "DB_POOL_RECYCLE": ("pool_recycle", 1800),
}


def _pool_options() -> dict[str, int]:
    options = {}
    for env_name, (kwarg, default) in POOL_ENV.items():
        raw = os.getenv(env_name, "").strip()
        options[kwarg] = int(raw) if raw.lstrip("-").isdigit() else default
    return options


def create_db_engine() -> Engine:
    """Build a pooled psycopg engine from the resolved database URL."""
    database_url = resolve_database_url()
    if not database_url.startswith("postgresql"):
        raise RuntimeError("Only PostgreSQL URLs are supported.")

    return create_engine(
        database_url,
        echo=os.getenv("SQL_ECHO", "").strip().lower() in {"1", "true", "yes", "on"},
        pool_pre_ping=True,
        **_pool_options(),
    )


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def _session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)


def SessionLocal() -> Session:
    return _session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Yield a session for one unit of work (a request or a sweep tick).

    Commits are the caller's job; the session is always closed on exit.
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency wrapping :func:`session_scope`."""
    with session_scope() as db:
        yield db
