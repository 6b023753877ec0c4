"""
db/session.py

Engine and sessions for the energy entry store.

Nothing connects until the first session is opened, so the API and the
tests can import this module without a database.
"""

from __future__ import annotations

from collections.abc import Iterator
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import get_database_settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    settings = get_database_settings()
    return create_engine(
        settings.url,
        echo=settings.echo,
        pool_pre_ping=True,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_recycle=settings.pool_recycle_seconds,
    )


@lru_cache(maxsize=1)
def _session_factory() -> sessionmaker:
    # Records handed back after commit must stay readable without a refresh.
    return sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)


def SessionLocal() -> Session:
    """
    Open a new session. Each request and each storage-triggered run owns one.
    """

    return _session_factory()()


def get_db() -> Iterator[Session]:
    """
    FastAPI dependency yielding a request-scoped session.
    """

    with SessionLocal() as session:
        yield session
