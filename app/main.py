from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service or database connection is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.
    """

    from db.config import load_env_files, normalize_postgres_url

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    raw_url = os.getenv("DATABASE_URL", "").strip()
    if not raw_url:
        errors.append("DATABASE_URL is not set (PostgreSQL only).")
    elif not normalize_postgres_url(raw_url).startswith("postgresql"):
        errors.append("DATABASE_URL must be a PostgreSQL URL.")

    # --- Rejection policies ---------------------------------------------
    for name in ("ENERGY_UPLOAD_REJECTION_POLICY", "STORAGE_EVENT_REJECTION_POLICY"):
        raw = os.getenv(name)
        if raw is not None and raw.strip().lower() not in {"abort", "skip", "strict", "lenient"}:
            errors.append(
                f"{name}='{raw.strip()}' is not valid. Allowed values: abort, skip."
            )

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Does NOT auto-migrate: a missing table aborts startup so the operator
    runs 'alembic upgrade head' first.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        logging.getLogger(__name__).critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema before serving traffic."""
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")
    yield


def create_app(*, check_environment: bool = True, lifespan_checks: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    if check_environment:
        _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Energy Usage Ingestion API",
        version="1.0.0",
        lifespan=_lifespan if lifespan_checks else None,
    )

    from app.api.routers import (
        energy_entries_router,
        energy_upload_router,
        storage_events_router,
    )

    application.include_router(energy_upload_router)
    application.include_router(storage_events_router)
    application.include_router(energy_entries_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "healthy"}

    return application
