"""
db/config.py

Connection settings for the energy entry store.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(__file__).resolve().parents[1] / ".env"


def load_env_files() -> None:
    """
    Copy KEY=VALUE pairs from the project `.env` into the process environment.

    Variables already present in the environment are left untouched.
    """

    if not ENV_FILE.exists():
        return
    for key, value in _read_env_file(ENV_FILE):
        os.environ.setdefault(key, value)


def _read_env_file(path: Path) -> Iterator[tuple[str, str]]:
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, separator, value = line.partition("=")
        key = key.strip()
        if separator and key:
            yield key, value.strip().strip("\"'")


def normalize_postgres_url(url: str) -> str:
    """
    Point bare postgres URLs at SQLAlchemy's psycopg (v3) driver.
    """

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, ""))
    except ValueError:
        return default


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle_seconds: int = 1800


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
    """
    Read the energy store's connection settings from the environment.

    Raises:
        RuntimeError: If DATABASE_URL is missing or not a PostgreSQL URL.
    """

    load_env_files()
    raw_url = os.getenv("DATABASE_URL", "").strip()
    if not raw_url:
        raise RuntimeError("DATABASE_URL is not set; the energy entry store needs PostgreSQL.")
    url = normalize_postgres_url(raw_url)
    if not url.startswith("postgresql"):
        raise RuntimeError("DATABASE_URL must be a PostgreSQL URL.")

    return DatabaseSettings(
        url=url,
        echo=os.getenv("SQL_ECHO", "").strip().lower() in {"1", "true", "yes", "on"},
        pool_size=max(1, _env_int("DB_POOL_SIZE", 5)),
        max_overflow=max(0, _env_int("DB_MAX_OVERFLOW", 10)),
        pool_recycle_seconds=_env_int("DB_POOL_RECYCLE", 1800),
    )
