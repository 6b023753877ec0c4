"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.domain.energy_entry import RejectionPolicy
from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_char_env(name: str, default: str | None) -> str | None:
    """
    Read a single-character setting; whitespace is significant (e.g. tab).
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None or value == "":
        return default
    if value == "\\t":
        return "\t"
    if len(value) != 1:
        return default
    return value


def _get_policy_env(name: str, default: RejectionPolicy) -> RejectionPolicy:
    """
    Read a row rejection policy (abort/skip, strict/lenient) with fallback.
    """

    raw_value = _get_optional_str_env(name)
    if raw_value is None:
        return default
    try:
        return RejectionPolicy.parse(raw_value)
    except ValueError:
        return default


@dataclass(frozen=True)
class EnergyIngestionSettings:
    """
    Runtime settings for streamed energy CSV ingestion.
    """

    batch_size: int = 100
    store_max_operations: int = 100
    fetch_queue_size: int = 8
    persist_queue_size: int = 2
    chunk_size: int = 64 * 1024
    max_validation_errors: int = 500
    log_validation_errors: bool = True
    upload_rejection_policy: RejectionPolicy = RejectionPolicy.ABORT
    storage_event_rejection_policy: RejectionPolicy = RejectionPolicy.SKIP


@dataclass(frozen=True)
class CSVDialectSettings:
    """
    Field delimiter and quoting convention of incoming CSV files.
    """

    delimiter: str = ","
    quotechar: str = '"'
    escapechar: str | None = None
    doublequote: bool = True


@dataclass(frozen=True)
class SourceHTTPSettings:
    """
    HTTP behavior settings for fetching remote CSV files.
    """

    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0


@lru_cache(maxsize=1)
def get_energy_ingestion_settings() -> EnergyIngestionSettings:
    """
    Return cached energy ingestion settings from environment variables.
    """

    return EnergyIngestionSettings(
        batch_size=max(1, _get_int_env("ENERGY_INGEST_BATCH_SIZE", 100)),
        store_max_operations=max(1, _get_int_env("ENERGY_INGEST_STORE_MAX_OPERATIONS", 100)),
        fetch_queue_size=max(1, _get_int_env("ENERGY_INGEST_FETCH_QUEUE_SIZE", 8)),
        persist_queue_size=max(1, _get_int_env("ENERGY_INGEST_PERSIST_QUEUE_SIZE", 2)),
        chunk_size=max(1024, _get_int_env("ENERGY_INGEST_CHUNK_SIZE", 64 * 1024)),
        max_validation_errors=max(1, _get_int_env("ENERGY_INGEST_MAX_VALIDATION_ERRORS", 500)),
        log_validation_errors=_get_bool_env("ENERGY_INGEST_LOG_VALIDATION_ERRORS", True),
        upload_rejection_policy=_get_policy_env(
            "ENERGY_UPLOAD_REJECTION_POLICY", RejectionPolicy.ABORT
        ),
        storage_event_rejection_policy=_get_policy_env(
            "STORAGE_EVENT_REJECTION_POLICY", RejectionPolicy.SKIP
        ),
    )


@lru_cache(maxsize=1)
def get_csv_dialect_settings() -> CSVDialectSettings:
    """
    Return the CSV dialect used to parse uploaded files.
    """

    return CSVDialectSettings(
        delimiter=_get_char_env("CSV_DELIMITER", ",") or ",",
        quotechar=_get_char_env("CSV_QUOTECHAR", '"') or '"',
        escapechar=_get_char_env("CSV_ESCAPECHAR", None),
        doublequote=_get_bool_env("CSV_DOUBLEQUOTE", True),
    )


@lru_cache(maxsize=1)
def get_source_http_settings() -> SourceHTTPSettings:
    """
    Return HTTP settings for the remote CSV source from environment variables.
    """

    return SourceHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("SOURCE_HTTP_TIMEOUT_SECONDS", 30.0)),
        max_retries=max(0, _get_int_env("SOURCE_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("SOURCE_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("SOURCE_HTTP_BACKOFF_MULTIPLIER", 2.0)),
    )
