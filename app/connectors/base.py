"""
app/connectors/base.py

Shared HTTP mechanics for talking to remote object storage.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any

import requests

from app.config import SourceHTTPSettings
from app.domain.errors import InvalidSourceURLError, SourceUnavailableError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# scheme://host/path with no embedded whitespace anywhere.
SOURCE_URL_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://[^\s/?#]+/[^\s]*$")


def validate_source_url(url: str | None) -> str:
    """
    Return the stripped URL or raise ``InvalidSourceURLError``.
    """

    if url is None or not url.strip():
        raise InvalidSourceURLError("A source URL is required.")
    candidate = url.strip()
    if not SOURCE_URL_PATTERN.match(candidate):
        raise InvalidSourceURLError(
            "Source URL must look like scheme://host/path and contain no whitespace."
        )
    return candidate


class StorageHTTPClient:
    """
    Base client with retry and exponential backoff for storage requests.

    Only failures that happen before a response is handed back are retried;
    a body that breaks mid-read is the caller's concern.
    """

    source: str = "storage"

    def __init__(
        self,
        *,
        http_settings: SourceHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout_seconds = http_settings.timeout_seconds
        self._max_retries = http_settings.max_retries
        self._backoff_initial_seconds = http_settings.backoff_initial_seconds
        self._backoff_multiplier = http_settings.backoff_multiplier

    def _request(
        self,
        *,
        method: str,
        url: str,
        stream: bool = False,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Execute an HTTP request with exponential backoff on transient failures.
        """

        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    headers=headers,
                    stream=stream,
                    timeout=self._timeout_seconds,
                    **kwargs,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    response.close()
                    raise requests.HTTPError(
                        f"Retryable HTTP status code: {response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return response
            except requests.HTTPError as exc:
                last_error = exc
                status_code = exc.response.status_code if exc.response is not None else None
                if status_code not in RETRYABLE_STATUS_CODES:
                    logger.error(
                        "Storage request failed source=%s method=%s status=%s url=%s",
                        self.source,
                        method,
                        status_code,
                        _redact(url),
                    )
                    raise SourceUnavailableError(
                        f"{self.source}: request failed with HTTP {status_code}."
                    ) from exc
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc

            if attempt >= self._max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                "Storage request retry source=%s attempt=%s/%s wait_seconds=%.2f url=%s",
                self.source,
                attempt + 1,
                self._max_retries,
                backoff_seconds,
                _redact(url),
            )
            time.sleep(backoff_seconds)

        logger.error(
            "Storage request exhausted retries source=%s url=%s error=%s",
            self.source,
            _redact(url),
            last_error,
        )
        raise SourceUnavailableError(f"{self.source}: request failed after retries.") from last_error


def _redact(url: str) -> str:
    """
    Drop the query string so pre-signed credentials never reach the logs.
    """

    return url.split("?", 1)[0]
