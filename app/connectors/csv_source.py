"""
app/connectors/csv_source.py

Streamed download of remote CSV files.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Protocol

import requests

from app.config import SourceHTTPSettings
from app.connectors.base import StorageHTTPClient
from app.domain.errors import SourceUnavailableError

logger = logging.getLogger(__name__)


class ByteStream(Protocol):
    """
    An opened source: yields raw byte chunks and must be closed.
    """

    def iter_chunks(self) -> Iterator[bytes]:
        ...

    def close(self) -> None:
        ...


class ByteSource(Protocol):
    def open(self, url: str) -> ByteStream:
        ...


class HTTPByteStream:
    """
    Chunk iterator over one streamed HTTP response.
    """

    def __init__(self, response: requests.Response, *, chunk_size: int) -> None:
        self._response = response
        self._chunk_size = chunk_size

    def iter_chunks(self) -> Iterator[bytes]:
        try:
            for chunk in self._response.iter_content(chunk_size=self._chunk_size):
                if chunk:
                    yield chunk
        except requests.RequestException as exc:
            raise SourceUnavailableError(f"Source stream broke mid-read: {exc}") from exc

    def close(self) -> None:
        self._response.close()


class RemoteCSVSource(StorageHTTPClient):
    """
    Opens a remote CSV (e.g. a pre-signed object URL) as a byte stream.
    """

    source = "csv-source"

    def __init__(
        self,
        *,
        http_settings: SourceHTTPSettings,
        chunk_size: int = 64 * 1024,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(http_settings=http_settings, session=session)
        self._chunk_size = max(1, chunk_size)

    def open(self, url: str) -> HTTPByteStream:
        """
        Start a streamed GET. No body bytes are read yet.

        Raises:
            SourceUnavailableError: If the request fails after retries.
        """

        response = self._request(method="GET", url=url, stream=True)
        logger.info(
            "Opened CSV source status=%s content_length=%s",
            response.status_code,
            response.headers.get("Content-Length"),
        )
        return HTTPByteStream(response, chunk_size=self._chunk_size)
