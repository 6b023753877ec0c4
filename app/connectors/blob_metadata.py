"""
app/connectors/blob_metadata.py

Reads user-defined metadata attached to an uploaded storage object.

Blob storage returns custom metadata as ``x-ms-meta-<name>`` response
headers on a HEAD request; names come back lower-cased without the prefix.
"""

from __future__ import annotations

from typing import Protocol

from app.connectors.base import StorageHTTPClient

METADATA_HEADER_PREFIX = "x-ms-meta-"


class ObjectMetadataReader(Protocol):
    def get_metadata(self, url: str) -> dict[str, str]:
        ...


class BlobMetadataClient(StorageHTTPClient):
    """
    HEADs an object URL and returns its custom metadata.
    """

    source = "blob-metadata"

    def get_metadata(self, url: str) -> dict[str, str]:
        response = self._request(
            method="HEAD",
            url=url,
            headers={"x-ms-version": "2021-08-06"},
        )
        try:
            return {
                name.lower()[len(METADATA_HEADER_PREFIX):]: value
                for name, value in response.headers.items()
                if name.lower().startswith(METADATA_HEADER_PREFIX)
            }
        finally:
            response.close()
