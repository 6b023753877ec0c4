"""
app/connectors package marker.
"""

from app.connectors.base import StorageHTTPClient, validate_source_url
from app.connectors.blob_metadata import BlobMetadataClient, ObjectMetadataReader
from app.connectors.csv_source import ByteSource, ByteStream, HTTPByteStream, RemoteCSVSource

__all__ = [
    "BlobMetadataClient",
    "ByteSource",
    "ByteStream",
    "HTTPByteStream",
    "ObjectMetadataReader",
    "RemoteCSVSource",
    "StorageHTTPClient",
    "validate_source_url",
]
