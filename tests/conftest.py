"""
tests/conftest.py

In-memory doubles for the record store and the remote CSV source.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from datetime import date, datetime, timezone

import pytest

from app.config import EnergyIngestionSettings
from app.domain.energy_entry import EnergyEntryRecord
from app.domain.errors import RecordStoreError, SourceUnavailableError
from app.services.bulk_upsert_sink import BulkUpsertSink
from app.services.ingestion_pipeline import IngestionPipeline

FIXED_NOW = datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc)
SOURCE_URL = "https://storage.example.com/uploads/usage.csv?sig=abc"


class InMemoryEnergyEntryStore:
    """
    Dict-backed store that records every bulk_upsert call.

    ``fail_on_call`` makes the N-th call (1-based) raise ``RecordStoreError``
    without applying anything.
    """

    def __init__(self, *, fail_on_call: int | None = None) -> None:
        self.records: dict[str, EnergyEntryRecord] = {}
        self.calls: list[list[EnergyEntryRecord]] = []
        self._fail_on_call = fail_on_call
        self._lock = threading.Lock()

    def bulk_upsert(self, records: Sequence[EnergyEntryRecord]) -> None:
        with self._lock:
            self.calls.append(list(records))
            if self._fail_on_call is not None and len(self.calls) == self._fail_on_call:
                raise RecordStoreError("simulated store outage")
            for record in records:
                self.records[record.id] = record

    def get(self, entry_id: str) -> EnergyEntryRecord | None:
        return self.records.get(entry_id)

    def find(self, owner_id: str, start: date, end: date) -> list[EnergyEntryRecord]:
        return sorted(
            (
                record
                for record in self.records.values()
                if record.owner_id == owner_id and start <= record.entry_date <= end
            ),
            key=lambda record: record.entry_date,
        )

    @property
    def written_ids(self) -> list[str]:
        """Ids in the order they were handed to the store, failed calls excluded."""
        ids: list[str] = []
        for index, call in enumerate(self.calls, start=1):
            if index == self._fail_on_call:
                continue
            ids.extend(record.id for record in call)
        return ids


class FakeByteStream:
    def __init__(self, chunks: list[bytes], *, fail_after_chunks: int | None = None) -> None:
        self._chunks = chunks
        self._fail_after_chunks = fail_after_chunks
        self.closed = False

    def iter_chunks(self) -> Iterator[bytes]:
        for index, chunk in enumerate(self._chunks):
            if self._fail_after_chunks is not None and index >= self._fail_after_chunks:
                raise SourceUnavailableError("connection reset by peer")
            yield chunk
        if self._fail_after_chunks is not None and self._fail_after_chunks >= len(self._chunks):
            raise SourceUnavailableError("connection reset by peer")

    def close(self) -> None:
        self.closed = True


class FakeByteSource:
    """
    Serves a fixed payload, split into ``chunk_size`` byte chunks or given
    explicitly as ``chunks``.
    """

    def __init__(
        self,
        payload: bytes = b"",
        *,
        chunk_size: int = 7,
        chunks: list[bytes] | None = None,
        fail_after_chunks: int | None = None,
        open_error: Exception | None = None,
    ) -> None:
        if chunks is None:
            chunks = [payload[i : i + chunk_size] for i in range(0, len(payload), chunk_size)]
        self._chunks = chunks
        self._fail_after_chunks = fail_after_chunks
        self._open_error = open_error
        self.opened_urls: list[str] = []
        self.streams: list[FakeByteStream] = []

    def open(self, url: str) -> FakeByteStream:
        self.opened_urls.append(url)
        if self._open_error is not None:
            raise self._open_error
        stream = FakeByteStream(self._chunks, fail_after_chunks=self._fail_after_chunks)
        self.streams.append(stream)
        return stream


def csv_payload(*rows: str, header: str = "date,usage(kWh)") -> bytes:
    return ("\n".join((header, *rows)) + "\n").encode("utf-8")


def make_pipeline(
    source: FakeByteSource,
    store: InMemoryEnergyEntryStore,
    *,
    batch_size: int = 100,
    max_operations: int = 100,
    validator=None,
) -> IngestionPipeline:
    return IngestionPipeline(
        source=source,
        sink=BulkUpsertSink(store, max_operations=max_operations),
        settings=EnergyIngestionSettings(batch_size=batch_size, store_max_operations=max_operations),
        validator=validator,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def store() -> InMemoryEnergyEntryStore:
    return InMemoryEnergyEntryStore()
