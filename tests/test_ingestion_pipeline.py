"""
tests/test_ingestion_pipeline.py

End-to-end runs of the streaming pipeline against in-memory doubles.
"""

import logging
import threading
import time
from datetime import date, timedelta

import pytest

from app.config import EnergyIngestionSettings
from app.domain.energy_entry import EntrySource, RejectionPolicy, RejectionReason
from app.domain.errors import (
    CSVParseError,
    IngestionCancelledError,
    InvalidSourceURLError,
    OwnerResolutionError,
    PersistError,
    SourceUnavailableError,
    ValidationRejectionError,
)
from app.domain.ingestion import IngestionRequest, IngestionState
from app.services.bulk_upsert_sink import BulkUpsertSink
from app.services.ingestion_pipeline import IngestionPipeline
from app.validators.energy_row_validator import EnergyRowValidator
from conftest import (
    FIXED_NOW,
    SOURCE_URL,
    FakeByteSource,
    InMemoryEnergyEntryStore,
    csv_payload,
    make_pipeline,
)


class SpyValidator(EnergyRowValidator):
    def __init__(self) -> None:
        self.seen_rows: list[int] = []

    def validate(self, raw_row, *, row_number):
        self.seen_rows.append(row_number)
        return super().validate(raw_row, row_number=row_number)


def _request(policy: RejectionPolicy = RejectionPolicy.ABORT, owner_id: str = "user-1") -> IngestionRequest:
    return IngestionRequest(source_url=SOURCE_URL, owner_id=owner_id, policy=policy)


def _daily_rows(count: int, *, start: date = date(2015, 1, 1), usage: float = 1.5) -> list[str]:
    return [f"{(start + timedelta(days=offset)).isoformat()},{usage + offset}" for offset in range(count)]


def test_strict_run_fails_on_first_invalid_row_and_writes_nothing(store: InMemoryEnergyEntryStore) -> None:
    source = FakeByteSource(csv_payload("2024-01-01,100", "notadate,50"))

    result = make_pipeline(source, store).run(_request(RejectionPolicy.ABORT))

    assert result.state is IngestionState.FAILED
    assert isinstance(result.error, ValidationRejectionError)
    assert result.error.reason is RejectionReason.INVALID_DATE_FORMAT
    assert result.rows_read == 2
    assert result.rows_rejected == 1
    assert result.rows_persisted == 0
    assert result.batches_written == 0
    assert store.calls == []


def test_lenient_run_skips_invalid_rows(store: InMemoryEnergyEntryStore, caplog) -> None:
    source = FakeByteSource(csv_payload("2024-01-01,100", "notadate,50"))

    with caplog.at_level(logging.WARNING, logger="app.services.ingestion_pipeline"):
        result = make_pipeline(source, store).run(_request(RejectionPolicy.SKIP))

    assert result.state is IngestionState.COMPLETED
    assert result.error is None
    assert result.rows_read == 2
    assert result.rows_persisted == 1
    assert result.rows_rejected == 1
    assert result.batches_written == 1
    assert [rejection.row_number for rejection in result.rejections] == [3]
    assert result.rejections[0].reason is RejectionReason.INVALID_DATE_FORMAT

    record = store.records["user-1-2024-01-01"]
    assert record.owner_id == "user-1"
    assert record.usage == 100.0
    assert record.source == EntrySource.UPLOAD
    assert record.kind == "energyEntry"
    assert record.created_at == FIXED_NOW
    assert any("InvalidDateFormat" in message for message in caplog.messages)


def test_large_file_is_written_in_full_batches(store: InMemoryEnergyEntryStore) -> None:
    rows = _daily_rows(2500)
    source = FakeByteSource(csv_payload(*rows), chunk_size=4096)

    result = make_pipeline(source, store, batch_size=100).run(_request())

    assert result.succeeded
    assert result.rows_persisted == 2500
    assert result.batches_written == 25
    assert len(store.calls) == 25
    assert all(len(call) == 100 for call in store.calls)


def test_trailing_partial_batch_is_flushed(store: InMemoryEnergyEntryStore) -> None:
    source = FakeByteSource(csv_payload(*_daily_rows(250)))

    result = make_pipeline(source, store, batch_size=100).run(_request())

    assert result.succeeded
    assert [len(call) for call in store.calls] == [100, 100, 50]
    assert result.describe() == "Processed 250 rows: 250 persisted in 3 batches, 0 rejected."


def test_batches_larger_than_store_cap_are_subdivided(store: InMemoryEnergyEntryStore) -> None:
    source = FakeByteSource(csv_payload(*_daily_rows(100)))

    result = make_pipeline(source, store, batch_size=100, max_operations=40).run(_request())

    assert result.rows_persisted == 100
    assert result.batches_written == 1
    assert [len(call) for call in store.calls] == [40, 40, 20]


def test_records_reach_the_store_in_file_order(store: InMemoryEnergyEntryStore) -> None:
    start = date(2019, 6, 1)
    source = FakeByteSource(csv_payload(*_daily_rows(333, start=start)), chunk_size=13)

    make_pipeline(source, store, batch_size=10).run(_request())

    expected = [f"user-1-{(start + timedelta(days=offset)).isoformat()}" for offset in range(333)]
    assert store.written_ids == expected


def test_reingesting_a_file_overwrites_by_id(store: InMemoryEnergyEntryStore) -> None:
    rows = _daily_rows(30)
    make_pipeline(FakeByteSource(csv_payload(*rows)), store).run(_request())
    make_pipeline(FakeByteSource(csv_payload(*rows)), store).run(_request())

    assert len(store.records) == 30

    make_pipeline(FakeByteSource(csv_payload("2015-01-01,999")), store).run(_request())

    assert len(store.records) == 30
    assert store.records["user-1-2015-01-01"].usage == 999.0


def test_duplicate_dates_in_one_file_keep_the_last_value(store: InMemoryEnergyEntryStore) -> None:
    source = FakeByteSource(csv_payload("2024-01-01,1", "2024-01-01,2"))

    result = make_pipeline(source, store).run(_request())

    assert result.rows_persisted == 2
    assert store.records["user-1-2024-01-01"].usage == 2.0


def test_unterminated_quote_fails_after_persisting_earlier_rows(store: InMemoryEnergyEntryStore) -> None:
    payload = csv_payload(
        "2024-01-01,1",
        "2024-01-02,2",
        '"2024-01-03,3',
        "2024-01-04,4",
        "2024-01-05,5",
    )
    validator = SpyValidator()

    result = make_pipeline(FakeByteSource(payload), store, validator=validator).run(_request())

    assert result.state is IngestionState.FAILED
    assert isinstance(result.error, CSVParseError)
    assert validator.seen_rows == [2, 3]
    assert result.rows_persisted == 2
    assert sorted(store.records) == ["user-1-2024-01-01", "user-1-2024-01-02"]


def test_broken_stream_fails_after_persisting_rows_already_read(store: InMemoryEnergyEntryStore) -> None:
    chunks = [b"date,usage(kwh)\n", b"2024-01-01,1\n", b"2024-01-02,2\n", b"2024-01-03,3\n"]
    source = FakeByteSource(chunks=chunks, fail_after_chunks=3)

    result = make_pipeline(source, store).run(_request(RejectionPolicy.SKIP))

    assert result.state is IngestionState.FAILED
    assert isinstance(result.error, SourceUnavailableError)
    assert result.rows_read == 2
    assert result.rows_persisted == 2
    assert "user-1-2024-01-03" not in store.records
    assert source.streams[0].closed


def test_store_failure_stops_further_writes() -> None:
    store = InMemoryEnergyEntryStore(fail_on_call=2)
    source = FakeByteSource(csv_payload(*_daily_rows(300)))

    result = make_pipeline(source, store, batch_size=100).run(_request())

    assert result.state is IngestionState.FAILED
    assert isinstance(result.error, PersistError)
    assert result.rows_persisted == 100
    assert result.batches_written == 1
    assert len(store.calls) == 2
    assert len(store.records) == 100


def test_strict_rejection_keeps_batches_already_full(store: InMemoryEnergyEntryStore) -> None:
    rows = _daily_rows(150) + ["2024-02-30,1"] + _daily_rows(10, start=date(2030, 1, 1))
    source = FakeByteSource(csv_payload(*rows))

    result = make_pipeline(source, store, batch_size=100).run(_request())

    assert isinstance(result.error, ValidationRejectionError)
    assert result.error.rejection.row_number == 152
    assert result.rows_persisted == 100
    assert len(store.records) == 100


def test_cancelled_run_writes_nothing(store: InMemoryEnergyEntryStore) -> None:
    cancel_event = threading.Event()
    cancel_event.set()
    source = FakeByteSource(csv_payload(*_daily_rows(20)))

    result = make_pipeline(source, store).run(_request(), cancel_event=cancel_event)

    assert result.state is IngestionState.FAILED
    assert isinstance(result.error, IngestionCancelledError)
    assert result.rows_read == 0
    assert store.calls == []


def test_unreachable_source_fails_the_run(store: InMemoryEnergyEntryStore) -> None:
    source = FakeByteSource(open_error=SourceUnavailableError("csv-source: request failed with HTTP 403."))

    result = make_pipeline(source, store).run(_request())

    assert result.state is IngestionState.FAILED
    assert isinstance(result.error, SourceUnavailableError)
    assert result.rows_read == 0
    assert result.describe().startswith("Ingestion failed after persisting 0 rows")


def test_header_only_file_completes_empty(store: InMemoryEnergyEntryStore) -> None:
    result = make_pipeline(FakeByteSource(csv_payload()), store).run(_request())

    assert result.succeeded
    assert result.rows_read == 0
    assert store.calls == []


def test_rejection_details_are_capped_but_counted(store: InMemoryEnergyEntryStore) -> None:
    pipeline = IngestionPipeline(
        source=FakeByteSource(csv_payload(*[f"2024-01-0{day},x" for day in range(1, 6)])),
        sink=BulkUpsertSink(store),
        settings=EnergyIngestionSettings(max_validation_errors=2, log_validation_errors=False),
    )

    result = pipeline.run(_request(RejectionPolicy.SKIP))

    assert result.succeeded
    assert result.rows_rejected == 5
    assert len(result.rejections) == 2


@pytest.mark.parametrize(
    "url",
    [None, "", "   ", "not a url", "https://storage.example.com", "https://storage.example.com/a b.csv"],
)
def test_invalid_source_url_is_refused_before_fetching(store: InMemoryEnergyEntryStore, url) -> None:
    source = FakeByteSource(csv_payload("2024-01-01,1"))

    with pytest.raises(InvalidSourceURLError):
        make_pipeline(source, store).run(IngestionRequest(source_url=url, owner_id="user-1"))

    assert source.opened_urls == []


def test_missing_owner_is_refused_before_fetching(store: InMemoryEnergyEntryStore) -> None:
    source = FakeByteSource(csv_payload("2024-01-01,1"))

    with pytest.raises(OwnerResolutionError):
        make_pipeline(source, store).run(_request(owner_id=" "))

    assert source.opened_urls == []


def test_undecodable_line_fails_after_persisting_every_earlier_row(store: InMemoryEnergyEntryStore) -> None:
    payload = csv_payload(*_daily_rows(20)) + b"2024-02-01,\xff\n2024-02-02,1\n"

    result = make_pipeline(FakeByteSource(payload, chunk_size=4096), store).run(_request())

    assert isinstance(result.error, CSVParseError)
    assert result.error.line_number == 22
    assert result.rows_read == 20
    assert result.rows_persisted == 20


class GatedEnergyEntryStore(InMemoryEnergyEntryStore):
    """Blocks every write until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = threading.Event()

    def bulk_upsert(self, records) -> None:
        assert self.gate.wait(timeout=10), "store gate never opened"
        super().bulk_upsert(records)


class CountingValidator(EnergyRowValidator):
    def __init__(self) -> None:
        self.validated = 0

    def validate(self, raw_row, *, row_number):
        self.validated += 1
        return super().validate(raw_row, row_number=row_number)


def test_blocked_store_stalls_the_parser() -> None:
    batch_size = 10
    persist_queue_size = 2
    store = GatedEnergyEntryStore()
    validator = CountingValidator()
    pipeline = IngestionPipeline(
        source=FakeByteSource(csv_payload(*_daily_rows(1000)), chunk_size=512),
        sink=BulkUpsertSink(store, max_operations=batch_size),
        settings=EnergyIngestionSettings(
            batch_size=batch_size,
            store_max_operations=batch_size,
            persist_queue_size=persist_queue_size,
            fetch_queue_size=2,
        ),
        validator=validator,
    )
    results = []
    runner = threading.Thread(target=lambda: results.append(pipeline.run(_request())))
    runner.start()

    # One batch in the sink, a full queue, and one batch waiting to be queued.
    ceiling = (persist_queue_size + 2) * batch_size
    for _ in range(10):
        time.sleep(0.05)
        assert validator.validated <= ceiling

    store.gate.set()
    runner.join(timeout=10)

    assert not runner.is_alive()
    assert results[0].succeeded
    assert results[0].rows_persisted == 1000


class BlockingByteStream:
    """Serves one chunk, then blocks like a stalled network read until closed."""

    def __init__(self, first_chunk: bytes) -> None:
        self._first_chunk = first_chunk
        self._closed = threading.Event()
        self.released_by_close = False

    def iter_chunks(self):
        yield self._first_chunk
        self.released_by_close = self._closed.wait(timeout=5)

    def close(self) -> None:
        self._closed.set()


class BlockingByteSource:
    def __init__(self, stream: BlockingByteStream) -> None:
        self._stream = stream

    def open(self, url: str) -> BlockingByteStream:
        return self._stream


def test_strict_abort_releases_a_fetch_blocked_on_the_network(store: InMemoryEnergyEntryStore) -> None:
    stream = BlockingByteStream(b"date,usage(kwh)\nnotadate,1\n")
    pipeline = IngestionPipeline(source=BlockingByteSource(stream), sink=BulkUpsertSink(store))

    started = time.monotonic()
    result = pipeline.run(_request(RejectionPolicy.ABORT))

    assert isinstance(result.error, ValidationRejectionError)
    assert stream.released_by_close
    assert time.monotonic() - started < 4
