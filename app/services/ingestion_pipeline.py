"""
app/services/ingestion_pipeline.py

Streaming ingestion of remote energy usage CSV files.

One run moves through a linear state machine:

    IDLE -> FETCHING -> STREAMING -> COMPLETED | FAILED

STREAMING is three stages joined by bounded queues:

    fetch thread  --chunks-->  calling thread  --batches-->  persist thread
    (network read)             (parse, validate,            (one sink write
                                accumulate)                  in flight)

A slow sink fills the batch queue and stalls the parser, which in turn
fills the chunk queue and stalls the download. Peak memory is bounded by
batch size and queue depth, never by file size.

Failure handling:
  - Strict rejection or cancellation discards the pending partial batch;
    batches that were already full are still written.
  - A parse error or a broken stream flushes the rows validated before the
    fault, then fails the run.
  - A persist error stops all further writes.
Written batches are never rolled back; ids are deterministic, so re-running
the ingestion is always safe.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterator
from datetime import datetime, timezone

from app.config import (
    EnergyIngestionSettings,
    get_csv_dialect_settings,
    get_energy_ingestion_settings,
    get_source_http_settings,
)
from app.connectors.base import validate_source_url
from app.connectors.csv_source import ByteSource, ByteStream, RemoteCSVSource
from app.domain.energy_entry import EnergyEntryRecord, RejectionPolicy, RowRejection
from app.domain.errors import (
    CSVParseError,
    IngestionCancelledError,
    IngestionError,
    OwnerResolutionError,
    PersistError,
    SourceUnavailableError,
    ValidationRejectionError,
)
from app.domain.ingestion import IngestionRequest, IngestionResult, IngestionState
from app.normalization.row_normalizer import RowNormalizer
from app.repositories.energy_entry_repository import EnergyEntryStore
from app.services.batch_accumulator import BatchAccumulator
from app.services.bulk_upsert_sink import BulkUpsertSink
from app.validators.energy_row_validator import EnergyRowValidator

logger = logging.getLogger(__name__)

_END = object()
_QUEUE_POLL_SECONDS = 0.1
_FETCH_JOIN_SECONDS = 5.0


class IngestionPipeline:
    """
    Wires a remote byte stream through normalize -> validate -> batch -> sink.

    The pipeline itself is stateless between runs; every ``run`` call builds
    its own queues, threads and counters.
    """

    def __init__(
        self,
        *,
        source: ByteSource,
        sink: BulkUpsertSink,
        settings: EnergyIngestionSettings | None = None,
        normalizer: RowNormalizer | None = None,
        validator: EnergyRowValidator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._sink = sink
        self._settings = settings or EnergyIngestionSettings()
        self._normalizer = normalizer or RowNormalizer()
        self._validator = validator or EnergyRowValidator()
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    def run(
        self,
        request: IngestionRequest,
        *,
        cancel_event: threading.Event | None = None,
    ) -> IngestionResult:
        """
        Ingest one remote CSV file.

        Failures that happen once the run has started (source, parse,
        strict validation, persistence, cancellation) are reported on the
        returned result rather than raised.

        Raises:
            InvalidSourceURLError: If the URL is missing or malformed.
            OwnerResolutionError: If the request carries no owner.
        """

        url = validate_source_url(request.source_url)
        if not request.owner_id or not request.owner_id.strip():
            raise OwnerResolutionError("An owning identity is required to ingest a file.")

        run = _IngestionRun(
            request=request,
            url=url,
            source=self._source,
            sink=self._sink,
            settings=self._settings,
            normalizer=self._normalizer,
            validator=self._validator,
            clock=self._clock,
            cancel_event=cancel_event,
        )
        return run.execute()


class _IngestionRun:
    """
    State and counters of one ingestion run.

    ``_rows_persisted`` and ``_batches_written`` are only written by the
    persist thread and only read after it has been joined.
    """

    def __init__(
        self,
        *,
        request: IngestionRequest,
        url: str,
        source: ByteSource,
        sink: BulkUpsertSink,
        settings: EnergyIngestionSettings,
        normalizer: RowNormalizer,
        validator: EnergyRowValidator,
        clock: Callable[[], datetime],
        cancel_event: threading.Event | None,
    ) -> None:
        self._request = request
        self._url = url
        self._source = source
        self._sink = sink
        self._settings = settings
        self._normalizer = normalizer
        self._validator = validator
        self._clock = clock
        self._cancel_event = cancel_event

        self.state = IngestionState.IDLE
        self._rows_read = 0
        self._rows_rejected = 0
        self._rows_persisted = 0
        self._batches_written = 0
        self._rejections: list[RowRejection] = []
        self._persist_error: PersistError | None = None

        self._fetch_stop = threading.Event()
        self._persist_failed = threading.Event()
        self._chunk_queue: queue.Queue = queue.Queue(maxsize=settings.fetch_queue_size)
        self._batch_queue: queue.Queue = queue.Queue(maxsize=settings.persist_queue_size)

    def execute(self) -> IngestionResult:
        logger.info(
            "Energy ingestion started owner=%s policy=%s batch_size=%s",
            self._request.owner_id,
            self._request.policy.value,
            self._settings.batch_size,
        )
        self.state = IngestionState.FETCHING
        try:
            stream = self._source.open(self._url)
        except SourceUnavailableError as exc:
            return self._finish(exc)

        self.state = IngestionState.STREAMING
        fetcher = threading.Thread(
            target=self._fetch_loop,
            args=(stream,),
            name="energy-ingest-fetch",
            daemon=True,
        )
        persister = threading.Thread(
            target=self._persist_loop,
            name="energy-ingest-persist",
            daemon=True,
        )
        fetcher.start()
        persister.start()

        try:
            stream_error = self._parse_loop()
        finally:
            self._fetch_stop.set()
            # Unblocks a fetch thread parked in a network read.
            stream.close()
            self._batch_queue.put(_END)
            persister.join()
            fetcher.join(timeout=_FETCH_JOIN_SECONDS)
            if fetcher.is_alive():
                logger.warning("Fetch stage still blocked on network read after shutdown.")

        return self._finish(stream_error or self._persist_error)

    # ------------------------------------------------------------------
    # Stage 1: fetch
    # ------------------------------------------------------------------

    def _fetch_loop(self, stream: ByteStream) -> None:
        try:
            for chunk in stream.iter_chunks():
                if not self._offer(self._chunk_queue, chunk):
                    return
            self._offer(self._chunk_queue, _END)
        except SourceUnavailableError as exc:
            self._offer(self._chunk_queue, exc)
        except Exception as exc:  # noqa: BLE001
            if self._fetch_stop.is_set():
                return
            logger.exception("Unexpected failure while reading the CSV source")
            error = SourceUnavailableError(f"Source stream failed: {exc}")
            error.__cause__ = exc
            self._offer(self._chunk_queue, error)
        finally:
            stream.close()

    def _offer(self, target: queue.Queue, item: object) -> bool:
        """
        Blocking put that gives up once the run has stopped fetching.
        """

        while not self._fetch_stop.is_set():
            try:
                target.put(item, timeout=_QUEUE_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def _iter_chunks(self) -> Iterator[bytes]:
        while True:
            item = self._chunk_queue.get()
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    # ------------------------------------------------------------------
    # Stage 2: parse, validate, accumulate
    # ------------------------------------------------------------------

    def _parse_loop(self) -> IngestionError | None:
        accumulator = BatchAccumulator(self._settings.batch_size)
        rows = self._normalizer.iter_rows_from_stream(self._iter_chunks())
        try:
            for row_number, raw_row in rows:
                if self._persist_failed.is_set():
                    accumulator.discard()
                    return None
                if self._cancel_event is not None and self._cancel_event.is_set():
                    dropped = accumulator.discard()
                    return IngestionCancelledError(
                        f"Ingestion cancelled at row {row_number}; "
                        f"{dropped} buffered rows were not written."
                    )

                self._rows_read += 1
                outcome = self._validator.validate(raw_row, row_number=row_number)
                if isinstance(outcome, RowRejection):
                    self._record_rejection(outcome)
                    if self._request.policy is RejectionPolicy.ABORT:
                        accumulator.discard()
                        return ValidationRejectionError(outcome)
                    continue

                record = EnergyEntryRecord.from_reading(
                    outcome,
                    owner_id=self._request.owner_id,
                    source=self._request.source,
                    created_at=self._clock(),
                )
                batch = accumulator.add(record)
                if batch is not None:
                    self._batch_queue.put(batch)
        except (CSVParseError, SourceUnavailableError) as exc:
            self._hand_off_remaining(accumulator)
            return exc
        finally:
            rows.close()

        self._hand_off_remaining(accumulator)
        return None

    def _hand_off_remaining(self, accumulator: BatchAccumulator) -> None:
        if self._persist_failed.is_set():
            accumulator.discard()
            return
        batch = accumulator.flush()
        if batch is not None:
            self._batch_queue.put(batch)

    def _record_rejection(self, rejection: RowRejection) -> None:
        self._rows_rejected += 1
        if self._settings.log_validation_errors:
            logger.warning(
                "Energy CSV row rejected row=%s reason=%s message=%s value=%r",
                rejection.row_number,
                rejection.reason.value,
                rejection.message,
                rejection.value,
            )
        if len(self._rejections) < self._settings.max_validation_errors:
            self._rejections.append(rejection)

    # ------------------------------------------------------------------
    # Stage 3: persist
    # ------------------------------------------------------------------

    def _persist_loop(self) -> None:
        while True:
            batch = self._batch_queue.get()
            if batch is _END:
                return
            if self._persist_error is not None:
                continue
            try:
                written = self._sink.write(batch)
            except PersistError as exc:
                self._rows_persisted += exc.applied
                self._persist_error = exc
                self._persist_failed.set()
                continue
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected failure while persisting an energy batch")
                error = PersistError(
                    f"Unexpected persistence failure: {exc}",
                    record_ids=[record.id for record in batch],
                )
                error.__cause__ = exc
                self._persist_error = error
                self._persist_failed.set()
                continue
            self._rows_persisted += written
            self._batches_written += 1

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _finish(self, error: IngestionError | None) -> IngestionResult:
        self.state = IngestionState.FAILED if error is not None else IngestionState.COMPLETED
        result = IngestionResult(
            state=self.state,
            rows_read=self._rows_read,
            rows_persisted=self._rows_persisted,
            rows_rejected=self._rows_rejected,
            batches_written=self._batches_written,
            rejections=list(self._rejections),
            error=error,
        )
        if error is None:
            logger.info(
                "Energy ingestion completed owner=%s rows_read=%s rows_persisted=%s "
                "rows_rejected=%s batches=%s",
                self._request.owner_id,
                result.rows_read,
                result.rows_persisted,
                result.rows_rejected,
                result.batches_written,
            )
        else:
            logger.error(
                "Energy ingestion failed owner=%s error_type=%s rows_read=%s rows_persisted=%s error=%s",
                self._request.owner_id,
                type(error).__name__,
                result.rows_read,
                result.rows_persisted,
                error,
            )
        if self._persist_error is not None and error is not self._persist_error:
            logger.error(
                "Energy ingestion also hit a persistence failure owner=%s error=%s",
                self._request.owner_id,
                self._persist_error,
            )
        return result


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_ingestion_pipeline(
    *,
    store: EnergyEntryStore,
    source: ByteSource | None = None,
    settings: EnergyIngestionSettings | None = None,
) -> IngestionPipeline:
    """
    Build a pipeline around ``store`` with env-driven settings.

    A fresh HTTP source is created per pipeline so concurrent runs share no
    connection state.
    """

    resolved_settings = settings or get_energy_ingestion_settings()
    if source is None:
        source = RemoteCSVSource(
            http_settings=get_source_http_settings(),
            chunk_size=resolved_settings.chunk_size,
        )
    return IngestionPipeline(
        source=source,
        sink=BulkUpsertSink(store, max_operations=resolved_settings.store_max_operations),
        settings=resolved_settings,
        normalizer=RowNormalizer(get_csv_dialect_settings()),
    )
