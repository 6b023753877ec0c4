"""
app/repositories/energy_entry_repository.py

Persistence layer for energy usage records.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.energy_entry import EnergyEntryRecord, EntrySource
from app.domain.errors import RecordStoreError
from db.models.energy_entry import EnergyEntry

_UPSERT_COLUMNS = ("owner_id", "entry_date", "usage", "created_at", "source", "kind")


class EnergyEntryStore(Protocol):
    """
    Record store operations consumed by ingestion and the read paths.
    """

    def bulk_upsert(self, records: Sequence[EnergyEntryRecord]) -> None:
        ...

    def get(self, entry_id: str) -> EnergyEntryRecord | None:
        ...

    def find(self, owner_id: str, start: date, end: date) -> list[EnergyEntryRecord]:
        ...


class EnergyEntryRepository:
    """
    PostgreSQL-backed energy entry store.

    Every ``bulk_upsert`` call is one statement and one commit: the call either
    lands whole or raises ``RecordStoreError`` after rolling back.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def bulk_upsert(self, records: Sequence[EnergyEntryRecord]) -> None:
        """
        Insert or overwrite records by id.
        """

        if not records:
            return

        payloads = self._deduplicate_payloads([self._to_payload(record) for record in records])
        stmt = insert(EnergyEntry).values(payloads)
        stmt = stmt.on_conflict_do_update(
            index_elements=[EnergyEntry.id],
            set_={column: stmt.excluded[column] for column in _UPSERT_COLUMNS},
        )
        try:
            self._session.execute(stmt)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise RecordStoreError(f"Failed to upsert {len(payloads)} energy entries.") from exc

    def get(self, entry_id: str) -> EnergyEntryRecord | None:
        try:
            row = self._session.get(EnergyEntry, entry_id)
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Failed to read energy entry {entry_id!r}.") from exc
        return self._to_record(row) if row is not None else None

    def find(self, owner_id: str, start: date, end: date) -> list[EnergyEntryRecord]:
        """
        Return the owner's entries with ``start <= entry_date <= end``, oldest first.
        """

        stmt = (
            select(EnergyEntry)
            .where(
                EnergyEntry.owner_id == owner_id,
                EnergyEntry.entry_date >= start,
                EnergyEntry.entry_date <= end,
            )
            .order_by(EnergyEntry.entry_date)
        )
        try:
            rows = self._session.scalars(stmt).all()
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Failed to query energy entries for owner {owner_id!r}.") from exc
        return [self._to_record(row) for row in rows]

    @staticmethod
    def _to_payload(record: EnergyEntryRecord) -> dict[str, Any]:
        return {
            "id": record.id,
            "owner_id": record.owner_id,
            "entry_date": record.entry_date,
            "usage": record.usage,
            "created_at": record.created_at,
            "source": record.source.value,
            "kind": record.kind,
        }

    @staticmethod
    def _to_record(row: EnergyEntry) -> EnergyEntryRecord:
        return EnergyEntryRecord(
            id=row.id,
            owner_id=row.owner_id,
            entry_date=row.entry_date,
            usage=row.usage,
            created_at=row.created_at,
            source=EntrySource(row.source),
            kind=row.kind,
        )

    @staticmethod
    def _deduplicate_payloads(payloads: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        # ON CONFLICT DO UPDATE cannot touch the same row twice in one statement;
        # the last occurrence of an id wins, matching sequential upserts.
        by_id: dict[str, dict[str, Any]] = {}
        for payload in payloads:
            by_id.pop(payload["id"], None)
            by_id[payload["id"]] = payload
        return list(by_id.values())
