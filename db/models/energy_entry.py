"""
db/models/energy_entry.py

Daily energy usage record, one row per (owner, date).
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class EnergyEntry(Base):
    __tablename__ = "energy_entries"

    id: Mapped[str] = mapped_column(
        String(320),
        primary_key=True,
        comment="Deterministic '{owner_id}-{YYYY-MM-DD}' key",
    )
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    usage: Mapped[float] = mapped_column(Float, nullable=False, comment="kWh")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    source: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="manual, upload",
    )
    kind: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        server_default="energyEntry",
    )

    __table_args__ = (
        Index("ix_energy_entries_owner_id_entry_date", "owner_id", "entry_date"),
    )
