"""create energy_entries table

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "energy_entries",
        sa.Column("id", sa.String(length=320), nullable=False, comment="Deterministic '{owner_id}-{YYYY-MM-DD}' key"),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("usage", sa.Float(), nullable=False, comment="kWh"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False, comment="manual, upload"),
        sa.Column("kind", sa.String(length=32), server_default="energyEntry", nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_energy_entries_owner_id_entry_date",
        "energy_entries",
        ["owner_id", "entry_date"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_energy_entries_owner_id_entry_date", table_name="energy_entries")
    op.drop_table("energy_entries")
