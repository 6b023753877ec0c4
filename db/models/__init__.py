"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.energy_entry import EnergyEntry

__all__ = [
    "EnergyEntry",
]
