"""
app/repositories package marker.
"""

from app.repositories.energy_entry_repository import EnergyEntryRepository, EnergyEntryStore

__all__ = [
    "EnergyEntryRepository",
    "EnergyEntryStore",
]
