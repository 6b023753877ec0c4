"""
app/api/routers package marker.
"""

from app.api.routers.energy_entries import router as energy_entries_router
from app.api.routers.energy_upload import router as energy_upload_router
from app.api.routers.storage_events import router as storage_events_router

__all__ = [
    "energy_entries_router",
    "energy_upload_router",
    "storage_events_router",
]
