"""API routers for the sync service."""

from meter_sync.api.connectivity import router as connectivity_router
from meter_sync.api.health import router as health_router
from meter_sync.api.local import router as local_router
from meter_sync.api.upload import router as upload_router

__all__ = ["connectivity_router", "health_router", "local_router", "upload_router"]
