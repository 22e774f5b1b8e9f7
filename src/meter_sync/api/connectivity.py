"""Connectivity monitor API: tri-state per endpoint plus aggregate gating flags."""

from fastapi import APIRouter, Depends

from meter_sync.api.deps import get_monitor
from meter_sync.api.schemas import ConnectivityResponse
from meter_sync.monitor import ConnectivityMonitor

router = APIRouter(prefix="/api/connectivity", tags=["connectivity"])


@router.get("", response_model=ConnectivityResponse)
async def connectivity(monitor: ConnectivityMonitor = Depends(get_monitor)) -> ConnectivityResponse:
    """Last known state of each endpoint, as of the most recent poll."""
    return ConnectivityResponse(**monitor.snapshot())


@router.post("/refresh", response_model=ConnectivityResponse)
async def refresh_connectivity(
    monitor: ConnectivityMonitor = Depends(get_monitor),
) -> ConnectivityResponse:
    """Probe every endpoint now instead of waiting for the next tick."""
    await monitor.check_all()
    return ConnectivityResponse(**monitor.snapshot())
