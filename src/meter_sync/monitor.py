"""Connectivity health monitor for the local store, remote store and remote API.

Each endpoint is polled by its own lightweight task so that one slow
endpoint never delays the others. Every probe is bounded by a hard
timeout; a timeout, network error or non-2xx response all classify the
endpoint as disconnected.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from meter_sync.config import Settings
from meter_sync.logging import get_logger, log_connection_state_change

logger = get_logger(__name__)

LOCAL_DB = "local_db"
REMOTE_DB = "remote_db"
REMOTE_API = "remote_api"

ENDPOINT_LABELS = {
    LOCAL_DB: "Local Database",
    REMOTE_DB: "Remote Database",
    REMOTE_API: "Remote API",
}


class ConnectionState(str, enum.Enum):
    CHECKING = "checking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


@dataclass
class EndpointStatus:
    """Process-local view of one endpoint's reachability."""

    name: str
    url: str
    state: ConnectionState = ConnectionState.CHECKING
    checked_at: datetime | None = None

    @property
    def label(self) -> str:
        return ENDPOINT_LABELS.get(self.name, self.name)

    @property
    def tooltip(self) -> str:
        """Human-readable text derived from the state only, never from raw errors."""
        if self.state is ConnectionState.CONNECTED:
            return f"{self.label} is connected and operational"
        if self.state is ConnectionState.DISCONNECTED:
            return f"{self.label} is disconnected"
        if self.state is ConnectionState.ERROR:
            return f"{self.label} connection error"
        return "Checking connection status..."


class ConnectivityMonitor:
    """Polls three endpoints on a fixed interval and exposes aggregate flags.

    start() probes every endpoint immediately and then once per interval;
    stop() cancels the pending sleeps and any in-flight probe.
    """

    def __init__(
        self,
        targets: dict[str, str],
        interval: float = 60.0,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            targets: Endpoint name -> health URL (local_db, remote_db, remote_api)
            interval: Seconds between probes of the same endpoint
            timeout: Hard bound on a single probe, in seconds
            transport: Optional transport override (tests)
        """
        self.interval = interval
        self.timeout = timeout
        self.endpoints = {name: EndpointStatus(name=name, url=url) for name, url in targets.items()}
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)
        self._tasks: dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectivityMonitor":
        base = settings.service_url
        return cls(
            targets={
                LOCAL_DB: settings.monitor_local_db_url or f"{base}/api/health/sync-db",
                REMOTE_DB: settings.monitor_remote_db_url or f"{base}/api/health/remote-db",
                REMOTE_API: settings.monitor_remote_api_url or f"{base}/api/local/sync-status",
            },
            interval=settings.monitor_interval,
            timeout=settings.monitor_timeout,
        )

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def state(self, name: str) -> ConnectionState:
        return self.endpoints[name].state

    @property
    def all_connected(self) -> bool:
        return all(ep.state is ConnectionState.CONNECTED for ep in self.endpoints.values())

    @property
    def remote_system_connected(self) -> bool:
        """Remote store and remote API both connected; the local store is ignored."""
        return all(
            self.endpoints[name].state is ConnectionState.CONNECTED
            for name in (REMOTE_DB, REMOTE_API)
            if name in self.endpoints
        )

    async def probe(self, url: str) -> bool:
        """One bounded GET. True only for a 2xx answer within the timeout."""
        try:
            response = await asyncio.wait_for(self._client.get(url), timeout=self.timeout)
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.debug("connection_probe_failed", url=url, error=str(e) or type(e).__name__)
            return False
        return response.is_success

    async def check_endpoint(self, name: str) -> ConnectionState:
        """Probe one endpoint and record the resulting state."""
        endpoint = self.endpoints[name]
        connected = await self.probe(endpoint.url)
        new_state = ConnectionState.CONNECTED if connected else ConnectionState.DISCONNECTED

        if new_state is not endpoint.state:
            log_connection_state_change(logger, name, endpoint.state.value, new_state.value)
        endpoint.state = new_state
        endpoint.checked_at = datetime.now(timezone.utc)
        return new_state

    async def check_all(self) -> dict[str, ConnectionState]:
        """Probe every endpoint once, independently of each other."""
        names = list(self.endpoints)
        states = await asyncio.gather(*(self.check_endpoint(name) for name in names))
        return dict(zip(names, states))

    def start(self) -> None:
        """Start one polling task per endpoint. No-op if already running."""
        if self.is_running:
            return
        for name in self.endpoints:
            self._tasks[name] = asyncio.create_task(self._poll(name), name=f"monitor:{name}")
        logger.info("connectivity_monitor_started", interval=self.interval, timeout=self.timeout)

    async def _poll(self, name: str) -> None:
        while True:
            await self.check_endpoint(name)
            await asyncio.sleep(self.interval)

    async def stop(self) -> None:
        """Cancel every polling task, including in-flight probes."""
        tasks, self._tasks = list(self._tasks.values()), {}
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("connectivity_monitor_stopped")

    async def close(self) -> None:
        """Stop polling and release the HTTP client."""
        await self.stop()
        await self._client.aclose()

    def snapshot(self) -> dict:
        return {
            "endpoints": {
                name: {
                    "label": ep.label,
                    "state": ep.state.value,
                    "tooltip": ep.tooltip,
                    "checked_at": ep.checked_at,
                }
                for name, ep in self.endpoints.items()
            },
            "all_connected": self.all_connected,
            "remote_system_connected": self.remote_system_connected,
        }
