"""Async HTTP client that delivers readings to the remote service API."""

from dataclasses import dataclass
from typing import Any

import httpx

from meter_sync import __version__
from meter_sync.config import Settings
from meter_sync.db.models import MeterReading


@dataclass
class DeliveryResult:
    """Result of one delivery attempt."""

    success: bool
    reading_id: int
    status_code: int | None = None
    error: str | None = None


class ReadingDeliveryClient:
    """Delivers one reading per request to the remote service API.

    Uses a single httpx.AsyncClient for connection pooling. There is no
    retry inside a delivery: a failed reading stays queued and is picked
    up again by the next upload cycle.
    """

    def __init__(
        self,
        base_url: str,
        upload_path: str = "/api/sync/meter-readings",
        health_path: str = "/health",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the delivery client.

        Args:
            base_url: Base URL of the remote service API
            upload_path: Path readings are POSTed to
            health_path: Path used for the connectivity probe
            timeout: Per-request timeout in seconds
            transport: Optional transport override (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.upload_path = upload_path
        self.health_path = health_path
        self.timeout = timeout

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": f"meter-sync/{__version__}"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReadingDeliveryClient":
        return cls(
            base_url=settings.remote_api_url,
            upload_path=settings.reading_upload_path,
            health_path=settings.remote_api_health_path,
            timeout=settings.remote_api_timeout,
        )

    async def deliver(self, reading: MeterReading, api_key: str | None = None) -> DeliveryResult:
        """Send a single reading.

        Args:
            reading: Reading to deliver
            api_key: Tenant credential, sent as X-API-Key when present

        Returns:
            DeliveryResult; success only on a 2xx response
        """
        headers = {"X-API-Key": api_key} if api_key else {}

        try:
            response = await self._client.post(
                f"{self.base_url}{self.upload_path}",
                json=reading.to_payload(),
                headers=headers,
            )
        except httpx.ConnectError as e:
            return DeliveryResult(False, reading.meter_reading_id, error=f"Connection error: {e}")
        except httpx.TimeoutException as e:
            return DeliveryResult(False, reading.meter_reading_id, error=f"Timeout: {e}")
        except httpx.HTTPError as e:
            return DeliveryResult(False, reading.meter_reading_id, error=f"HTTP error: {e}")

        if response.is_success:
            return DeliveryResult(True, reading.meter_reading_id, status_code=response.status_code)

        kind = "Client error" if response.is_client_error else "Server error"
        return DeliveryResult(
            False,
            reading.meter_reading_id,
            status_code=response.status_code,
            error=f"{kind}: {response.status_code}",
        )

    async def check_service(self) -> bool:
        """Return True if the remote service answers its health endpoint with 2xx."""
        try:
            response = await self._client.get(f"{self.base_url}{self.health_path}")
            return response.is_success
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> "ReadingDeliveryClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()
