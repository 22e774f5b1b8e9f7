"""Exception taxonomy for the sync subsystem.

Store and network failures are raised as these types at the operation
boundary; the API layer converts them into structured HTTP responses.
"""


class SyncError(Exception):
    """Base class for all sync subsystem errors."""


class StoreUnavailableError(SyncError):
    """A store could not be reached (timeout, refused, DNS/network)."""

    store = "unknown"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or f"{self.store.capitalize()} database unavailable")


class LocalStoreUnavailableError(StoreUnavailableError):
    store = "local"


class RemoteStoreUnavailableError(StoreUnavailableError):
    store = "remote"


class RemoteServiceUnavailableError(SyncError):
    """The remote service API could not be reached."""


class TenantNotFoundError(SyncError):
    """The requested tenant does not exist in the store that was queried."""

    def __init__(self, tenant_id: int, where: str = "remote database") -> None:
        self.tenant_id = tenant_id
        super().__init__(f"Tenant {tenant_id} not found in {where}")


class MissingTenantIdError(SyncError):
    """A required tenant identifier was not supplied."""

    def __init__(self) -> None:
        super().__init__("tenant_id is required")


class PersistenceError(SyncError):
    """A constraint violation or driver error during a read or write."""


class UploadInProgressError(SyncError):
    """An upload cycle is already running for the tenant."""

    def __init__(self, tenant_id: int) -> None:
        self.tenant_id = tenant_id
        super().__init__(f"Upload already in progress for tenant {tenant_id}")
