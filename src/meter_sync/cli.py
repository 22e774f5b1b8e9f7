"""meter-sync CLI - run the service or drive single sync operations."""

import asyncio
import json
from dataclasses import asdict

import typer

from meter_sync import __version__
from meter_sync.config import get_settings
from meter_sync.db.gateway import StoreGateway
from meter_sync.errors import SyncError
from meter_sync.logging import setup_logging
from meter_sync.monitor import ConnectivityMonitor
from meter_sync.sync.delivery import ReadingDeliveryClient
from meter_sync.sync.status import get_status
from meter_sync.sync.tenant import sync_tenant
from meter_sync.sync.upload import ReadingUploader

app = typer.Typer(
    name="meter-sync",
    help="Meter Sync - local/remote synchronization for the edge meter collector.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"meter-sync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Meter Sync - local/remote synchronization."""
    setup_logging(get_settings().log_level)


@app.command()
def serve() -> None:
    """Run the HTTP API on the loopback listener."""
    from meter_sync.main import run

    run()


@app.command("tenant-sync")
def tenant_sync_command(tenant_id: int = typer.Argument(..., help="Tenant to mirror")) -> None:
    """Pull one tenant from the remote store into the local store."""

    async def _run() -> None:
        gateway = StoreGateway.from_settings(get_settings())
        await gateway.initialize()
        try:
            result = await sync_tenant(gateway, tenant_id)
        finally:
            await gateway.shutdown()
        action = "inserted" if result.inserted else "updated"
        typer.echo(f"Tenant {tenant_id} {action}: {result.tenant['name']}")

    _run_or_exit(_run())


@app.command()
def upload(tenant_id: int = typer.Argument(..., help="Tenant whose queue to drain")) -> None:
    """Run one reading upload cycle."""
    settings = get_settings()

    async def _run() -> None:
        gateway = StoreGateway.from_settings(settings)
        await gateway.initialize()
        try:
            async with ReadingDeliveryClient.from_settings(settings) as delivery:
                uploader = ReadingUploader(
                    gateway,
                    delivery,
                    batch_size=settings.upload_batch_size,
                    max_retries=settings.upload_max_retries,
                    claim_timeout=settings.upload_claim_timeout,
                )
                result = await uploader.run_cycle(tenant_id)
        finally:
            await gateway.shutdown()

        if result.attempted == 0:
            typer.echo("Upload queue is empty")
            return
        typer.echo(
            f"Uploaded {len(result.delivered)}/{result.attempted} readings"
            + (f" ({len(result.failed)} failed)" if result.failed else "")
        )
        if not result.success:
            raise typer.Exit(code=2)

    _run_or_exit(_run())


@app.command()
def status(
    output_json: bool = typer.Option(False, "--json", "-j", help="Output in JSON format"),
) -> None:
    """Show queue size, last successful sync and recent errors."""

    async def _run() -> None:
        gateway = StoreGateway.from_settings(get_settings())
        await gateway.initialize()
        try:
            snapshot = await get_status(gateway)
        finally:
            await gateway.shutdown()

        if output_json:
            typer.echo(json.dumps(asdict(snapshot), default=str, indent=2))
            return

        typer.echo(f"Remote store:  {'connected' if snapshot.is_connected else 'disconnected'}")
        typer.echo(f"Queue size:    {snapshot.queue_size}")
        typer.echo(f"Last sync:     {snapshot.last_sync_at or 'Never'}")
        if snapshot.sync_errors:
            typer.echo("Recent errors:")
            for entry in snapshot.sync_errors:
                typer.echo(f"  [{entry.synced_at}] batch={entry.batch_size} {entry.error_message}")

    _run_or_exit(_run())


@app.command()
def monitor(
    once: bool = typer.Option(False, "--once", help="Probe once and exit"),
    interval: float = typer.Option(None, "--interval", "-i", help="Seconds between probes"),
) -> None:
    """Watch local store, remote store and remote API connectivity."""
    settings = get_settings()
    connectivity = ConnectivityMonitor.from_settings(settings)
    if interval:
        connectivity.interval = interval

    def _print() -> None:
        for endpoint in connectivity.endpoints.values():
            typer.echo(f"{endpoint.label:<16} {endpoint.state.value}")
        typer.echo(
            f"all_connected={connectivity.all_connected} "
            f"remote_system_connected={connectivity.remote_system_connected}"
        )

    async def _run() -> None:
        try:
            while True:
                await connectivity.check_all()
                _print()
                if once:
                    return
                await asyncio.sleep(connectivity.interval)
        finally:
            await connectivity.close()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass


def _run_or_exit(coro) -> None:
    try:
        asyncio.run(coro)
    except SyncError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
