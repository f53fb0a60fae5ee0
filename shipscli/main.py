"""Main entry point for the shipscli application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Dict, Optional

import typer
from typing_extensions import Annotated

# --- Core Layer ---
from shipscli.core.command_handler import CommandHandler
from shipscli.core.exceptions import ShipsGoError
from shipscli.core.services.tracking_service import ShipmentTrackingService
from shipscli.domain.models.shipment import ListOptions

# --- Infrastructure Layer ---
from shipscli.infrastructure.api.shipsgo_client import ShipsGoApiClient
from shipscli.infrastructure.cache.caching_service import CachingServiceImpl
from shipscli.infrastructure.cli.display import ConsoleDisplay
from shipscli.infrastructure.config.settings import (
    get_cache_dir,
    get_config,
    get_log_level,
    get_rate_limit_file,
    get_shipsgo_api_key,
    get_shipsgo_base_url,
    load_configuration,
)
from shipscli.infrastructure.monitoring.logger_setup import setup_logging
from shipscli.infrastructure.resilience.api_retry import ApiRetryService
from shipscli.infrastructure.resilience.rate_limit_store import JsonFileRateLimitStore
from shipscli.infrastructure.resilience.rate_limiter import RateLimitTracker

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    load_configuration()
    setup_logging(log_level=get_log_level(), log_file=get_config("logging.file"))
    logger.debug("Configuration and logging initialized.")

    dependencies: Dict[str, Any] = {}
    dependencies["ui"] = ConsoleDisplay()
    dependencies["cache_service"] = CachingServiceImpl(l2_dir=get_cache_dir())
    dependencies["rate_tracker"] = RateLimitTracker(store=JsonFileRateLimitStore(get_rate_limit_file()))
    dependencies["transport"] = ShipsGoApiClient(
        api_key=get_shipsgo_api_key(),
        base_url=get_shipsgo_base_url(),
        rate_tracker=dependencies["rate_tracker"],
    )
    dependencies["api_retry_service"] = ApiRetryService(
        max_retries=int(get_config("retry.max_retries", 3)),
    )
    dependencies["tracking_service"] = ShipmentTrackingService(
        transport=dependencies["transport"],
        cache_service=dependencies["cache_service"],
        api_retry_service=dependencies["api_retry_service"],
        rate_tracker=dependencies["rate_tracker"],
    )
    dependencies["command_handler"] = CommandHandler(
        tracking_service=dependencies["tracking_service"],
        ui=dependencies["ui"],
    )
    logger.debug("All dependencies initialized successfully.")
    return dependencies


# Built on first command so `--help` works without an API key
_dependencies: Dict[str, Any] = {}


def get_handler() -> CommandHandler:
    if not _dependencies:
        try:
            _dependencies.update(create_dependencies())
        except ValueError as e:
            ConsoleDisplay().display_error(f"Application initialization failed: {e}")
            raise typer.Exit(code=1)
    return _dependencies["command_handler"]


# --- Typer App Definition ---
app = typer.Typer(
    name="shipscli",
    help="shipscli: credit-aware ShipsGo ocean shipment tracking with caching and rate-limit awareness.",
    add_completion=False,
)


# --- Resource Cleanup ---
async def _close_transport() -> None:
    tracking_service = _dependencies.get("tracking_service")
    if tracking_service is not None:
        await tracking_service.aclose()


def _close_cache() -> None:
    cache_service = _dependencies.get("cache_service")
    if cache_service is not None:
        cache_service.close()


# --- Helpers for Running Commands ---
def run_async(coro: Coroutine[Any, Any, None]) -> None:
    """Runs a handler coroutine and maps failures to exit code 1."""
    async def runner() -> None:
        try:
            await coro
        finally:
            # Closed on the loop that used the client
            await _close_transport()

    try:
        asyncio.run(runner())
    except (ShipsGoError, ValueError) as e:
        logger.debug(f"Command failed: {type(e).__name__}: {e}")
        ui = _dependencies.get("ui") or ConsoleDisplay()
        ui.display_error(str(e))
        raise typer.Exit(code=1)
    finally:
        _close_cache()


def run_sync(func: Callable[[], None]) -> None:
    """Runs a handler that needs no event loop, then releases resources."""
    try:
        func()
    finally:
        asyncio.run(_close_transport())
        _close_cache()


# --- CLI Commands ---

ShipmentIdArg = Annotated[str, typer.Argument(help="ShipsGo shipment ID.")]


@app.command(name="create-shipment")
def create_shipment(
    bl: Annotated[Optional[str], typer.Option("--bl", help="Bill of Lading number.")] = None,
    container: Annotated[Optional[str], typer.Option("--container", help="Container number (e.g. MSCU1234567).")] = None,
    booking: Annotated[Optional[str], typer.Option("--booking", help="Carrier booking number.")] = None,
    reference: Annotated[Optional[str], typer.Option("--reference", help="Custom reference to attach.")] = None,
):
    """Create (or fetch existing) tracking for a shipment. Uses a credit only for new shipments."""
    handler = get_handler()
    run_async(handler.handle_create_shipment(
        bl_number=bl, container_number=container, booking_number=booking, reference=reference,
    ))


@app.command(name="get-shipment")
def get_shipment(shipment_id: ShipmentIdArg):
    """Get a shipment by ID."""
    handler = get_handler()
    run_async(handler.handle_get_shipment(shipment_id))


@app.command(name="list-shipments")
def list_shipments(
    status: Annotated[Optional[str], typer.Option("--status", help="Filter by status.")] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", min=1, help="Maximum results.")] = None,
    offset: Annotated[Optional[int], typer.Option("--offset", min=0, help="Results to skip.")] = None,
    eta_from: Annotated[Optional[str], typer.Option("--eta-from", help="ETA lower bound (YYYY-MM-DD).")] = None,
    eta_to: Annotated[Optional[str], typer.Option("--eta-to", help="ETA upper bound (YYYY-MM-DD).")] = None,
    sort: Annotated[Optional[str], typer.Option("--sort", help="Sort field.")] = None,
    order: Annotated[Optional[str], typer.Option("--order", help="'asc' or 'desc'.")] = None,
):
    """List shipments with optional filters."""
    handler = get_handler()
    options = ListOptions(
        status=status.upper() if status else None, limit=limit, offset=offset,
        eta_from=eta_from, eta_to=eta_to, sort=sort, order=order,
    )
    run_async(handler.handle_list_shipments(options))


@app.command(name="track-bl")
def track_bl(bl_number: Annotated[str, typer.Argument(help="Bill of Lading number.")]):
    """Track a shipment by Bill of Lading number."""
    handler = get_handler()
    run_async(handler.handle_track_bl(bl_number))


@app.command(name="track-container")
def track_container(container_number: Annotated[str, typer.Argument(help="Container number.")]):
    """Track a shipment by container number."""
    handler = get_handler()
    run_async(handler.handle_track_container(container_number))


@app.command(name="track-booking")
def track_booking(booking_number: Annotated[str, typer.Argument(help="Booking number.")]):
    """Track a shipment by booking number."""
    handler = get_handler()
    run_async(handler.handle_track_booking(booking_number))


@app.command()
def search(reference: Annotated[str, typer.Argument(help="Any BL, container, booking or custom reference.")]):
    """Search shipments by reference."""
    handler = get_handler()
    run_async(handler.handle_search(reference))


@app.command()
def active():
    """List all active (EN_ROUTE and PENDING) shipments."""
    handler = get_handler()
    run_async(handler.handle_active())


@app.command(name="arriving-soon")
def arriving_soon(
    days: Annotated[int, typer.Option("--days", min=1, max=365, help="Look-ahead window in days.")] = 7,
):
    """List EN_ROUTE shipments arriving within the next N days."""
    handler = get_handler()
    run_async(handler.handle_arriving_soon(days))


@app.command()
def milestones(shipment_id: ShipmentIdArg):
    """Show the milestone history of a shipment."""
    handler = get_handler()
    run_async(handler.handle_milestones(shipment_id))


@app.command(name="vessel-position")
def vessel_position(shipment_id: ShipmentIdArg):
    """Show the live vessel position of a shipment."""
    handler = get_handler()
    run_async(handler.handle_vessel_position(shipment_id))


@app.command(name="get-sharing-link")
def get_sharing_link(shipment_id: ShipmentIdArg):
    """Get a public tracking link for a shipment."""
    handler = get_handler()
    run_async(handler.handle_sharing_link(shipment_id))


@app.command(name="refresh-shipment")
def refresh_shipment(shipment_id: ShipmentIdArg):
    """Force a fresh API poll of a shipment, bypassing the cache."""
    handler = get_handler()
    run_async(handler.handle_refresh_shipment(shipment_id))


@app.command(name="api-status")
def api_status():
    """Check API connectivity and key validity."""
    handler = get_handler()
    run_async(handler.handle_api_status())


@app.command(name="rate-limit")
def rate_limit():
    """Show the current API rate limit status."""
    handler = get_handler()
    run_sync(handler.handle_rate_limit)


@app.command(name="cache-stats")
def cache_stats():
    """Show cache statistics."""
    handler = get_handler()
    run_sync(handler.handle_cache_stats)


@app.command(name="cache-clear")
def cache_clear():
    """Clear all cached entries."""
    handler = get_handler()
    run_async(handler.handle_cache_clear())


@app.command(name="cache-invalidate")
def cache_invalidate(shipment_id: ShipmentIdArg):
    """Drop the cached entries of one shipment."""
    handler = get_handler()
    run_async(handler.handle_cache_invalidate(shipment_id))


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
