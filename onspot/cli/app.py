"""
Main CLI application using Typer.

Runs the public operations against the JSON data file named in the config.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, Dict, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.memory_storage import InMemoryStorage
from ..adapters.push_notifier import LoggingNotifier, PushNotifier
from ..api import STATUS_OK, OnSpotApi
from ..config import AppConfig, get_default_config_path

app = typer.Typer(
    name="onspot",
    help="Query business availability and manage delivery partnerships",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    _configure_logging(config.log_level)
    return config


def _build_notifier(config: AppConfig):
    if config.notifications.endpoint:
        return PushNotifier(
            endpoint=config.notifications.endpoint,
            server_key=config.notifications.server_key,
            timeout_seconds=config.notifications.timeout_seconds,
        )
    return LoggingNotifier()


def _load_config_or_exit(config_file: Optional[Path]) -> AppConfig:
    try:
        return _load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _execute(
    config: AppConfig,
    operation: Callable[[OnSpotApi], Awaitable[Dict[str, Any]]],
    *,
    persist: bool = False,
) -> Dict[str, Any]:
    """
    Load the data file, run one operation and optionally write the data back.

    Exits with status 1 on an unreadable data file or a non-2xx response.
    """
    try:
        storage = InMemoryStorage.from_json_file(config.data_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    api = OnSpotApi(
        storage,
        _build_notifier(config),
        default_delivery_range_meters=config.default_delivery_range_meters,
        timeout_seconds=config.request_timeout_seconds,
    )

    async def run() -> Dict[str, Any]:
        try:
            return await operation(api)
        finally:
            await api.close()

    response = asyncio.run(run())

    if response["status"] >= 300:
        console.print(
            f"[bold red]✗ {response.get('error', 'Failed')}[/bold red] "
            f"[dim]({response['status']} {response.get('reason', '')})[/dim]"
        )
        raise typer.Exit(1)

    if persist:
        storage.save_json_file(config.data_file)
    return response


@app.command()
def availability(
    latitude: Annotated[float, typer.Argument(help="Customer latitude")],
    longitude: Annotated[float, typer.Argument(help="Customer longitude")],
    config_file: ConfigOption = None,
    at: Annotated[Optional[str], typer.Option("--at", help="Evaluate at this ISO 8601 instant instead of now")] = None,
):
    """
    List the businesses that can deliver to a location.

    Examples:

        onspot availability 12.9716 77.5946
        onspot availability 12.9716 77.5946 --at 2024-11-25T21:30:00+05:30
        onspot availability 12.9716 77.5946 --at 2024-11-25T21:30
    """
    config = _load_config_or_exit(config_file)
    tz = config.timezone

    # An --at without an offset is read in the configured zone.
    if at:
        try:
            now = pendulum.parse(at, tz=tz)
        except Exception as e:
            console.print(f"[red]Error parsing --at: {e}[/red]")
            raise typer.Exit(1)
    else:
        now = pendulum.now(tz)

    response = _execute(config, lambda api: api.availability(latitude, longitude, now=now))
    businesses = response["businesses"]

    if not businesses:
        console.print("[yellow]⚠ No business can deliver to this location right now.[/yellow]")
        return

    table = Table(
        title=f"{len(businesses)} available business(es)",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Name", style="bold yellow")
    table.add_column("Business ID")
    table.add_column("Postal code", style="dim")
    table.add_column("Range (m)", justify="right")

    for business in businesses:
        delivery_range = business["deliveryRange"]
        table.add_row(
            business["displayName"],
            business["businessId"],
            business["location"]["postalCode"],
            "-" if delivery_range is None else f"{delivery_range:.0f}",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def request(
    business_ref_id: Annotated[str, typer.Argument(help="Business reference id")],
    user_id: Annotated[str, typer.Argument(help="OSD user id")],
    config_file: ConfigOption = None,
    request_type: Annotated[int, typer.Option("--type", help="Request type code")] = 0,
):
    """
    Send a delivery partnership request from a user to a business.
    """
    config = _load_config_or_exit(config_file)
    response = _execute(
        config,
        lambda api: api.partnership_request(
            {"businessRefId": business_ref_id},
            {"userId": user_id},
            request_type=request_type,
        ),
        persist=True,
    )
    console.print(f"[green]✓ Request sent[/green] (id [bold]{response['requestId']}[/bold])")


@app.command()
def accept(
    user_id: Annotated[str, typer.Argument(help="OSD user id")],
    business_ref_id: Annotated[str, typer.Argument(help="Business reference id")],
    request_id: Annotated[str, typer.Argument(help="Partnership request id")],
    config_file: ConfigOption = None,
):
    """
    Accept a pending partnership request.
    """
    config = _load_config_or_exit(config_file)
    _execute(config, lambda api: api.accept_partnership(user_id, business_ref_id, request_id), persist=True)
    console.print("[green]✓ Accepted[/green]")


@app.command()
def reject(
    user_id: Annotated[str, typer.Argument(help="OSD user id")],
    business_ref_id: Annotated[str, typer.Argument(help="Business reference id")],
    request_id: Annotated[str, typer.Argument(help="Partnership request id")],
    config_file: ConfigOption = None,
    display_name: Annotated[Optional[str], typer.Option("--name", help="Business name shown to the user")] = None,
):
    """
    Reject a pending partnership request.
    """
    config = _load_config_or_exit(config_file)
    _execute(
        config,
        lambda api: api.reject_partnership(user_id, business_ref_id, request_id, display_name),
        persist=True,
    )
    console.print("[green]✓ Rejected[/green]")


@app.command()
def reconcile(
    request_id: Annotated[str, typer.Argument(help="Partnership request id")],
    config_file: ConfigOption = None,
):
    """
    Repair partner lists from a request's recorded status.
    """
    config = _load_config_or_exit(config_file)
    response = _execute(config, lambda api: api.reconcile_partnership(request_id), persist=True)
    if response["applied"] is None:
        console.print("[yellow]⊘ Superseded by a newer request, nothing applied[/yellow]")
    else:
        console.print(f"[green]✓ Partner lists match {response['applied']}[/green]")


@app.command()
def check_region(
    postal_code: Annotated[str, typer.Argument(help="Postal code to check")],
    config_file: ConfigOption = None,
):
    """
    Check whether the platform operates at a postal code.
    """
    config = _load_config_or_exit(config_file)
    response = _execute(config, lambda api: api.business_availability(postal_code))
    if response["status"] == STATUS_OK:
        console.print(f"[green]✓ {postal_code} is in the launch region[/green]")
    else:
        console.print(f"[yellow]⚠ {postal_code} is outside the launch region[/yellow]")


@app.command()
def create_business(
    payload_file: Annotated[Path, typer.Argument(help="JSON file with the business profile")],
    config_file: ConfigOption = None,
):
    """
    Register a new business from a JSON profile.
    """
    try:
        with open(payload_file, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    config = _load_config_or_exit(config_file)
    response = _execute(config, lambda api: api.create_business(payload), persist=True)
    if response["status"] == STATUS_OK:
        console.print(
            f"[green]✓ Registered[/green] {response['businessId']} "
            f"(ref [bold]{response['businessRefId']}[/bold])"
        )
    else:
        console.print("[yellow]⚠ Location is outside the launch region[/yellow]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]onspot[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
