"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.http_client import HttpBookingClient
from ..adapters.mock_backend import InMemoryBookingStore, RecordingNotifier
from ..adapters.notifier import HttpConfirmationNotifier
from ..config import AppConfig, get_default_config_path
from ..domain.availability import bookable_dates
from ..domain.exceptions import BookingError, BookingValidationError, SlotNoLongerAvailable
from ..domain.models import ContactInfo, Service, TimeSlot
from ..domain.workflow import BookingWorkflow, Confirmed, Failed
from ..services.booking_service import BookingService

app = typer.Typer(
    name="spabooking",
    help="Offer and book med-spa appointments from a provider's public booking page",
    add_completion=False
)

console = Console()

MOCK_SLUG = "glow-aesthetics"

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
SlugOption = Annotated[Optional[str], typer.Option("--slug", "-s", help="Booking page slug. Defaults to provider_slug from the config.")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use bundled demo data instead of the hosted backend.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)]
    )


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    """Load the YAML config. Mock mode works without one."""
    config_path = config_file or get_default_config_path()
    if mock and not config_path.exists():
        return AppConfig(provider_slug=MOCK_SLUG)
    return AppConfig.load_from_yaml(config_path)


def _build_service(config: AppConfig, mock: bool) -> BookingService:
    if mock:
        store = InMemoryBookingStore.from_json(config.mock_data_file, default_timezone=config.timezone)
        return BookingService(repository=store, committer=store, notifier=RecordingNotifier())

    if not config.backend.base_url:
        raise typer.BadParameter("backend.base_url is not configured. Use --mock for demo data.")

    client = HttpBookingClient(
        base_url=config.backend.base_url,
        api_key=config.backend.api_key,
        timeout=config.backend.timeout_seconds,
        default_timezone=config.timezone
    )
    notifier = None
    if config.notifications.enabled:
        notifier = HttpConfirmationNotifier(
            endpoint=config.notification_endpoint(),
            api_key=config.backend.api_key
        )
    return BookingService(repository=client, committer=client, notifier=notifier)


def _resolve_slug(config: AppConfig, slug: Optional[str], mock: bool) -> str:
    resolved = (slug or config.provider_slug or (MOCK_SLUG if mock else "")).strip().lower()
    if not resolved:
        console.print("[red]Missing booking page slug. Pass --slug or set provider_slug.[/red]")
        raise typer.Exit(1)
    return resolved


def _services_table(services: List[Service]) -> Table:
    table = Table(title="Services", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim")
    table.add_column("Service", style="bold yellow")
    table.add_column("Duration")
    table.add_column("Price", justify="right")
    for idx, service in enumerate(services, 1):
        table.add_row(str(idx), service.name, f"{service.duration_minutes} min", f"${service.price:,.2f}")
    return table


def _slots_table(slots: List[TimeSlot], timezone: str) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim")
    table.add_column("Time")
    table.add_column("Status")
    for idx, slot in enumerate(slots, 1):
        local = slot.start.in_timezone(timezone)
        status = "[green]available[/green]" if slot.available else "[dim]unavailable[/dim]"
        table.add_row(str(idx), local.format("h:mm A"), status)
    return table


def _parse_date(value: str, timezone: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=timezone).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date {value!r}: {e}[/red]")
        raise typer.Exit(1)


def _find_service(workflow: BookingWorkflow, name: str) -> Service:
    service = workflow.find_service(name)
    if service is None:
        console.print(f"[red]Unknown service: {name!r}[/red]")
        raise typer.Exit(1)
    return service


@app.command()
def services(
    config_file: ConfigOption = None,
    slug: SlugOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    List the services offered on a booking page.
    """
    _configure_logging(verbose)

    async def _run():
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)
        return await service.open_session(_resolve_slug(config, slug, mock))

    try:
        workflow = asyncio.run(_run())
    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not workflow.catalog:
        console.print("[yellow]No services are available for online booking.[/yellow]")
        return

    console.print()
    console.print(_services_table(workflow.catalog))
    console.print()


@app.command()
def dates(
    config_file: ConfigOption = None,
    slug: SlugOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    List the dates that can currently be booked.
    """
    _configure_logging(verbose)

    async def _run():
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)
        return await service.open_session(_resolve_slug(config, slug, mock))

    try:
        workflow = asyncio.run(_run())
    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    schedule = workflow.config
    today = schedule.local_today(pendulum.now())
    days = bookable_dates(schedule, today)

    if not days:
        console.print("[yellow]No bookable dates in the advance window.[/yellow]")
        return

    console.print(f"\n[bold cyan]Bookable dates for {schedule.business_name}[/bold cyan] ({schedule.timezone})\n")
    for day in days:
        console.print(f"  {day.format('ddd, MMM DD, YYYY', locale='en')}  [dim]{day.to_date_string()}[/dim]")
    console.print()


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date to check (YYYY-MM-DD)")],
    service_name: Annotated[str, typer.Option("--service", help="Service name as listed by 'services'")],
    config_file: ConfigOption = None,
    slug: SlugOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Show the time slots offered for a service on a date.

    Examples:

        spabooking slots 2026-10-20 --service "HydraFacial" --mock
    """
    _configure_logging(verbose)

    async def _run():
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)
        workflow = await service.open_session(_resolve_slug(config, slug, mock))
        chosen = _find_service(workflow, service_name)
        day = _parse_date(date, workflow.config.timezone)
        return workflow, chosen, await service.slots_for(workflow.config, chosen, day)

    try:
        workflow, chosen, day_slots = asyncio.run(_run())
    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print()
    if not day_slots or not any(slot.available for slot in day_slots):
        console.print(
            "[yellow]⚠ No available times on this date.[/yellow]\n"
            "The practice may be closed, fully booked, or the date is outside the booking window."
        )
        if not day_slots:
            return

    console.print(f"[bold]{chosen.name}[/bold] ({chosen.duration_minutes} min) on {date}:\n")
    console.print(_slots_table(day_slots, workflow.config.timezone))
    console.print()


async def _run_booking_wizard(service: BookingService, workflow: BookingWorkflow) -> None:
    """
    Walk the client through service, time and contact selection and submit.
    """
    schedule = workflow.config
    tz = schedule.timezone

    # 1. SERVICE
    console.print("[bold]1️⃣  Choose a service[/bold]\n")
    console.print(_services_table(workflow.catalog))
    choice = typer.prompt("\n→ Service number", default=1, type=int)
    if not 1 <= choice <= len(workflow.catalog):
        console.print(f"[red]Invalid choice: {choice}[/red]")
        raise typer.Exit(1)
    workflow.select_service(workflow.catalog[choice - 1])

    while True:
        # 2. DATE AND TIME
        console.print("\n[bold]2️⃣  Choose a date and time[/bold]")
        days = bookable_dates(schedule, schedule.local_today(pendulum.now()))
        if not days:
            console.print("[yellow]No bookable dates in the advance window.[/yellow]")
            raise typer.Exit(1)

        date_str = typer.prompt("→ Date (YYYY-MM-DD)", default=days[0].to_date_string()).strip()
        workflow.select_date(_parse_date(date_str, tz))
        day_slots = await service.slots_for(schedule, workflow.state.service, workflow.state.date)
        available = [slot for slot in day_slots if slot.available]

        if not available:
            console.print("[yellow]⚠ No available times on this date. Try another day.[/yellow]")
            continue

        console.print()
        for idx, slot in enumerate(available, 1):
            console.print(f"  {idx}. {slot.start.in_timezone(tz).format('h:mm A')}")
        slot_choice = typer.prompt("\n→ Time number", default=1, type=int)
        if not 1 <= slot_choice <= len(available):
            console.print(f"[red]Invalid choice: {slot_choice}[/red]")
            continue

        try:
            await service.choose_time(workflow, available[slot_choice - 1].start)
        except SlotNoLongerAvailable as e:
            console.print(f"[yellow]{e}[/yellow]")
            continue

        # 3. CONTACT
        console.print("\n[bold]3️⃣  Your details[/bold]")
        while True:
            contact = ContactInfo(
                name=typer.prompt("→ Name"),
                email=typer.prompt("→ Email", default="", show_default=False) or None,
                phone=typer.prompt("→ Phone", default="", show_default=False) or None,
                notes=typer.prompt("→ Notes", default="", show_default=False)
            )
            try:
                state = await service.submit(workflow, contact)
                break
            except BookingValidationError as e:
                console.print(f"[red]{e}[/red]")

        if isinstance(state, Confirmed):
            request = state.confirmation.request
            local = request.requested_start.in_timezone(tz)
            console.print(Panel.fit(
                f"[bold green]✓ Booking confirmed![/bold green]\n\n"
                f"{schedule.confirmation_message}\n\n"
                f"[bold]Service:[/bold] {request.service}\n"
                f"[bold]Date:[/bold] {local.format('MMM DD, YYYY', locale='en')}\n"
                f"[bold]Time:[/bold] {local.format('h:mm A')}",
                title=schedule.business_name or "Booking"
            ))
            return

        if isinstance(state, Failed):
            console.print(f"\n[bold red]✗ Booking failed:[/bold red] {state.reason}")
        if not typer.confirm("→ Choose another time?", default=True):
            raise typer.Exit(1)
        workflow.choose_another_time()


@app.command()
def book(
    config_file: ConfigOption = None,
    slug: SlugOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Book an appointment interactively.
    """
    _configure_logging(verbose)

    async def _run():
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)
        workflow = await service.open_session(_resolve_slug(config, slug, mock))

        console.print("\n" + "="*60)
        console.print(f"[bold cyan]🗓️  {workflow.config.business_name} - Book an appointment[/bold cyan]")
        console.print("="*60 + "\n")
        if mock:
            console.print("[yellow]⚠  MOCK MODE: using demo data[/yellow]\n")

        if not workflow.catalog:
            console.print("[yellow]No services are available for online booking.[/yellow]")
            return

        try:
            await _run_booking_wizard(service, workflow)
        finally:
            await service.drain_notifications()

    try:
        asyncio.run(_run())
    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]spabooking[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
