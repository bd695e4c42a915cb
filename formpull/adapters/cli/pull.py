"""
Pull CLI commands
"""
import dataclasses
import typer
from pathlib import Path
from typing import List, Optional

from rich.prompt import Prompt
from rich.table import Table

from ...core.logging import get_logger, get_stdout_console, get_stderr_console
from ...core.events import EventChannel, EventKind, TransferEvent
from ...core.exceptions import (
    ConnectionError,
    FormPullError,
    NotFoundError,
    SourceValidationError,
    UnitFailure,
)
from ...core.constants import START_FROM_LAST_KEY, STORE_PASSWORDS_CONSENT_KEY, WORKSPACE_FORMS_DIR
from ...core.utils import format_timestamp
from ...domain.forms import TransferConfiguration, TransferRegistry
from ...domain.jobs import JobOrchestrator, UnitState
from ...domain.pull import PullService
from ...domain.sources import Source, SourceKind, parse_source
from ...infrastructure.preferences import JsonFilePreferences
from ..config.loader import AppConfig
from .connection import RemoteConnectionFactory

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()

_STATE_STYLES = {
    UnitState.FINISHED: "green",
    UnitState.FAILED: "red",
    UnitState.CANCELLED: "yellow",
    UnitState.SKIPPED: "yellow",
}


def register_pull_commands(app: typer.Typer) -> None:
    """Register list and pull commands on the main app"""
    app.command(name="list")(list_run)
    app.command(name="pull")(pull_run)


def _app_config(ctx: typer.Context) -> AppConfig:
    return ctx.obj if isinstance(ctx.obj, AppConfig) else AppConfig()


def _resolve_source(location: str, ask_password: bool) -> Source:
    source = parse_source(location)
    if ask_password and source.kind is SourceKind.REMOTE_DIRECTORY:
        password = Prompt.ask(f"Password for {source.describe()}", password=True, console=stdout_console)
        source = dataclasses.replace(source, payload=dataclasses.replace(source.payload, password=password))
    return source


def _build_service(
    config: AppConfig,
    default_configuration: TransferConfiguration,
    channel: EventChannel,
    on_error=None,
) -> PullService:
    preferences = JsonFilePreferences(config.preferences_file)
    preferences.put(STORE_PASSWORDS_CONSENT_KEY, "true" if config.store_passwords else "false")
    preferences.put(START_FROM_LAST_KEY, "true" if config.start_from_last else "false")

    registry = TransferRegistry.load(default_configuration, [], preferences)
    return PullService(
        workspace=config.workspace,
        channel=channel,
        app_prefs=preferences,
        session_prefs=preferences,
        registry=registry,
        orchestrator=JobOrchestrator(channel, max_workers=config.max_workers),
        connection_factory=RemoteConnectionFactory(),
        on_error=on_error,
    )


def _fail(message: str, label: str = "Error") -> None:
    stderr_console.print(f"[red]{label}:[/red] {message}")
    raise typer.Exit(1)


def list_run(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Collect directory or [user@]host:path"),
    ask_password: bool = typer.Option(
        False, "--password", "-p", help="Prompt for the SSH password of a remote source"
    ),
):
    """
    List the forms a source offers.

    Examples:
        formpull list ~/collect-backup
        formpull list pi@tablet.local:/sdcard/odk
    """
    config = _app_config(ctx)
    channel = EventChannel()

    try:
        service = _build_service(config, TransferConfiguration(), channel)
        forms = service.select_source(_resolve_source(source, ask_password))
    except SourceValidationError as e:
        _fail(str(e), "Invalid source")
    except ConnectionError as e:
        _fail(str(e), "Connection error")
    except FormPullError as e:
        _fail(str(e))

    service.close()

    table = Table(title=f"Forms at {service.adapter.describe()}")
    table.add_column("Form ID", style="cyan")
    table.add_column("Name")
    table.add_column("Encrypted")
    table.add_column("Last pulled")
    for record in forms:
        table.add_row(
            record.form_id,
            record.name,
            "yes" if record.is_encrypted else "no",
            format_timestamp(record.last_transfer) if record.last_transfer else "-",
        )
    stdout_console.print(table)


def pull_run(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Collect directory or [user@]host:path"),
    forms: Optional[List[str]] = typer.Option(
        None, "--form", "-f", help="Form ID to pull (repeatable)"
    ),
    all_forms: bool = typer.Option(
        False, "--all", "-a", help="Pull every form of the source"
    ),
    workspace: Optional[Path] = typer.Option(
        None, "--workspace", "-w", help="Workspace directory"
    ),
    target_dir: Optional[Path] = typer.Option(
        None, "--target-dir", "-t", help="Install pulled forms here instead of the workspace"
    ),
    overwrite: bool = typer.Option(
        False, "--overwrite", help="Replace submissions that were already pulled"
    ),
    media: bool = typer.Option(
        True, "--media/--no-media", help="Pull form media attachments"
    ),
    start_from_last: Optional[bool] = typer.Option(
        None, "--start-from-last/--from-scratch", help="Only pull submissions newer than the last pull"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-j", help="Forms pulled in parallel"
    ),
    ask_password: bool = typer.Option(
        False, "--password", "-p", help="Prompt for the SSH password of a remote source"
    ),
):
    """
    Pull forms and their submissions from a source.

    Press Ctrl-C once to cancel: forms being pulled stop after their current
    submission, the others are not started.

    Examples:
        formpull pull ~/collect-backup --all
        formpull pull pi@tablet.local:/sdcard/odk -f household -f visit
        formpull pull ~/collect-backup --all --start-from-last --workers 8
    """
    if not forms and not all_forms:
        _fail("Select forms with --form or use --all")

    config = dataclasses.replace(
        _app_config(ctx),
        **{k: v for k, v in {
            "workspace": workspace.expanduser() if workspace else None,
            "max_workers": workers,
            "start_from_last": start_from_last,
        }.items() if v is not None},
    )
    default_configuration = TransferConfiguration(
        target_dir=target_dir or (config.workspace / WORKSPACE_FORMS_DIR),
        overwrite=overwrite,
        include_media=media,
    )

    channel = EventChannel()
    failures: List[UnitFailure] = []
    channel.subscribe(
        [EventKind.PROGRESS, EventKind.SUCCESS, EventKind.FAILURE],
        _print_event,
    )

    try:
        service = _build_service(config, default_configuration, channel, on_error=failures.append)
        service.select_source(_resolve_source(source, ask_password))
        _select_forms(service, forms or [], all_forms)
        if not service.registry.all_selected_forms_have_configuration():
            _fail("Some selected forms have no usable configuration")
        batch = service.pull()
    except SourceValidationError as e:
        _fail(str(e), "Invalid source")
    except ConnectionError as e:
        _fail(str(e), "Connection error")
    except FormPullError as e:
        _fail(str(e))

    stdout_console.print(
        f"[cyan]Pulling {len(batch.units)} forms from[/cyan] {service.adapter.describe()}"
    )
    try:
        while not service.wait(0.2):
            pass
    except KeyboardInterrupt:
        stdout_console.print("[yellow]Cancelling, waiting for running forms to stop...[/yellow]")
        service.cancel()
        service.wait()
    finally:
        service.close()

    _print_summary(service, batch.unit_states())
    if failures or any(state is UnitState.FAILED for state in batch.unit_states().values()):
        raise typer.Exit(1)


def _select_forms(service: PullService, form_ids: List[str], all_forms: bool) -> None:
    registry = service.registry
    if all_forms:
        registry.select_all()
        return
    for form_id in form_ids:
        try:
            registry.set_selected(registry.find(form_id), True)
        except NotFoundError:
            _fail(f"No form {form_id} at {service.adapter.describe()}")


def _print_event(event: TransferEvent) -> None:
    if event.kind is EventKind.SUCCESS:
        stdout_console.print(f"[green]✓[/green] [cyan]{event.form_id}[/cyan] {event.message}")
    elif event.kind is EventKind.FAILURE:
        stdout_console.print(f"[red]✗[/red] [cyan]{event.form_id}[/cyan] {event.message}")
    else:
        stdout_console.print(f"  [cyan]{event.form_id}[/cyan] {event.message}", highlight=False)


def _print_summary(service: PullService, states) -> None:
    table = Table(title="Pull summary")
    table.add_column("Form ID", style="cyan")
    table.add_column("Result")
    table.add_column("Last pulled")
    for form_id, state in states.items():
        record = service.registry.find(form_id)
        style = _STATE_STYLES.get(state, "white")
        table.add_row(
            form_id,
            f"[{style}]{state.value}[/{style}]",
            format_timestamp(record.last_transfer) if record.last_transfer else "-",
        )
    stdout_console.print(table)
