"""CLI commands for canvassync."""

from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from canvassync import __logo__, __version__
from canvassync.config.loader import load_config
from canvassync.config.schema import Config
from canvassync.rooms.provision import RoomProvisioner
from canvassync.sync.errors import CanvasSyncError, FatalConfigError
from canvassync.sync.runner import run_pack, run_unpack
from canvassync.utils.logging import configure_logging

# Initialize Rich console
console = Console()

# Main CLI app
app = typer.Typer(
    name="canvassync",
    help=f"{__logo__} canvassync - Sync canvas room snapshots with editable directory trees",
    no_args_is_help=True,
)

_options = {"verbose": False}


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} canvassync v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    version: bool = typer.Option(
        None, "--version", callback=version_callback, is_eager=True, help="Show version and exit"
    ),
):
    """Sync canvas room snapshots with editable directory trees."""
    _options["verbose"] = verbose


def _setup(root: Path) -> Config:
    """Load the repository config and configure logging from it."""
    config = load_config(root)
    log_file = config.log_path
    if log_file is not None and not log_file.is_absolute():
        log_file = root / log_file
    configure_logging(level=config.logging.level, log_file=log_file, verbose=_options["verbose"])
    return config


def _print_problems(problems) -> None:
    for problem in problems:
        console.print(f"[yellow]⚠[/yellow] {problem}")


# ============================================================================
# Sync Commands
# ============================================================================


@app.command()
def unpack(
    root: Path = typer.Argument(Path("."), help="Repository root holding the root room"),
):
    """Unpack every reachable room snapshot into directories and prune the rest."""
    root = root.resolve()
    config = _setup(root)

    try:
        report = run_unpack(root, config)
    except FatalConfigError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Unpack")
    table.add_column("Room", style="cyan")
    table.add_column("Path", style="blue")
    table.add_column("Status", style="green")
    failed = set(report.failed_rooms)
    for path in report.state.visited_paths:
        rel = "." if path == root else str(path.relative_to(root))
        status = "[red]failed[/red]" if path in failed else "ok"
        table.add_row(path.name, rel, status)
    console.print(table)

    console.print(
        f"Removed [bold]{len(report.collection.removed_widgets)}[/bold] widgets and "
        f"[bold]{len(report.collection.removed_rooms)}[/bold] rooms"
    )
    _print_problems(report.warnings)

    if not report.ok:
        console.print(f"[red]✗[/red] {len(report.failed_rooms)} room(s) failed")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Unpack complete")


@app.command()
def pack(
    root: Path = typer.Argument(Path("."), help="Repository root holding the root room"),
    room: Optional[Path] = typer.Option(None, "--room", "-r", help="Pack only this room directory"),
):
    """Rebuild room snapshots from the directory tree."""
    root = root.resolve()
    config = _setup(root)
    report = run_pack(root, config, room=room.resolve() if room else None)

    table = Table(title="Pack")
    table.add_column("Room", style="cyan")
    table.add_column("Widgets", style="green", justify="right")
    table.add_column("Links", style="green", justify="right")
    table.add_column("Clock", style="blue", justify="right")
    table.add_column("Written", style="yellow")
    for result in report.results:
        table.add_row(
            result.room_path.name,
            str(result.widgets),
            str(result.links),
            str(result.snapshot.clock),
            "yes" if result.written else "unchanged",
        )
    console.print(table)
    _print_problems(report.problems)

    if not report.ok:
        console.print(f"[red]✗[/red] {len(report.failed_rooms)} room(s) failed")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Pack complete")


# ============================================================================
# Room Commands
# ============================================================================

room_app = typer.Typer(help="Create and delete rooms")
app.add_typer(room_app, name="room")


@room_app.command("new")
def room_new(
    parent: Path = typer.Argument(..., help="Parent room directory"),
):
    """Create a child room and link it from its parent."""
    config = _setup(Path.cwd())
    try:
        room = RoomProvisioner(config).create_child_room(parent)
    except (CanvasSyncError, FileNotFoundError) as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    console.print(f"\n✅ [green]Created room:[/green] {room.room_id}")
    console.print(f"   Name: {room.canvas_name}")
    console.print(f"   Path: {room.path}")
    console.print(f"   Link: {room.link_shape_id}")


@room_app.command("delete")
def room_delete(
    path: Path = typer.Argument(..., help="Room directory to delete"),
):
    """Delete a child room and everything below it."""
    config = _setup(Path.cwd())
    try:
        RoomProvisioner(config).delete_room(path)
    except (CanvasSyncError, FileNotFoundError) as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)
    console.print(f"✅ [green]Deleted room:[/green] {path.name}")
    console.print("[dim]Run 'canvassync pack' to drop the parent's link shape[/dim]")


# ============================================================================
# Widget Commands
# ============================================================================

widget_app = typer.Typer(help="Create and delete widgets")
app.add_typer(widget_app, name="widget")


@widget_app.command("new")
def widget_new(
    room: Path = typer.Argument(..., help="Room directory"),
    template_handle: str = typer.Argument(..., help="Template handle of the widget"),
):
    """Create a widget directory in a room."""
    config = _setup(Path.cwd())
    try:
        widget = RoomProvisioner(config).create_widget(room, template_handle)
    except (CanvasSyncError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    console.print(f"\n✅ [green]Created widget:[/green] {widget.shape_id}")
    console.print(f"   Widget ID: {widget.widget_id}")
    console.print(f"   Path: {widget.path}")


@widget_app.command("delete")
def widget_delete(
    path: Path = typer.Argument(..., help="Widget directory to delete"),
):
    """Delete a widget directory."""
    config = _setup(Path.cwd())
    try:
        RoomProvisioner(config).delete_widget(path)
    except (CanvasSyncError, FileNotFoundError) as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)
    logger.debug(f"Removed widget directory {path}")
    console.print(f"✅ [green]Deleted widget:[/green] {path.name}")


if __name__ == "__main__":
    app()
