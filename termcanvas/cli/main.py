"""termcanvas command line interface"""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..config import HostConfig, load_config
from ..errors import CanvasConnectionError
from ..host import HostConnectionManager, NavigationDispatcher, SessionOutcome, build_registry
from ..host.terminal import detect_terminal
from ..logging_setup import configure_logging

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(help="Launch terminal canvases and collect their results", add_completion=False)

# Exit codes
EXIT_ARGUMENT_ERROR = 2
EXIT_HOST_ERROR = 3


def _version_callback(value: bool):
    if value:
        console.print(f"termcanvas {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version"
    ),
):
    """Launch terminal canvases and collect their results"""


async def run_flow(
    host_config: HostConfig,
    kind: str,
    canvas_config: Optional[dict[str, Any]],
    scenario: Optional[str],
    follow: bool,
    alerts: list[dict[str, Any]],
) -> SessionOutcome:
    """Run a canvas (and, when following, every canvas it navigates to)."""
    registry = build_registry(host_config.canvas_command, host_config.commands)
    manager = HostConnectionManager(registry, host_config)
    manager.subscribe_alerts(
        lambda session, frame: alerts.append({"kind": session.kind, **frame.payload})
    )

    try:
        if follow:
            dispatcher = NavigationDispatcher(manager)
            return await dispatcher.run(kind, canvas_config, scenario)
        handle = await manager.launch(kind, canvas_config, scenario)
        return await handle.wait()
    finally:
        await manager.shutdown()


def _print_outcome(outcome: SessionOutcome, alerts: list[dict[str, Any]]) -> None:
    if alerts:
        table = Table(title="Alerts")
        table.add_column("Canvas", style="cyan", no_wrap=True)
        table.add_column("Type", style="yellow")
        table.add_column("Message", style="white")
        for alert in alerts:
            table.add_row(alert["kind"], str(alert.get("type", "-")), str(alert.get("message", "")))
        console.print(table)

    payload = json.dumps(outcome.frame.payload)
    if outcome.status == "selected":
        console.print(f"[green]✓[/green] {outcome.kind}: selected {payload}")
    elif outcome.status == "cancelled":
        console.print(f"[yellow]⚠[/yellow]  {outcome.kind}: cancelled ({outcome.frame.payload.get('reason')})")
    else:
        console.print(f"[red]✗[/red] {outcome.kind}: error {outcome.frame.payload.get('message')}")


@app.command("launch")
def launch(
    kind: str = typer.Argument(..., help="Canvas kind (see `termcanvas list`)"),
    config: str = typer.Option(None, "--config", "-c", help="Canvas config as JSON"),
    scenario: str = typer.Option(None, "--scenario", "-s", help="Scenario label"),
    follow: bool = typer.Option(True, "--follow/--no-follow", help="Follow navigation requests"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
    config_file: Path = typer.Option(None, "--config-file", help="Host config file (JSON5)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Launch a canvas and wait for its result"""
    host_config = load_config(config_file, use_cache=False)
    configure_logging("DEBUG" if verbose else host_config.log_level, host_config.log_file)

    registry = build_registry(host_config.canvas_command, host_config.commands)
    if kind not in registry:
        err_console.print(f"[red]Unknown canvas kind:[/red] {kind}")
        err_console.print("[dim]Run `termcanvas list` to see available canvases[/dim]")
        raise typer.Exit(EXIT_ARGUMENT_ERROR)

    canvas_config = None
    if config:
        try:
            canvas_config = json.loads(config)
        except json.JSONDecodeError as e:
            err_console.print(f"[red]Invalid --config JSON:[/red] {e}")
            raise typer.Exit(EXIT_ARGUMENT_ERROR)
        if not isinstance(canvas_config, dict):
            err_console.print("[red]--config must be a JSON object[/red]")
            raise typer.Exit(EXIT_ARGUMENT_ERROR)

    alerts: list[dict[str, Any]] = []
    try:
        outcome = asyncio.run(run_flow(host_config, kind, canvas_config, scenario, follow, alerts))
    except CanvasConnectionError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_HOST_ERROR)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)

    if json_output:
        console.print_json(json.dumps({**outcome.to_dict(), "alerts": alerts}))
    else:
        _print_outcome(outcome, alerts)

    if outcome.exit_code != 0:
        raise typer.Exit(outcome.exit_code)


@app.command("list")
def list_canvases(
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
    config_file: Path = typer.Option(None, "--config-file", help="Host config file (JSON5)"),
):
    """List available canvases"""
    host_config = load_config(config_file, use_cache=False)
    registry = build_registry(host_config.canvas_command, host_config.commands)

    if json_output:
        console.print_json(json.dumps([entry.to_dict() for entry in registry]))
        return

    table = Table(title="Canvases")
    table.add_column("Key", style="magenta", no_wrap=True)
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Name", style="green")
    table.add_column("Scenario", style="yellow")
    table.add_column("Description", style="white")

    for entry in registry:
        table.add_row(
            entry.shortcut or "-",
            entry.kind,
            entry.name,
            entry.default_scenario,
            entry.description,
        )

    console.print(table)


@app.command("env")
def env(
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """Show the detected terminal environment"""
    terminal = detect_terminal()

    if json_output:
        console.print_json(json.dumps(terminal.to_dict()))
        return

    console.print(f"Terminal: [cyan]{terminal.summary}[/cyan]")
    for name, value in terminal.to_dict().items():
        if name.startswith("in_"):
            marker = "[green]✓[/green]" if value else "[dim]-[/dim]"
            console.print(f"  {marker} {name[3:]}")


__all__ = [
    "app",
    "run_flow",
]
