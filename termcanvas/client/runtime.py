"""Canvas process entry point.

The host starts a canvas as::

    <command> show <kind> --id <session-id> --socket <path> --scenario <label> [--config <json>]

``create_canvas_app`` builds the typer app that parses those arguments,
connects a ``CanvasClient``, sends ``ready`` and hands control to the
renderer registered for the kind.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import typer
from rich.console import Console

from ..infra.retry_policy import RetryConfig
from .canvas_client import CanvasClient

logger = logging.getLogger(__name__)

console = Console(stderr=True)


@dataclass
class LaunchContext:
    """What the host passed to this canvas process"""

    kind: str
    session_id: str
    socket_path: Optional[str] = None
    scenario: str = "display"
    config: dict[str, Any] = field(default_factory=dict)


Renderer = Callable[[LaunchContext, CanvasClient], Awaitable[None]]


async def run_canvas(
    renderer: Renderer,
    context: LaunchContext,
    retry: Optional[RetryConfig] = None,
) -> None:
    """
    Run one canvas session.

    An exception escaping the renderer is reported to the host as an
    ``error`` frame. A renderer that returns without sending a terminal
    frame simply closes the connection, which the host treats as
    cancelled.
    """
    client = CanvasClient(context.socket_path, retry=retry)
    await client.connect()
    client.send_ready()

    try:
        await renderer(context, client)
    except Exception as e:
        logger.error(f"Canvas {context.kind} failed: {e}", exc_info=True)
        client.send_error(str(e), {"kind": context.kind})
    finally:
        await client.close()


def parse_config(raw: Optional[str]) -> dict[str, Any]:
    """Parse the ``--config`` JSON argument."""
    if not raw:
        return {}
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError("config must be a JSON object")
    return value


def create_canvas_app(
    renderers: dict[str, Renderer],
    default_scenarios: Optional[dict[str, str]] = None,
    retry: Optional[RetryConfig] = None,
) -> typer.Typer:
    """Build the ``show`` command for a set of canvas renderers."""
    app = typer.Typer(help="Terminal canvas runtime", add_completion=False)
    scenarios = default_scenarios or {}

    @app.callback()
    def main():
        """Terminal canvas runtime"""

    @app.command("show")
    def show(
        kind: str = typer.Argument(..., help="Canvas kind"),
        canvas_id: str = typer.Option("standalone", "--id", help="Session id"),
        socket: Optional[str] = typer.Option(None, "--socket", help="Host socket path"),
        scenario: Optional[str] = typer.Option(None, "--scenario", help="Scenario label"),
        config: Optional[str] = typer.Option(None, "--config", help="Canvas config (JSON)"),
    ):
        """Show a canvas"""
        renderer = renderers.get(kind)
        if renderer is None:
            console.print(f"[red]Unknown canvas kind:[/red] {kind}")
            raise typer.Exit(1)

        try:
            config_dict = parse_config(config)
        except ValueError as e:
            console.print(f"[red]Invalid --config:[/red] {e}")
            raise typer.Exit(1)

        context = LaunchContext(
            kind=kind,
            session_id=canvas_id,
            socket_path=socket,
            scenario=scenario or scenarios.get(kind, "display"),
            config=config_dict,
        )

        try:
            asyncio.run(run_canvas(renderer, context, retry=retry))
        except KeyboardInterrupt:
            raise typer.Exit(130)
        except Exception as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

    return app


__all__ = [
    "LaunchContext",
    "Renderer",
    "run_canvas",
    "parse_config",
    "create_canvas_app",
]
