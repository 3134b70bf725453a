from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_alarms,
    render_heatmap,
    render_simulator,
    render_stats,
    render_tick,
)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Inspect and steer a running brewery twin service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, request_timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("stats")
def stats_command(ctx: typer.Context) -> None:
    """Show plant-wide dashboard statistics."""
    state = _get_state(ctx)
    render_stats(state.client.get_stats())


@app.command("heatmap")
def heatmap_command(ctx: typer.Context) -> None:
    """List the latest snapshot of every pit."""
    state = _get_state(ctx)
    render_heatmap(state.client.get_heatmap())


@app.command("alarms")
def alarms_command(
    ctx: typer.Context,
    status: Optional[str] = typer.Option(None, "--status", help="Filter by active or resolved."),
    level: Optional[str] = typer.Option(None, "--level", help="Filter by severity level."),
) -> None:
    """List alarm events, newest first."""
    state = _get_state(ctx)
    render_alarms(state.client.list_alarms(status=status, level=level))


@app.command("resolve")
def resolve_command(
    ctx: typer.Context,
    alarm_id: int = typer.Argument(..., help="Identifier of the alarm to resolve."),
    resolved_by: str = typer.Option("operator", "--by", help="Who resolved the alarm."),
) -> None:
    """Mark an alarm as resolved."""
    state = _get_state(ctx)
    alarm = state.client.resolve_alarm(alarm_id, resolved_by)
    typer.secho(
        f"Alarm #{alarm.get('id')} resolved by {alarm.get('resolved_by')}.",
        fg=typer.colors.GREEN,
    )


@app.command("simulator")
def simulator_command(
    ctx: typer.Context,
    enabled: Optional[bool] = typer.Option(
        None,
        "--enable/--disable",
        help="Turn the periodic simulation on or off.",
    ),
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        help="New tick interval in seconds.",
    ),
) -> None:
    """Show the simulator state, updating it when options are given."""
    state = _get_state(ctx)
    if interval is not None and interval <= 0:
        raise typer.BadParameter("Interval must be positive.", param_hint="--interval")
    if enabled is None and interval is None:
        payload = state.client.get_simulator()
    else:
        payload = state.client.update_simulator(enabled=enabled, interval_seconds=interval)
    render_simulator(payload)


@app.command("tick")
def tick_command(ctx: typer.Context) -> None:
    """Run one simulation tick immediately."""
    state = _get_state(ctx)
    render_tick(state.client.trigger_tick())
