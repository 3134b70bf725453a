from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_STATUS_COLORS = {
    "normal": typer.colors.GREEN,
    "running": typer.colors.GREEN,
    "warning": typer.colors.YELLOW,
    "alarm": typer.colors.RED,
    "fault": typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_stats(payload: Dict[str, Any]) -> None:
    echo_heading("Pits")
    echo_key_values(
        [
            ("total", payload.get("total_pits")),
            ("normal", payload.get("normal_pits")),
            ("warning", payload.get("warning_pits")),
            ("alarm", payload.get("alarm_pits")),
            ("avg_temperature", payload.get("avg_temperature")),
            ("avg_humidity", payload.get("avg_humidity")),
        ]
    )
    typer.echo()
    echo_heading("Devices")
    echo_key_values(
        [
            ("total", payload.get("total_devices")),
            ("running", payload.get("running_devices")),
            ("fault", payload.get("fault_devices")),
            ("total_power", payload.get("total_power")),
        ]
    )
    typer.echo()
    echo_heading("Alarms")
    typer.echo(f"active: {payload.get('active_alarms')}")
    by_level = payload.get("alarms_by_level") or {}
    for level, count in sorted(by_level.items()):
        typer.echo(f"  - {level}: {count}")


def render_heatmap(snapshots: List[Dict[str, Any]]) -> None:
    echo_heading("Pit Heatmap")
    if not snapshots:
        typer.echo("No pits tracked.")
        return
    for snapshot in snapshots:
        metrics = snapshot.get("metrics") or {}
        status = snapshot.get("status") or "unknown"
        line = (
            f"{snapshot.get('external_code'):>8}  "
            f"zone={snapshot.get('zone')} row={snapshot.get('row')} col={snapshot.get('col')}  "
            f"temp={metrics.get('temperature', '-')} hum={metrics.get('humidity', '-')}  "
        )
        typer.echo(line, nl=False)
        typer.secho(status, fg=_STATUS_COLORS.get(status))


def render_alarms(alarms: List[Dict[str, Any]]) -> None:
    echo_heading("Alarms")
    if not alarms:
        typer.echo("No alarms recorded.")
        return
    for alarm in alarms:
        typer.echo(
            f"  - #{alarm.get('id')} [{alarm.get('level')}] {alarm.get('category')} "
            f"{alarm.get('source')}: {alarm.get('message')} ({alarm.get('status')})"
        )


def render_simulator(payload: Dict[str, Any]) -> None:
    echo_heading("Simulator")
    echo_key_values(
        [
            ("enabled", payload.get("enabled")),
            ("interval_seconds", payload.get("interval_seconds")),
            ("running", payload.get("running")),
            ("ticks", payload.get("ticks")),
            ("last_tick_at", payload.get("last_tick_at")),
        ]
    )


def render_tick(payload: Dict[str, Any]) -> None:
    echo_heading("Tick")
    echo_key_values(
        [
            ("tick", payload.get("tick")),
            ("duration_ms", payload.get("duration_ms")),
            ("pits_processed", payload.get("pits_processed")),
            ("devices_processed", payload.get("devices_processed")),
            ("failures", payload.get("failures")),
            ("alarm_id", payload.get("alarm_id")),
        ]
    )
