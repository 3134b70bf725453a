from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import pytest
import typer
from typer.testing import CliRunner

from cli.app import app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.calls: List[tuple] = []
        self.closed = False

    def get_stats(self) -> Dict[str, Any]:
        self.calls.append(("stats",))
        return {
            "total_pits": 100,
            "normal_pits": 97,
            "warning_pits": 2,
            "alarm_pits": 1,
            "total_devices": 50,
            "running_devices": 48,
            "fault_devices": 1,
            "active_alarms": 3,
            "alarms_by_level": {"critical": 1, "info": 2},
            "avg_temperature": 25.31,
            "avg_humidity": 70.2,
            "total_power": 751.5,
        }

    def get_heatmap(self) -> List[Dict[str, Any]]:
        self.calls.append(("heatmap",))
        return [
            {
                "entity_id": 1,
                "external_code": "A-001",
                "zone": "A",
                "row": 1,
                "col": 1,
                "status": "alarm",
                "metrics": {"temperature": 41.0, "humidity": 72.0},
            }
        ]

    def list_alarms(self, status: Optional[str] = None, level: Optional[str] = None):
        self.calls.append(("alarms", status, level))
        return [
            {
                "id": 7,
                "level": "critical",
                "category": "temperature",
                "source": "pit-A-001",
                "message": "Temperature above upper threshold",
                "status": "active",
            }
        ]

    def resolve_alarm(self, alarm_id: int, resolved_by: str) -> Dict[str, Any]:
        self.calls.append(("resolve", alarm_id, resolved_by))
        return {"id": alarm_id, "status": "resolved", "resolved_by": resolved_by}

    def get_simulator(self) -> Dict[str, Any]:
        self.calls.append(("simulator",))
        return {"enabled": True, "interval_seconds": 5.0, "running": True, "ticks": 12}

    def update_simulator(self, enabled=None, interval_seconds=None) -> Dict[str, Any]:
        self.calls.append(("update", enabled, interval_seconds))
        return {
            "enabled": enabled if enabled is not None else True,
            "interval_seconds": interval_seconds or 5.0,
            "running": True,
            "ticks": 12,
        }

    def trigger_tick(self) -> Dict[str, Any]:
        self.calls.append(("tick",))
        return {"tick": 13, "duration_ms": 4, "pits_processed": 100, "devices_processed": 48, "failures": 0}

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    stub = StubClient(config=None)

    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return stub


def test_stats_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["--base-url", "http://twin:9000/", "stats"])

    assert result.exit_code == 0
    assert "total: 100" in result.stdout
    assert "total_power: 751.5" in result.stdout
    assert "critical: 1" in result.stdout
    assert stub.config.base_url == "http://twin:9000"
    assert stub.closed is True


def test_heatmap_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["heatmap"])

    assert result.exit_code == 0
    assert "A-001" in result.stdout
    assert "temp=41.0" in result.stdout
    assert "alarm" in result.stdout


def test_alarms_command_passes_filters(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["alarms", "--status", "active", "--level", "critical"])

    assert result.exit_code == 0
    assert "#7 [critical]" in result.stdout
    assert stub.calls == [("alarms", "active", "critical")]


def test_resolve_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["resolve", "7", "--by", "brewer"])

    assert result.exit_code == 0
    assert "Alarm #7 resolved by brewer." in result.stdout
    assert stub.calls == [("resolve", 7, "brewer")]


def test_simulator_command_reads_or_updates(runner: CliRunner, stub: StubClient) -> None:
    shown = runner.invoke(app, ["simulator"])
    updated = runner.invoke(app, ["simulator", "--disable", "--interval", "2.5"])

    assert shown.exit_code == 0
    assert "ticks: 12" in shown.stdout
    assert updated.exit_code == 0
    assert "enabled: False" in updated.stdout
    assert stub.calls == [("simulator",), ("update", False, 2.5)]


def test_simulator_command_rejects_non_positive_interval(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["simulator", "--interval", "0"])

    assert result.exit_code != 0
    assert stub.calls == []


def test_tick_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["tick"])

    assert result.exit_code == 0
    assert "pits_processed: 100" in result.stdout


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://env-host:8080/")
    monkeypatch.setenv("CLI_REQUEST_TIMEOUT", "nonsense")

    config = load_config()

    assert config.base_url == "http://env-host:8080"
    assert config.request_timeout == 30.0


def test_api_client_reports_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "Alarm 9 not found."})

    client = ApiClient(CLIConfig(base_url="http://twin"))
    client.close()
    client._client = httpx.Client(base_url="http://twin", transport=httpx.MockTransport(handler))

    with pytest.raises(typer.Exit) as excinfo:
        client.resolve_alarm(9, "operator")

    assert excinfo.value.exit_code == 1
    client.close()
