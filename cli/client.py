from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the brewery twin service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.request_timeout)

    def close(self) -> None:
        self._client.close()

    def get_stats(self) -> Dict[str, Any]:
        return self._request("GET", "/api/v1/dashboard/stats")

    def get_heatmap(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/v1/dashboard/heatmap")

    def list_alarms(
        self, status: Optional[str] = None, level: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        params = {key: value for key, value in (("status", status), ("level", level)) if value}
        return self._request("GET", "/api/v1/alarms", params=params)

    def resolve_alarm(self, alarm_id: int, resolved_by: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/api/v1/alarms/{alarm_id}/resolve",
            json={"resolved_by": resolved_by},
        )

    def get_simulator(self) -> Dict[str, Any]:
        return self._request("GET", "/api/v1/simulator")

    def update_simulator(
        self, enabled: Optional[bool] = None, interval_seconds: Optional[float] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if enabled is not None:
            body["enabled"] = enabled
        if interval_seconds is not None:
            body["interval_seconds"] = interval_seconds
        return self._request("PUT", "/api/v1/simulator", json=body)

    def trigger_tick(self) -> Dict[str, Any]:
        return self._request("POST", "/api/v1/simulator/tick")

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
