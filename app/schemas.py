"""Pydantic schemas for the HTTP and real-time API layers."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """Tags carried by every real-time broadcast envelope."""

    pit_data = "pit_data"
    device_data = "device_data"
    alarm = "alarm"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RealtimeMessage(BaseModel):
    """Envelope pushed to every live subscriber."""

    type: MessageType
    data: Any
    timestamp: datetime = Field(default_factory=_utcnow)


class EntitySummary(BaseModel):
    """Per-entity record inside a ``pit_data`` or ``device_data`` batch."""

    id: int
    external_code: str
    metrics: Dict[str, float]
    status: str
    running_hours: Optional[float] = None


class DashboardStats(BaseModel):
    """Plant-wide counters and averages for the dashboard header."""

    total_pits: int = Field(..., ge=0)
    normal_pits: int = Field(..., ge=0)
    warning_pits: int = Field(..., ge=0)
    alarm_pits: int = Field(..., ge=0)
    total_devices: int = Field(..., ge=0)
    running_devices: int = Field(..., ge=0)
    fault_devices: int = Field(..., ge=0)
    active_alarms: int = Field(..., ge=0)
    alarms_by_level: Dict[str, int] = Field(default_factory=dict)
    avg_temperature: Optional[float] = None
    avg_humidity: Optional[float] = None
    total_power: Optional[float] = None


class AlarmTrendPoint(BaseModel):
    hour: str
    count: int = Field(..., ge=0)


class DashboardOverview(BaseModel):
    alarm_trend: List[AlarmTrendPoint] = Field(default_factory=list)


class SystemInfo(BaseModel):
    ws_connections: int = Field(..., ge=0)
    python_version: str
    uptime_seconds: float = Field(..., ge=0)
    ticks: int = Field(..., ge=0)
    simulator_enabled: bool
    tick_interval_seconds: float


class SimulatorState(BaseModel):
    """Current scheduler configuration and progress."""

    enabled: bool
    interval_seconds: float
    running: bool
    ticks: int = Field(..., ge=0)
    last_tick_at: Optional[datetime] = None


class SimulatorUpdate(BaseModel):
    """Runtime changes to the tick scheduler."""

    enabled: Optional[bool] = None
    interval_seconds: Optional[float] = Field(default=None, gt=0)


class TickSummary(BaseModel):
    """Outcome of one simulation tick."""

    tick: int
    started_at: datetime
    duration_ms: int = Field(..., ge=0)
    pits_processed: int = Field(..., ge=0)
    devices_processed: int = Field(..., ge=0)
    failures: int = Field(..., ge=0)
    alarm_id: Optional[int] = None


class ResolveAlarmRequest(BaseModel):
    resolved_by: str = Field(default="operator", min_length=1)
