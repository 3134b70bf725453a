"""Domain records shared across services.

Every record is an immutable pydantic model. Status changes and running-hour
increments produce new records inside the store; nothing downstream mutates
a record it was handed.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class EntityKind(str, Enum):
    """Kinds of plant entities tracked by the simulator."""

    pit = "pit"
    device = "device"


class PitStatus(str, Enum):
    normal = "normal"
    warning = "warning"
    alarm = "alarm"


class DeviceStatus(str, Enum):
    running = "running"
    stopped = "stopped"
    warning = "warning"
    fault = "fault"
    maintenance = "maintenance"


EntityStatus = Union[PitStatus, DeviceStatus]


class AlarmLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"


class AlarmCategory(str, Enum):
    temperature = "temperature"
    humidity = "humidity"
    ph = "ph"
    device = "device"
    system = "system"


class AlarmStatus(str, Enum):
    active = "active"
    resolved = "resolved"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Reading(_Record):
    """One simulated measurement set for a single entity."""

    entity_id: int
    kind: EntityKind
    metrics: Dict[str, float]
    recorded_at: datetime


class Pit(_Record):
    """A fermentation pit laid out on the zone grid."""

    id: int
    code: str
    zone: str
    row: int
    col: int
    status: PitStatus = PitStatus.normal
    pit_age: int = 50
    fermentation_day: int = 0
    grain_type: str = "sorghum"
    created_at: datetime
    updated_at: datetime

    @property
    def kind(self) -> EntityKind:
        return EntityKind.pit


class Device(_Record):
    """A plant device such as a pump, motor or conveyor."""

    id: int
    code: str
    name: str
    device_type: str
    location: str
    status: DeviceStatus = DeviceStatus.running
    running_hours: float = 0.0
    created_at: datetime
    updated_at: datetime

    @property
    def kind(self) -> EntityKind:
        return EntityKind.device


Entity = Union[Pit, Device]


class AlarmEvent(_Record):
    """An alarm raised against a plant entity.

    ``id`` is ``None`` until the store assigns one on save.
    """

    id: Optional[int] = None
    level: AlarmLevel
    category: AlarmCategory
    source: str
    message: str
    status: AlarmStatus = AlarmStatus.active
    created_at: datetime
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None


class Snapshot(_Record):
    """Last-known display fields of an entity, held in the aggregation cache."""

    entity_id: int
    kind: EntityKind
    external_code: str
    status: str
    metrics: Dict[str, float] = Field(default_factory=dict)
    recorded_at: Optional[datetime] = None
    zone: Optional[str] = None
    row: Optional[int] = None
    col: Optional[int] = None
