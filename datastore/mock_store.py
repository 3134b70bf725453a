"""Thread-safe in-memory plant store standing in for the CRUD persistence layer."""

from __future__ import annotations

import json
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Deque, Dict, Iterator, List, Optional, Union

from models.records import (
    AlarmEvent,
    AlarmLevel,
    AlarmStatus,
    Device,
    DeviceStatus,
    Entity,
    EntityKind,
    EntityStatus,
    Pit,
    PitStatus,
    Reading,
)


@dataclass(frozen=True)
class _SaveReading:
    reading: Reading


@dataclass(frozen=True)
class _UpdateStatus:
    entity_id: int
    status: str
    timestamp: datetime


@dataclass(frozen=True)
class _AddRunningHours:
    entity_id: int
    hours: float


Operation = Union[_SaveReading, _UpdateStatus, _AddRunningHours]


class UnitOfWork:
    """Writes staged against the store and committed together."""

    def __init__(self) -> None:
        self.operations: List[Operation] = []

    def save_reading(self, reading: Reading) -> None:
        self.operations.append(_SaveReading(reading))

    def update_status(
        self, entity_id: int, status: Union[EntityStatus, str], timestamp: datetime
    ) -> None:
        value = str(getattr(status, "value", status))
        self.operations.append(_UpdateStatus(entity_id, value, timestamp))

    def add_running_hours(self, entity_id: int, hours: float) -> None:
        self.operations.append(_AddRunningHours(entity_id, hours))


class MockPlantStore:

    def __init__(
        self,
        persistence_path: Optional[Path] = None,
        history_limit: int = 500,
    ) -> None:
        self.persistence_path = persistence_path
        self.history_limit = history_limit
        self._entities: Dict[int, Entity] = {}
        self._readings: Dict[int, Deque[Reading]] = {}
        self._alarms: Dict[int, AlarmEvent] = {}
        self._next_entity_id = 1
        self._next_alarm_id = 1
        self._lock = Lock()
        self._deferred_depth = 0
        self._dirty = False
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    # Entities

    def add_pit(
        self,
        code: str,
        zone: str,
        row: int,
        col: int,
        *,
        pit_age: int = 50,
        fermentation_day: int = 0,
        grain_type: str = "sorghum",
        status: PitStatus = PitStatus.normal,
    ) -> Pit:
        now = datetime.now(timezone.utc)
        with self._lock:
            pit = Pit(
                id=self._next_entity_id,
                code=code,
                zone=zone,
                row=row,
                col=col,
                status=status,
                pit_age=pit_age,
                fermentation_day=fermentation_day,
                grain_type=grain_type,
                created_at=now,
                updated_at=now,
            )
            self._insert_entity(pit)
        return pit

    def add_device(
        self,
        code: str,
        name: str,
        device_type: str,
        location: str,
        *,
        status: DeviceStatus = DeviceStatus.running,
        running_hours: float = 0.0,
    ) -> Device:
        now = datetime.now(timezone.utc)
        with self._lock:
            device = Device(
                id=self._next_entity_id,
                code=code,
                name=name,
                device_type=device_type,
                location=location,
                status=status,
                running_hours=running_hours,
                created_at=now,
                updated_at=now,
            )
            self._insert_entity(device)
        return device

    def get_entity(self, entity_id: int) -> Entity:
        with self._lock:
            return self._require_entity(entity_id)

    def list_entities(self, kind: EntityKind) -> List[Entity]:
        with self._lock:
            return [entity for entity in self._entities.values() if entity.kind is kind]

    def count_entities(self, kind: EntityKind, status: Optional[str] = None) -> int:
        with self._lock:
            return sum(
                1
                for entity in self._entities.values()
                if entity.kind is kind and (status is None or entity.status.value == status)
            )

    def update_status(
        self, entity_id: int, status: Union[EntityStatus, str], timestamp: datetime
    ) -> None:
        with self.unit_of_work() as uow:
            uow.update_status(entity_id, status, timestamp)

    def add_running_hours(self, entity_id: int, hours: float) -> None:
        with self.unit_of_work() as uow:
            uow.add_running_hours(entity_id, hours)

    # Readings

    def save_reading(self, reading: Reading) -> None:
        with self.unit_of_work() as uow:
            uow.save_reading(reading)

    def latest_reading_for(self, entity_id: int) -> Optional[Reading]:
        with self._lock:
            history = self._readings.get(entity_id)
            return history[-1] if history else None

    def readings_for(self, entity_id: int, limit: int = 50) -> List[Reading]:
        """Return up to ``limit`` most recent readings, oldest first."""
        with self._lock:
            self._require_entity(entity_id)
            history = self._readings.get(entity_id)
            if not history or limit <= 0:
                return []
            return list(history)[-limit:]

    # Alarms

    def save_alarm(self, alarm: AlarmEvent) -> AlarmEvent:
        with self._lock:
            stored = alarm.model_copy(update={"id": self._next_alarm_id})
            self._persist(alarms={**self._alarms, self._next_alarm_id: stored})
            self._next_alarm_id += 1
            self._alarms[stored.id] = stored  # type: ignore[index]
        return stored

    def get_alarm(self, alarm_id: int) -> Optional[AlarmEvent]:
        with self._lock:
            return self._alarms.get(alarm_id)

    def list_alarms(
        self,
        status: Optional[AlarmStatus] = None,
        level: Optional[AlarmLevel] = None,
    ) -> List[AlarmEvent]:
        """Return matching alarms, newest first."""
        with self._lock:
            alarms = [
                alarm
                for alarm in self._alarms.values()
                if (status is None or alarm.status is status)
                and (level is None or alarm.level is level)
            ]
        return sorted(alarms, key=lambda alarm: (alarm.created_at, alarm.id or 0), reverse=True)

    def count_alarms(self, status: Optional[AlarmStatus] = None) -> int:
        with self._lock:
            return sum(1 for alarm in self._alarms.values() if status is None or alarm.status is status)

    def count_alarms_by_level(self, status: Optional[AlarmStatus] = None) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._lock:
            for alarm in self._alarms.values():
                if status is not None and alarm.status is not status:
                    continue
                counts[alarm.level.value] = counts.get(alarm.level.value, 0) + 1
        return counts

    def alarms_since(self, timestamp: datetime) -> List[AlarmEvent]:
        with self._lock:
            return [alarm for alarm in self._alarms.values() if alarm.created_at >= timestamp]

    def resolve_alarm(
        self, alarm_id: int, resolved_by: str, timestamp: Optional[datetime] = None
    ) -> AlarmEvent:
        with self._lock:
            alarm = self._alarms.get(alarm_id)
            if alarm is None:
                raise KeyError(f"Alarm {alarm_id} not found.")
            resolved = alarm.model_copy(
                update={
                    "status": AlarmStatus.resolved,
                    "resolved_by": resolved_by,
                    "resolved_at": timestamp or datetime.now(timezone.utc),
                }
            )
            self._persist(alarms={**self._alarms, alarm_id: resolved})
            self._alarms[alarm_id] = resolved
        return resolved

    # Units of work

    @contextmanager
    def unit_of_work(self) -> Iterator[UnitOfWork]:
        """Stage writes and commit them on clean exit; discard them otherwise."""
        uow = UnitOfWork()
        yield uow
        self.commit(uow.operations)

    @contextmanager
    def deferred_persistence(self) -> Iterator[None]:
        """Hold back disk writes inside the block and flush the file once on exit.

        Commits inside the block only touch memory. A failing flush leaves the
        store dirty so the next flush retries.
        """
        with self._lock:
            self._deferred_depth += 1
        try:
            yield
        finally:
            with self._lock:
                self._deferred_depth -= 1
                if self._deferred_depth == 0 and self._dirty:
                    self._write_snapshot(self._entities, self._latest_readings(), self._alarms)
                    self._dirty = False

    def commit(self, operations: List[Operation]) -> None:
        """Apply ``operations`` atomically: all are validated before any is applied.

        With write-through persistence the resulting state is written to disk
        first; a failed write leaves memory untouched.
        """
        if not operations:
            return
        with self._lock:
            pending: Dict[int, Entity] = {}
            latest: Dict[int, datetime] = {}
            for operation in operations:
                self._validate(operation, pending, latest)
            readings = [op.reading for op in operations if isinstance(op, _SaveReading)]

            if self._writes_through():
                latest_readings = self._latest_readings()
                latest_readings.update((reading.entity_id, reading) for reading in readings)
                self._persist(entities={**self._entities, **pending}, latest_readings=latest_readings)
            else:
                self._persist()

            for reading in readings:
                history = self._readings.get(reading.entity_id)
                if history is None:
                    history = deque(maxlen=self.history_limit)
                    self._readings[reading.entity_id] = history
                history.append(reading)
            self._entities.update(pending)

    def _validate(
        self,
        operation: Operation,
        pending: Dict[int, Entity],
        latest: Dict[int, datetime],
    ) -> None:
        if isinstance(operation, _SaveReading):
            reading = operation.reading
            entity = pending.get(reading.entity_id) or self._require_entity(reading.entity_id)
            if entity.kind is not reading.kind:
                raise ValueError(
                    f"Reading of kind {reading.kind.value!r} does not match entity {entity.id}."
                )
            previous = latest.get(reading.entity_id)
            if previous is None:
                history = self._readings.get(reading.entity_id)
                previous = history[-1].recorded_at if history else None
            if previous is not None and reading.recorded_at <= previous:
                raise ValueError(
                    f"Reading for entity {reading.entity_id} at {reading.recorded_at.isoformat()} "
                    f"is not newer than {previous.isoformat()}."
                )
            latest[reading.entity_id] = reading.recorded_at
        elif isinstance(operation, _UpdateStatus):
            entity = pending.get(operation.entity_id) or self._require_entity(operation.entity_id)
            status_type = PitStatus if isinstance(entity, Pit) else DeviceStatus
            try:
                status = status_type(operation.status)
            except ValueError as exc:
                raise ValueError(
                    f"Status {operation.status!r} is not valid for entity {entity.id}."
                ) from exc
            pending[entity.id] = entity.model_copy(
                update={"status": status, "updated_at": operation.timestamp}
            )
        else:
            entity = pending.get(operation.entity_id) or self._require_entity(operation.entity_id)
            if not isinstance(entity, Device):
                raise ValueError(f"Entity {entity.id} is not a device.")
            pending[entity.id] = entity.model_copy(
                update={"running_hours": entity.running_hours + operation.hours}
            )

    def _require_entity(self, entity_id: int) -> Entity:
        entity = self._entities.get(entity_id)
        if entity is None:
            raise KeyError(f"Entity {entity_id} not found.")
        return entity

    def _insert_entity(self, entity: Entity) -> None:
        self._persist(entities={**self._entities, entity.id: entity})
        self._next_entity_id = entity.id + 1
        self._entities[entity.id] = entity

    def _latest_readings(self) -> Dict[int, Reading]:
        return {entity_id: history[-1] for entity_id, history in self._readings.items() if history}

    def _writes_through(self) -> bool:
        return bool(self.persistence_path) and self._deferred_depth == 0

    def _persist(
        self,
        entities: Optional[Dict[int, Entity]] = None,
        latest_readings: Optional[Dict[int, Reading]] = None,
        alarms: Optional[Dict[int, AlarmEvent]] = None,
    ) -> None:
        """Write the proposed state before it is applied; omitted parts are unchanged."""
        if not self.persistence_path:
            return
        if self._deferred_depth:
            self._dirty = True
            return
        self._write_snapshot(
            self._entities if entities is None else entities,
            self._latest_readings() if latest_readings is None else latest_readings,
            self._alarms if alarms is None else alarms,
        )

    def _write_snapshot(
        self,
        entities: Dict[int, Entity],
        latest_readings: Dict[int, Reading],
        alarms: Dict[int, AlarmEvent],
    ) -> None:
        assert self.persistence_path is not None
        payload = {
            "pits": [e.model_dump(mode="json") for e in entities.values() if isinstance(e, Pit)],
            "devices": [e.model_dump(mode="json") for e in entities.values() if isinstance(e, Device)],
            "latest_readings": [reading.model_dump(mode="json") for reading in latest_readings.values()],
            "alarms": [alarm.model_dump(mode="json") for alarm in alarms.values()],
        }
        # Replace the file whole so a crash mid-write never leaves it truncated.
        staging = self.persistence_path.with_name(self.persistence_path.name + ".tmp")
        staging.write_text(json.dumps(payload, indent=2, sort_keys=True))
        staging.replace(self.persistence_path)

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for payload in data.get("pits", []):
            pit = Pit.model_validate(payload)
            self._entities[pit.id] = pit
        for payload in data.get("devices", []):
            device = Device.model_validate(payload)
            self._entities[device.id] = device
        for payload in data.get("latest_readings", []):
            reading = Reading.model_validate(payload)
            self._readings[reading.entity_id] = deque([reading], maxlen=self.history_limit)
        for payload in data.get("alarms", []):
            alarm = AlarmEvent.model_validate(payload)
            self._alarms[alarm.id] = alarm  # type: ignore[index]

        self._next_entity_id = max(self._entities, default=0) + 1
        self._next_alarm_id = max(self._alarms, default=0) + 1

