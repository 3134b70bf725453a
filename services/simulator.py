"""Simulation tick driver.

One tick walks every tracked pit and running device one step forward,
persists the new readings and any status change, refreshes the aggregation
cache and broadcasts the per-kind batches to live subscribers. An optional
synthetic alarm follows the batches.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple

from app.schemas import EntitySummary, MessageType, RealtimeMessage, TickSummary
from datastore.mock_store import MockPlantStore
from models.records import AlarmEvent, Device, Entity, EntityKind
from services.aggregator import AggregationCache, build_snapshot
from services.alarms import AlarmEmitter
from services.broadcaster import Broadcaster
from services.status import is_simulated, next_status, status_changed
from services.walk import RandomSource, WalkProfile, next_reading

logger = logging.getLogger(__name__)

PIT_SUMMARY_METRICS: Sequence[str] = ("temperature", "humidity", "ph_value")
DEVICE_SUMMARY_METRICS: Sequence[str] = ("power", "temperature", "vibration")


@dataclass
class TickReport:
    tick: int
    started_at: datetime
    duration_ms: int = 0
    pit_batch: List[EntitySummary] = field(default_factory=list)
    device_batch: List[EntitySummary] = field(default_factory=list)
    failures: int = 0
    alarm: Optional[AlarmEvent] = None

    def to_summary(self) -> TickSummary:
        return TickSummary(
            tick=self.tick,
            started_at=self.started_at,
            duration_ms=self.duration_ms,
            pits_processed=len(self.pit_batch),
            devices_processed=len(self.device_batch),
            failures=self.failures,
            alarm_id=self.alarm.id if self.alarm is not None else None,
        )


class SimulationDriver:
    """Runs simulation ticks; at most one tick is in flight at a time."""

    def __init__(
        self,
        store: MockPlantStore,
        cache: AggregationCache,
        broadcaster: Broadcaster,
        emitter: AlarmEmitter,
        profile: WalkProfile,
        rng: RandomSource,
        default_interval_seconds: float = 5.0,
    ) -> None:
        self.store = store
        self.cache = cache
        self.broadcaster = broadcaster
        self.emitter = emitter
        self.profile = profile
        self.rng = rng
        self.default_interval_seconds = default_interval_seconds
        self._lock = asyncio.Lock()
        self._tick_count = 0
        self._last_tick_at: Optional[datetime] = None

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick_at(self) -> Optional[datetime]:
        return self._last_tick_at

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def tick(self, now: Optional[datetime] = None) -> Optional[TickReport]:
        """Run one tick, or return ``None`` if another tick is still in flight."""
        if self._lock.locked():
            logger.warning(
                "Skipping tick; the previous tick is still running.",
                extra={"tick": self._tick_count},
            )
            return None
        async with self._lock:
            return await self._run_tick(now or datetime.now(timezone.utc))

    async def _run_tick(self, now: datetime) -> TickReport:
        start_time = time.perf_counter()
        self._tick_count += 1
        report = TickReport(tick=self._tick_count, started_at=now)
        elapsed_hours = self._elapsed_hours(now)

        report.pit_batch, report.device_batch, report.failures = await asyncio.to_thread(
            self._process_entities, now, elapsed_hours, report.tick
        )
        self._last_tick_at = now

        await self._publish(MessageType.pit_data, report.pit_batch, now)
        await self._publish(MessageType.device_data, report.device_batch, now)

        try:
            report.alarm = await asyncio.to_thread(self.emitter.maybe_emit, now)
        except Exception:
            logger.exception("Failed to persist synthetic alarm.", extra={"tick": report.tick})
        if report.alarm is not None:
            await self._publish(MessageType.alarm, report.alarm, now)

        report.duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(
            "Tick complete: %d pits, %d devices, %d failures.",
            len(report.pit_batch),
            len(report.device_batch),
            report.failures,
            extra={"tick": report.tick, "duration_ms": report.duration_ms},
        )
        return report

    def _process_entities(
        self, now: datetime, elapsed_hours: float, tick: int
    ) -> Tuple[List[EntitySummary], List[EntitySummary], int]:
        pits: Tuple[List[EntitySummary], int] = ([], 0)
        devices: Tuple[List[EntitySummary], int] = ([], 0)
        try:
            # One disk flush per tick; each entity commit only touches memory.
            with self.store.deferred_persistence():
                pits = self.process_pits(now)
                devices = self.process_devices(now, elapsed_hours)
        except OSError:
            logger.exception("Failed to flush the plant store to disk.", extra={"tick": tick})
        return pits[0], devices[0], pits[1] + devices[1]

    def process_pits(self, now: datetime) -> Tuple[List[EntitySummary], int]:
        batch: List[EntitySummary] = []
        failures = 0
        for pit in self.store.list_entities(EntityKind.pit):
            summary = self._advance_isolated(pit, now)
            if summary is None:
                failures += 1
            else:
                batch.append(summary)
        return batch, failures

    def process_devices(
        self, now: datetime, elapsed_hours: float
    ) -> Tuple[List[EntitySummary], int]:
        batch: List[EntitySummary] = []
        failures = 0
        for device in self.store.list_entities(EntityKind.device):
            if not is_simulated(device):  # type: ignore[arg-type]
                continue
            summary = self._advance_isolated(device, now, elapsed_hours)
            if summary is None:
                failures += 1
            else:
                batch.append(summary)
        return batch, failures

    def _advance_isolated(
        self, entity: Entity, now: datetime, running_hours: float = 0.0
    ) -> Optional[EntitySummary]:
        try:
            return self._advance(entity, now, running_hours)
        except Exception:
            logger.exception(
                "Failed to advance entity; skipping it for this tick.",
                extra={"entity_id": entity.id, "entity_kind": entity.kind.value},
            )
            return None

    def _advance(self, entity: Entity, now: datetime, running_hours: float) -> EntitySummary:
        previous = self.store.latest_reading_for(entity.id)
        reading = next_reading(entity.id, entity.kind, previous, self.profile, self.rng, now)
        status = next_status(entity.kind, reading.metrics, entity.status)
        changed = status_changed(entity.status, status)

        with self.store.unit_of_work() as uow:
            uow.save_reading(reading)
            if changed:
                uow.update_status(entity.id, status, now)
            if isinstance(entity, Device) and running_hours > 0:
                uow.add_running_hours(entity.id, running_hours)

        if changed:
            logger.info(
                "Entity status changed.",
                extra={
                    "entity_id": entity.id,
                    "entity_kind": entity.kind.value,
                    "previous_status": entity.status.value,
                    "status": status.value,
                },
            )
        self.cache.put(entity.id, build_snapshot(entity, reading, status.value))

        if isinstance(entity, Device):
            subset = DEVICE_SUMMARY_METRICS
            hours: Optional[float] = round(entity.running_hours + running_hours, 4)
        else:
            subset = PIT_SUMMARY_METRICS
            hours = None
        return EntitySummary(
            id=entity.id,
            external_code=entity.code,
            metrics={name: reading.metrics[name] for name in subset if name in reading.metrics},
            status=status.value,
            running_hours=hours,
        )

    def _elapsed_hours(self, now: datetime) -> float:
        if self._last_tick_at is None:
            return self.default_interval_seconds / 3600.0
        seconds = (now - self._last_tick_at).total_seconds()
        return max(seconds, 0.0) / 3600.0

    async def _publish(self, message_type: MessageType, data: Any, now: datetime) -> None:
        if isinstance(data, list):
            payload: Any = [item.model_dump(mode="json", exclude_none=True) for item in data]
        else:
            payload = data.model_dump(mode="json")
        try:
            await self.broadcaster.broadcast(
                RealtimeMessage(type=message_type, data=payload, timestamp=now)
            )
        except Exception:
            logger.exception(
                "Broadcast failed.", extra={"message_type": message_type.value}
            )
