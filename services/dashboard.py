"""Read-side queries backing the dashboard."""

from __future__ import annotations

import platform
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from app.schemas import AlarmTrendPoint, DashboardOverview, DashboardStats, SystemInfo
from datastore.mock_store import MockPlantStore
from models.records import AlarmStatus, DeviceStatus, EntityKind, PitStatus, Snapshot
from services.aggregator import AggregationCache, build_snapshot
from services.broadcaster import Broadcaster
from services.scheduler import SimulationScheduler


class DashboardService:
    """Serves snapshots and plant statistics, preferring the aggregation cache.

    Every entity in the store is listed. Entities the tick driver has not
    cached (nothing ticked yet, stopped devices, failed first ticks) get a
    snapshot built from the store's latest reading. Only the tick driver
    writes the cache.
    """

    def __init__(
        self,
        store: MockPlantStore,
        cache: AggregationCache,
        broadcaster: Broadcaster,
        scheduler: SimulationScheduler,
    ) -> None:
        self.store = store
        self.cache = cache
        self.broadcaster = broadcaster
        self.scheduler = scheduler
        self._started = time.monotonic()

    def get_snapshot(self, entity_id: int) -> Snapshot:
        snapshot = self.cache.get(entity_id)
        if snapshot is not None:
            return snapshot
        entity = self.store.get_entity(entity_id)
        return build_snapshot(entity, self.store.latest_reading_for(entity_id))

    def get_all_snapshots(self, kind: Optional[EntityKind] = None) -> List[Snapshot]:
        kinds = [kind] if kind is not None else [EntityKind.pit, EntityKind.device]
        snapshots: List[Snapshot] = []
        for current in kinds:
            snapshots.extend(self._snapshots_for(current))
        return snapshots

    def get_live_subscriber_count(self) -> int:
        return self.broadcaster.count()

    def get_heatmap(self) -> List[Snapshot]:
        return sorted(self._snapshots_for(EntityKind.pit), key=lambda s: s.entity_id)

    def get_stats(self) -> DashboardStats:
        pit_snapshots = self._snapshots_for(EntityKind.pit)
        device_snapshots = self._snapshots_for(EntityKind.device)
        return DashboardStats(
            total_pits=self.store.count_entities(EntityKind.pit),
            normal_pits=self.store.count_entities(EntityKind.pit, PitStatus.normal.value),
            warning_pits=self.store.count_entities(EntityKind.pit, PitStatus.warning.value),
            alarm_pits=self.store.count_entities(EntityKind.pit, PitStatus.alarm.value),
            total_devices=self.store.count_entities(EntityKind.device),
            running_devices=self.store.count_entities(EntityKind.device, DeviceStatus.running.value),
            fault_devices=self.store.count_entities(EntityKind.device, DeviceStatus.fault.value),
            active_alarms=self.store.count_alarms(AlarmStatus.active),
            alarms_by_level=self.store.count_alarms_by_level(AlarmStatus.active),
            avg_temperature=_average(pit_snapshots, "temperature"),
            avg_humidity=_average(pit_snapshots, "humidity"),
            total_power=_total(device_snapshots, "power"),
        )

    def get_overview(self, now: Optional[datetime] = None) -> DashboardOverview:
        """Hourly active+resolved alarm counts over the last 24 hours."""
        end = now or datetime.now(timezone.utc)
        start = end - timedelta(hours=24)
        buckets: Dict[int, int] = {}
        for alarm in self.store.alarms_since(start):
            bucket = int((alarm.created_at - start).total_seconds() // 3600)
            if 0 <= bucket < 24:
                buckets[bucket] = buckets.get(bucket, 0) + 1
        trend = [
            AlarmTrendPoint(hour=f"{(start + timedelta(hours=i)).hour}:00", count=buckets.get(i, 0))
            for i in range(24)
        ]
        return DashboardOverview(alarm_trend=trend)

    def get_system_info(self) -> SystemInfo:
        return SystemInfo(
            ws_connections=self.broadcaster.count(),
            python_version=platform.python_version(),
            uptime_seconds=round(time.monotonic() - self._started, 3),
            ticks=self.scheduler.driver.tick_count,
            simulator_enabled=self.scheduler.enabled,
            tick_interval_seconds=self.scheduler.interval_seconds,
        )

    def _snapshots_for(self, kind: EntityKind) -> List[Snapshot]:
        snapshots: List[Snapshot] = []
        for entity in self.store.list_entities(kind):
            snapshot = self.cache.get(entity.id)
            if snapshot is None:
                snapshot = build_snapshot(entity, self.store.latest_reading_for(entity.id))
            snapshots.append(snapshot)
        return snapshots


def _average(snapshots: List[Snapshot], metric: str) -> Optional[float]:
    values = [s.metrics[metric] for s in snapshots if metric in s.metrics]
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def _total(snapshots: List[Snapshot], metric: str) -> Optional[float]:
    values = [s.metrics[metric] for s in snapshots if metric in s.metrics]
    if not values:
        return None
    return round(sum(values), 2)
