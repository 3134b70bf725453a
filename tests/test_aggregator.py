"""Unit tests for the aggregation cache and snapshot projection."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

from models.records import Device, DeviceStatus, EntityKind, Pit, Reading, Snapshot
from services.aggregator import AggregationCache, build_snapshot

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _pit() -> Pit:
    return Pit(id=1, code="A-001", zone="A", row=1, col=2, created_at=NOW, updated_at=NOW)


def _device() -> Device:
    return Device(
        id=2,
        code="P-001",
        name="pump-1",
        device_type="pump",
        location="Zone B",
        status=DeviceStatus.warning,
        created_at=NOW,
        updated_at=NOW,
    )


def _snapshot(entity_id: int, temperature: float, kind: EntityKind = EntityKind.pit) -> Snapshot:
    return Snapshot(
        entity_id=entity_id,
        kind=kind,
        external_code=f"X-{entity_id:03d}",
        status="normal",
        metrics={"temperature": temperature},
    )


def test_build_snapshot_for_pit_carries_grid_position() -> None:
    reading = Reading(entity_id=1, kind=EntityKind.pit, metrics={"temperature": 26.0}, recorded_at=NOW)

    snapshot = build_snapshot(_pit(), reading, "warning")

    assert snapshot.external_code == "A-001"
    assert snapshot.status == "warning"
    assert snapshot.metrics == {"temperature": 26.0}
    assert snapshot.recorded_at == NOW
    assert (snapshot.zone, snapshot.row, snapshot.col) == ("A", 1, 2)


def test_build_snapshot_without_reading_uses_entity_status() -> None:
    snapshot = build_snapshot(_device(), None)

    assert snapshot.kind is EntityKind.device
    assert snapshot.status == "warning"
    assert snapshot.metrics == {}
    assert snapshot.recorded_at is None
    assert snapshot.zone == "Zone B"


def test_put_is_last_writer_wins() -> None:
    cache = AggregationCache()

    cache.put(1, _snapshot(1, 25.0))
    cache.put(1, _snapshot(1, 26.5))

    assert len(cache) == 1
    assert cache.get(1).metrics["temperature"] == 26.5  # type: ignore[union-attr]
    assert cache.get(99) is None


def test_all_snapshots_filters_by_kind_and_clear_empties() -> None:
    cache = AggregationCache()
    cache.put(1, _snapshot(1, 25.0))
    cache.put(2, _snapshot(2, 45.0, kind=EntityKind.device))

    assert [s.entity_id for s in cache.all_snapshots(EntityKind.pit)] == [1]
    assert [s.entity_id for s in cache.all_snapshots(EntityKind.device)] == [2]
    assert len(cache.all_snapshots()) == 2

    cache.clear()
    assert len(cache) == 0


def test_reads_observe_completed_writes_across_threads() -> None:
    cache = AggregationCache()
    stale_reads: list[tuple[float, float]] = []

    def writer(entity_id: int) -> None:
        for step in range(1, 301):
            cache.put(entity_id, _snapshot(entity_id, float(step)))
            observed = cache.get(entity_id)
            if observed is None or observed.metrics["temperature"] < step:
                stale_reads.append((step, observed.metrics["temperature"] if observed else -1))

    threads = [threading.Thread(target=writer, args=(entity_id,)) for entity_id in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert stale_reads == []
    assert len(cache) == 8
    assert all(s.metrics["temperature"] == 300.0 for s in cache.all_snapshots())
