"""Unit tests for the in-memory plant store."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from datastore.mock_store import MockPlantStore
from models.records import (
    AlarmCategory,
    AlarmEvent,
    AlarmLevel,
    AlarmStatus,
    DeviceStatus,
    EntityKind,
    PitStatus,
    Reading,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _reading(entity_id: int, kind: EntityKind, minutes: int, temperature: float = 25.0) -> Reading:
    return Reading(
        entity_id=entity_id,
        kind=kind,
        metrics={"temperature": temperature},
        recorded_at=T0 + timedelta(minutes=minutes),
    )


def _alarm(level: AlarmLevel = AlarmLevel.warning, minutes: int = 0) -> AlarmEvent:
    return AlarmEvent(
        level=level,
        category=AlarmCategory.temperature,
        source="pit-A-001",
        message="Temperature above upper threshold",
        created_at=T0 + timedelta(minutes=minutes),
    )


def _store_with_entities(**kwargs) -> MockPlantStore:
    store = MockPlantStore(**kwargs)
    store.add_pit("A-001", "A", 1, 1)
    store.add_device("P-002", "pump-2", "pump", "Zone A")
    return store


def test_entities_share_one_id_sequence() -> None:
    store = _store_with_entities()

    pit, device = store.list_entities(EntityKind.pit)[0], store.list_entities(EntityKind.device)[0]

    assert (pit.id, device.id) == (1, 2)
    assert store.get_entity(2).kind is EntityKind.device
    assert store.count_entities(EntityKind.pit) == 1
    assert store.count_entities(EntityKind.device, "running") == 1
    with pytest.raises(KeyError):
        store.get_entity(42)


def test_readings_require_increasing_timestamps() -> None:
    store = _store_with_entities()
    store.save_reading(_reading(1, EntityKind.pit, 0))

    with pytest.raises(ValueError):
        store.save_reading(_reading(1, EntityKind.pit, 0))
    with pytest.raises(ValueError):
        store.save_reading(_reading(1, EntityKind.pit, -5))

    store.save_reading(_reading(1, EntityKind.pit, 1, temperature=26.0))
    latest = store.latest_reading_for(1)
    assert latest is not None
    assert latest.metrics["temperature"] == 26.0


def test_reading_kind_must_match_entity() -> None:
    store = _store_with_entities()

    with pytest.raises(ValueError):
        store.save_reading(_reading(2, EntityKind.pit, 0))


def test_history_is_bounded_and_returned_oldest_first() -> None:
    store = _store_with_entities(history_limit=3)
    for minute in range(5):
        store.save_reading(_reading(1, EntityKind.pit, minute, temperature=20.0 + minute))

    history = store.readings_for(1)

    assert [r.metrics["temperature"] for r in history] == [22.0, 23.0, 24.0]
    assert [r.metrics["temperature"] for r in store.readings_for(1, limit=2)] == [23.0, 24.0]
    assert store.readings_for(2) == []
    with pytest.raises(KeyError):
        store.readings_for(99)


def test_unit_of_work_commits_on_clean_exit() -> None:
    store = _store_with_entities()

    with store.unit_of_work() as uow:
        uow.save_reading(_reading(2, EntityKind.device, 0))
        uow.update_status(2, DeviceStatus.warning, T0)
        uow.add_running_hours(2, 1.5)

    device = store.get_entity(2)
    assert device.status is DeviceStatus.warning
    assert device.updated_at == T0
    assert device.running_hours == 1.5  # type: ignore[union-attr]
    assert store.latest_reading_for(2) is not None


def test_unit_of_work_discards_writes_when_block_raises() -> None:
    store = _store_with_entities()

    with pytest.raises(RuntimeError):
        with store.unit_of_work() as uow:
            uow.save_reading(_reading(1, EntityKind.pit, 0))
            uow.update_status(1, PitStatus.alarm, T0)
            raise RuntimeError("boom")

    assert store.latest_reading_for(1) is None
    assert store.get_entity(1).status is PitStatus.normal


def test_commit_applies_nothing_when_any_write_is_invalid() -> None:
    store = _store_with_entities()

    with pytest.raises(ValueError):
        with store.unit_of_work() as uow:
            uow.save_reading(_reading(1, EntityKind.pit, 0))
            uow.update_status(1, "exploded", T0)

    assert store.latest_reading_for(1) is None
    assert store.get_entity(1).status is PitStatus.normal

    with pytest.raises(ValueError):
        store.add_running_hours(1, 2.0)


def test_alarm_lifecycle() -> None:
    store = MockPlantStore()
    first = store.save_alarm(_alarm(AlarmLevel.info, minutes=0))
    second = store.save_alarm(_alarm(AlarmLevel.critical, minutes=5))

    assert (first.id, second.id) == (1, 2)
    assert [a.id for a in store.list_alarms()] == [2, 1]
    assert [a.id for a in store.list_alarms(level=AlarmLevel.info)] == [1]
    assert store.count_alarms_by_level(AlarmStatus.active) == {"info": 1, "critical": 1}

    resolved = store.resolve_alarm(1, "shift-lead", T0)

    assert resolved.status is AlarmStatus.resolved
    assert resolved.resolved_by == "shift-lead"
    assert store.count_alarms(AlarmStatus.active) == 1
    assert [a.id for a in store.list_alarms(status=AlarmStatus.resolved)] == [1]
    assert [a.id for a in store.alarms_since(T0 + timedelta(minutes=1))] == [2]
    with pytest.raises(KeyError):
        store.resolve_alarm(99, "nobody")


def test_persistence_round_trip(tmp_path) -> None:
    path = tmp_path / "plant.json"
    store = _store_with_entities(persistence_path=path)
    store.save_reading(_reading(1, EntityKind.pit, 0))
    store.save_reading(_reading(1, EntityKind.pit, 1, temperature=27.0))
    store.save_alarm(_alarm())

    data = json.loads(path.read_text())
    assert len(data["pits"]) == 1
    assert len(data["devices"]) == 1
    assert len(data["latest_readings"]) == 1

    reloaded = MockPlantStore(persistence_path=path)

    assert reloaded.get_entity(1).code == "A-001"
    assert reloaded.latest_reading_for(1).metrics["temperature"] == 27.0  # type: ignore[union-attr]
    assert reloaded.get_alarm(1) is not None
    assert reloaded.add_pit("A-002", "A", 1, 2).id == 3


def test_unreadable_persistence_file_is_treated_as_empty(tmp_path) -> None:
    path = tmp_path / "plant.json"
    path.write_text("{not json")

    store = MockPlantStore(persistence_path=path)

    assert store.count_entities(EntityKind.pit) == 0


class DiskFullStore(MockPlantStore):
    def __init__(self, **kwargs) -> None:
        self.fail_writes = False
        self.writes = 0
        super().__init__(**kwargs)

    def _write_snapshot(self, entities, latest_readings, alarms) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes += 1
        super()._write_snapshot(entities, latest_readings, alarms)


def test_failed_disk_write_leaves_memory_and_file_untouched(tmp_path) -> None:
    path = tmp_path / "plant.json"
    store = DiskFullStore(persistence_path=path)
    store.add_pit("A-001", "A", 1, 1)
    store.save_reading(_reading(1, EntityKind.pit, 0))
    before = path.read_text()
    store.fail_writes = True

    with pytest.raises(OSError):
        with store.unit_of_work() as uow:
            uow.save_reading(_reading(1, EntityKind.pit, 1, temperature=41.0))
            uow.update_status(1, PitStatus.alarm, T0)
    with pytest.raises(OSError):
        store.add_pit("A-002", "A", 1, 2)
    with pytest.raises(OSError):
        store.save_alarm(_alarm())

    assert store.readings_for(1) == [_reading(1, EntityKind.pit, 0)]
    assert store.get_entity(1).status is PitStatus.normal
    assert store.count_entities(EntityKind.pit) == 1
    assert store.list_alarms() == []
    assert path.read_text() == before

    store.fail_writes = False
    assert store.add_pit("A-002", "A", 1, 2).id == 2
    assert store.save_alarm(_alarm()).id == 1


def test_deferred_persistence_writes_the_file_once(tmp_path) -> None:
    path = tmp_path / "plant.json"
    store = DiskFullStore(persistence_path=path)
    store.add_pit("A-001", "A", 1, 1)
    writes_before = store.writes

    with store.deferred_persistence():
        for minute in range(3):
            store.save_reading(_reading(1, EntityKind.pit, minute, temperature=20.0 + minute))
        assert store.writes == writes_before

    assert store.writes == writes_before + 1
    assert list(tmp_path.iterdir()) == [path]
    data = json.loads(path.read_text())
    assert data["latest_readings"][0]["metrics"]["temperature"] == 22.0


def test_failed_flush_is_retried_on_next_flush(tmp_path) -> None:
    path = tmp_path / "plant.json"
    store = DiskFullStore(persistence_path=path)
    store.add_pit("A-001", "A", 1, 1)
    store.fail_writes = True

    with pytest.raises(OSError):
        with store.deferred_persistence():
            store.save_reading(_reading(1, EntityKind.pit, 0, temperature=30.0))

    assert store.latest_reading_for(1) is not None
    assert json.loads(path.read_text())["latest_readings"] == []

    store.fail_writes = False
    with store.deferred_persistence():
        pass

    assert json.loads(path.read_text())["latest_readings"][0]["metrics"]["temperature"] == 30.0
