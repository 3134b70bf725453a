"""Aggregation cache of last-known entity snapshots."""

from __future__ import annotations

from threading import Lock
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from models.records import Device, Entity, EntityKind, Pit, Reading, Snapshot


def build_snapshot(entity: Entity, reading: Optional[Reading], status: Optional[str] = None) -> Snapshot:
    """Project an entity and its latest reading into dashboard display fields."""
    current_status = status if status is not None else entity.status.value
    metrics = dict(reading.metrics) if reading is not None else {}
    recorded_at = reading.recorded_at if reading is not None else None
    if isinstance(entity, Pit):
        return Snapshot(
            entity_id=entity.id,
            kind=EntityKind.pit,
            external_code=entity.code,
            status=current_status,
            metrics=metrics,
            recorded_at=recorded_at,
            zone=entity.zone,
            row=entity.row,
            col=entity.col,
        )
    assert isinstance(entity, Device)
    return Snapshot(
        entity_id=entity.id,
        kind=EntityKind.device,
        external_code=entity.code,
        status=current_status,
        metrics=metrics,
        recorded_at=recorded_at,
        zone=entity.location,
    )


class AggregationCache:
    """Entity id to snapshot map written by the tick driver.

    Writers serialize on a lock and publish a fresh mapping; readers only
    dereference the current mapping, so they never wait on a writer.
    """

    def __init__(self) -> None:
        self._entries: Mapping[int, Snapshot] = MappingProxyType({})
        self._write_lock = Lock()

    def put(self, entity_id: int, snapshot: Snapshot) -> None:
        with self._write_lock:
            updated: Dict[int, Snapshot] = dict(self._entries)
            updated[entity_id] = snapshot
            self._entries = MappingProxyType(updated)

    def get(self, entity_id: int) -> Optional[Snapshot]:
        return self._entries.get(entity_id)

    def all_snapshots(self, kind: Optional[EntityKind] = None) -> List[Snapshot]:
        entries = self._entries
        if kind is None:
            return list(entries.values())
        return [snapshot for snapshot in entries.values() if snapshot.kind is kind]

    def clear(self) -> None:
        with self._write_lock:
            self._entries = MappingProxyType({})

    def __len__(self) -> int:
        return len(self._entries)
