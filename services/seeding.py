"""Demo plant seeding for an empty store."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Optional

from datastore.mock_store import MockPlantStore
from models.records import EntityKind
from services.walk import WalkProfile, next_reading

logger = logging.getLogger(__name__)

ZONES = ("A", "B", "C", "D")
GRID_SIZE = 5
DEVICE_TYPES = ("pump", "motor", "sensor", "robot", "conveyor")
DEVICE_LOCATIONS = ("Zone A", "Zone B", "Zone C", "Zone D", "Control room")
GRAIN_TYPES = ("sorghum", "wheat")


def seed_demo_plant(
    store: MockPlantStore,
    profile: WalkProfile,
    rng: random.Random,
    total_pits: int = 100,
    total_devices: int = 50,
    history_hours: int = 24,
    now: Optional[datetime] = None,
) -> bool:
    """Populate ``store`` with a demo plant unless it already holds pits.

    Returns ``True`` when data was seeded.
    """
    existing = store.count_entities(EntityKind.pit)
    if existing:
        logger.info("Store already holds %d pits; skipping demo seeding.", existing)
        return False

    with store.deferred_persistence():
        _seed_pits(store, rng, total_pits)
        _seed_devices(store, rng, total_devices)
        if history_hours > 0:
            _seed_history(store, profile, rng, history_hours, now or datetime.now(timezone.utc))
    logger.info(
        "Seeded demo plant: %d pits, %d devices, %d hours of history.",
        store.count_entities(EntityKind.pit),
        store.count_entities(EntityKind.device),
        history_hours,
    )
    return True


def _seed_pits(store: MockPlantStore, rng: random.Random, total_pits: int) -> None:
    index = 1
    for zone in ZONES:
        for row in range(1, GRID_SIZE + 1):
            for col in range(1, GRID_SIZE + 1):
                if index > total_pits:
                    return
                store.add_pit(
                    f"{zone}-{index:03d}",
                    zone,
                    row,
                    col,
                    pit_age=rng.randint(10, 109),
                    fermentation_day=rng.randrange(60),
                    grain_type=rng.choice(GRAIN_TYPES),
                )
                index += 1


def _seed_devices(store: MockPlantStore, rng: random.Random, total_devices: int) -> None:
    for index in range(1, total_devices + 1):
        device_type = rng.choice(DEVICE_TYPES)
        store.add_device(
            f"{device_type[0].upper()}-{index:03d}",
            f"{device_type}-{index}",
            device_type,
            rng.choice(DEVICE_LOCATIONS),
            running_hours=float(rng.randrange(10000)),
        )


def _seed_history(
    store: MockPlantStore,
    profile: WalkProfile,
    rng: random.Random,
    hours: int,
    now: datetime,
) -> None:
    # Hourly readings ending one hour before ``now`` so the first tick is newer.
    for kind in (EntityKind.pit, EntityKind.device):
        for entity in store.list_entities(kind):
            previous = None
            for offset in range(hours, 0, -1):
                reading = next_reading(
                    entity.id,
                    kind,
                    previous,
                    profile,
                    rng,
                    now - timedelta(hours=offset),
                )
                store.save_reading(reading)
                previous = reading
