"""Process-wide wiring of the simulation subsystem."""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from datastore.mock_store import MockPlantStore
from services.aggregator import AggregationCache
from services.alarms import AlarmEmitter
from services.broadcaster import Broadcaster
from services.dashboard import DashboardService
from services.scheduler import SimulationScheduler
from services.seeding import seed_demo_plant
from services.simulator import SimulationDriver
from services.walk import WalkProfile, build_profile
from settings import Settings, get_settings


@dataclass
class PlantRuntime:
    """Components shared by the HTTP layer, the WebSocket handler and the scheduler."""

    settings: Settings
    store: MockPlantStore
    cache: AggregationCache
    broadcaster: Broadcaster
    profile: WalkProfile
    driver: SimulationDriver
    scheduler: SimulationScheduler
    dashboard: DashboardService

    async def start(self) -> None:
        self.scheduler.start()

    async def shutdown(self) -> None:
        await self.scheduler.stop()


def build_runtime(
    settings: Optional[Settings] = None,
    *,
    store: Optional[MockPlantStore] = None,
    rng: Optional[random.Random] = None,
) -> PlantRuntime:
    """Construct every component once and inject them into each other."""
    settings = settings or get_settings()
    rng = rng or random.Random()
    profile = build_profile(settings.walk_overrides)

    if store is None:
        path = settings.store_persistence_path
        store = MockPlantStore(
            persistence_path=Path(path) if path else None,
            history_limit=settings.history_limit,
        )
    if settings.seed_demo_data:
        seed_demo_plant(
            store,
            profile,
            rng,
            total_pits=settings.seed_total_pits,
            total_devices=settings.seed_total_devices,
            history_hours=settings.seed_history_hours,
        )

    cache = AggregationCache()
    broadcaster = Broadcaster(send_timeout=settings.subscriber_send_timeout)
    emitter = AlarmEmitter(store, rng, probability=settings.alarm_probability)
    driver = SimulationDriver(
        store=store,
        cache=cache,
        broadcaster=broadcaster,
        emitter=emitter,
        profile=profile,
        rng=rng,
        default_interval_seconds=settings.tick_interval_seconds,
    )
    scheduler = SimulationScheduler(
        driver,
        interval_seconds=settings.tick_interval_seconds,
        enabled=settings.simulator_enabled,
    )
    dashboard = DashboardService(store, cache, broadcaster, scheduler)
    return PlantRuntime(
        settings=settings,
        store=store,
        cache=cache,
        broadcaster=broadcaster,
        profile=profile,
        driver=driver,
        scheduler=scheduler,
        dashboard=dashboard,
    )
