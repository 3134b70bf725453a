"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.schemas import (
    DashboardOverview,
    DashboardStats,
    ResolveAlarmRequest,
    SimulatorState,
    SimulatorUpdate,
    SystemInfo,
    TickSummary,
)
from models.records import AlarmEvent, AlarmLevel, AlarmStatus, EntityKind, Reading, Snapshot
from services.runtime import PlantRuntime

router = APIRouter()


def get_runtime(request: Request) -> PlantRuntime:
    return request.app.state.runtime


def _simulator_state(runtime: PlantRuntime) -> SimulatorState:
    scheduler = runtime.scheduler
    return SimulatorState(
        enabled=scheduler.enabled,
        interval_seconds=scheduler.interval_seconds,
        running=scheduler.running,
        ticks=runtime.driver.tick_count,
        last_tick_at=runtime.driver.last_tick_at,
    )


@router.get(
    "/api/v1/dashboard/stats",
    response_model=DashboardStats,
    summary="Plant-wide counters and live averages.",
)
async def dashboard_stats(runtime: PlantRuntime = Depends(get_runtime)) -> DashboardStats:
    return runtime.dashboard.get_stats()


@router.get(
    "/api/v1/dashboard/heatmap",
    response_model=List[Snapshot],
    summary="Latest pit snapshots laid out by zone, row and column.",
)
async def dashboard_heatmap(runtime: PlantRuntime = Depends(get_runtime)) -> List[Snapshot]:
    return runtime.dashboard.get_heatmap()


@router.get(
    "/api/v1/dashboard/overview",
    response_model=DashboardOverview,
    summary="Hourly alarm trend over the last 24 hours.",
)
async def dashboard_overview(runtime: PlantRuntime = Depends(get_runtime)) -> DashboardOverview:
    return runtime.dashboard.get_overview()


@router.get(
    "/api/v1/dashboard/system-info",
    response_model=SystemInfo,
    summary="Diagnostics including the live subscriber count.",
)
async def dashboard_system_info(runtime: PlantRuntime = Depends(get_runtime)) -> SystemInfo:
    return runtime.dashboard.get_system_info()


@router.get(
    "/api/v1/snapshots",
    response_model=List[Snapshot],
    summary="Last-known snapshot of every entity.",
)
async def list_snapshots(
    kind: Optional[EntityKind] = Query(default=None),
    runtime: PlantRuntime = Depends(get_runtime),
) -> List[Snapshot]:
    return runtime.dashboard.get_all_snapshots(kind)


@router.get(
    "/api/v1/snapshots/{entity_id}",
    response_model=Snapshot,
    summary="Last-known snapshot of one entity.",
)
async def get_snapshot(entity_id: int, runtime: PlantRuntime = Depends(get_runtime)) -> Snapshot:
    try:
        return runtime.dashboard.get_snapshot(entity_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Entity {entity_id} not found.",
        ) from exc


@router.get(
    "/api/v1/entities/{entity_id}/readings",
    response_model=List[Reading],
    summary="Recent readings of one entity, oldest first.",
)
async def list_readings(
    entity_id: int,
    limit: int = Query(default=50, ge=1, le=1000),
    runtime: PlantRuntime = Depends(get_runtime),
) -> List[Reading]:
    try:
        return runtime.store.readings_for(entity_id, limit=limit)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Entity {entity_id} not found.",
        ) from exc


@router.get(
    "/api/v1/alarms",
    response_model=List[AlarmEvent],
    summary="Alarms, newest first.",
)
async def list_alarms(
    alarm_status: Optional[AlarmStatus] = Query(default=None, alias="status"),
    level: Optional[AlarmLevel] = Query(default=None),
    runtime: PlantRuntime = Depends(get_runtime),
) -> List[AlarmEvent]:
    return runtime.store.list_alarms(status=alarm_status, level=level)


@router.post(
    "/api/v1/alarms/{alarm_id}/resolve",
    response_model=AlarmEvent,
    summary="Mark an alarm as resolved.",
)
async def resolve_alarm(
    alarm_id: int,
    body: Optional[ResolveAlarmRequest] = None,
    runtime: PlantRuntime = Depends(get_runtime),
) -> AlarmEvent:
    resolved_by = (body or ResolveAlarmRequest()).resolved_by
    try:
        return runtime.store.resolve_alarm(alarm_id, resolved_by)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Alarm {alarm_id} not found.",
        ) from exc


@router.get(
    "/api/v1/simulator",
    response_model=SimulatorState,
    summary="Current tick scheduler state.",
)
async def simulator_state(runtime: PlantRuntime = Depends(get_runtime)) -> SimulatorState:
    return _simulator_state(runtime)


@router.put(
    "/api/v1/simulator",
    response_model=SimulatorState,
    summary="Enable, disable or re-time the simulator without a restart.",
)
async def update_simulator(
    update: SimulatorUpdate,
    runtime: PlantRuntime = Depends(get_runtime),
) -> SimulatorState:
    if update.enabled is not None:
        runtime.scheduler.enabled = update.enabled
    if update.interval_seconds is not None:
        try:
            runtime.scheduler.interval_seconds = update.interval_seconds
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(exc),
            ) from exc
    return _simulator_state(runtime)


@router.post(
    "/api/v1/simulator/tick",
    response_model=TickSummary,
    summary="Run one simulation tick immediately.",
)
async def trigger_tick(runtime: PlantRuntime = Depends(get_runtime)) -> TickSummary:
    report = await runtime.driver.tick()
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A simulation tick is already running.",
        )
    return report.to_summary()


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
