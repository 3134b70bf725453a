from __future__ import annotations

from itertools import groupby
from pathlib import Path
from typing import Iterable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from app.api import get_runtime
from models.records import Snapshot
from services.runtime import PlantRuntime


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


def _group_by_zone(snapshots: Iterable[Snapshot]) -> list[tuple[str, list[Snapshot]]]:
    ordered = sorted(snapshots, key=lambda s: (s.zone or "", s.row or 0, s.col or 0))
    return [(zone, list(items)) for zone, items in groupby(ordered, key=lambda s: s.zone or "")]


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    runtime: PlantRuntime = Depends(get_runtime),
) -> HTMLResponse:
    dashboard = runtime.dashboard
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "stats": dashboard.get_stats(),
            "zones": _group_by_zone(dashboard.get_heatmap()),
            "subscribers": dashboard.get_live_subscriber_count(),
        },
    )
