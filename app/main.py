from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from app.api import router
from app.realtime import router as realtime_router
from app.web import router as web_router
from logging_config import configure_logging
from services.runtime import PlantRuntime, build_runtime


def create_app(runtime: Optional[PlantRuntime] = None) -> FastAPI:
    """Build the application; a prepared ``runtime`` replaces the default wiring."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        active = runtime or build_runtime()
        app.state.runtime = active
        await active.start()
        try:
            yield
        finally:
            await active.shutdown()

    app = FastAPI(
        title="Brewery Twin",
        description="Digital-twin demo backend streaming simulated brewery telemetry.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(realtime_router)
    app.include_router(web_router)
    return app


app = create_app()
