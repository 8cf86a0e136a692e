"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the resource repository and the scheduling services, registers
routers, and loads the persisted resource pool on startup.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.allocation_controller import router as allocation_router
from backend.controllers.bottling_controller import router as bottling_router
from backend.controllers.planning_controller import router as planning_router
from backend.repository.resource_repository import ResourceRepository, SqliteResourceRepository
from backend.services.bottling_service import BottlingScheduler
from backend.services.plan_service import PlanBuilder
from backend.services.resource_pool import ResourcePool
from backend.services.tank_allocation_service import TankAllocationOptimizer
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[ResourceRepository] = None,
) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Services are created here and exposed through app.state; controllers
    resolve them via backend.controllers.dependencies.
    """
    settings = settings or get_settings()

    # --- Repository (single JSON blob in SQLite unless one is injected) ---
    repository = repository or SqliteResourceRepository(settings)

    # --- Services ---
    resource_pool = ResourcePool(repository=repository)
    plan_builder = PlanBuilder(resource_pool=resource_pool, settings=settings)
    bottling_scheduler = BottlingScheduler(resource_pool=resource_pool, settings=settings)
    tank_optimizer = TankAllocationOptimizer(settings=settings, resource_pool=resource_pool)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(planning_router)
    app.include_router(bottling_router)
    app.include_router(allocation_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": settings.app_version}

    app.state.repository = repository
    app.state.resource_pool = resource_pool
    app.state.plan_builder = plan_builder
    app.state.bottling_scheduler = bottling_scheduler
    app.state.tank_optimizer = tank_optimizer

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence.

    The key-value table must exist before the pool reads from it; repositories
    without a schema (in-memory) skip that step.
    """
    repository = app.state.repository
    resource_pool: ResourcePool = app.state.resource_pool

    initialize = getattr(repository, "initialize_database", None)
    if callable(initialize):
        logger.info("Startup: initializing resource store")
        initialize()

    logger.info("Startup: loading resource pool")
    resource_pool.load()

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()
