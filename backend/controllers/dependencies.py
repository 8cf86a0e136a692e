"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from backend.services.bottling_service import BottlingScheduler
from backend.services.plan_service import PlanBuilder
from backend.services.resource_pool import ResourcePool
from backend.services.tank_allocation_service import TankAllocationOptimizer


def _require_state(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_resource_pool(request: Request) -> ResourcePool:
    return _require_state(request, "resource_pool", "Resource pool")


def get_plan_builder(request: Request) -> PlanBuilder:
    return _require_state(request, "plan_builder", "Plan builder")


def get_bottling_scheduler(request: Request) -> BottlingScheduler:
    return _require_state(request, "bottling_scheduler", "Bottling scheduler")


def get_tank_optimizer(request: Request) -> TankAllocationOptimizer:
    return _require_state(request, "tank_optimizer", "Tank allocation optimizer")
